import pytest

from apps.coach import analyzer
from apps.coach.analyzer import analyze_student, determine_risk, round_score, summarize_class
from apps.coach.models import RiskLevel
from tests.mocks.coach import build_analysis


def test_metrics_for_a_strong_student() -> None:
    analysis = build_analysis(
        grades=[{"subject": "Math", "score": 90}, {"subject": "Science", "score": 80}],
        participationScore=9,
        assignmentCompletionRate=95,
        performanceTrend="improving",
    )

    assert analysis.metrics.average_score == 85.0
    assert [grade.subject for grade in analysis.metrics.highest_subjects] == ["Math", "Science"]
    assert [grade.subject for grade in analysis.metrics.lowest_subjects] == ["Science", "Math"]
    assert analysis.metrics.needs_attention is False
    assert analysis.strengths == (
        "Strong overall academic performance",
        "Consistent class participation",
        "High assignment completion rate",
        "Recent performance trend is improving",
    )
    assert analysis.improvement_areas == ("Focus on weaker subjects: Science, Math",)
    assert analysis.risk_level is RiskLevel.LOW


def test_struggling_student_gets_every_improvement_area() -> None:
    analysis = build_analysis(
        grades=[{"subject": "Math", "score": 60}, {"subject": "History", "score": 65}, {"subject": "Art", "score": 72}],
        participationScore=4,
        assignmentCompletionRate=60,
        performanceTrend="declining",
    )

    assert analysis.metrics.average_score == 65.67
    assert analysis.metrics.needs_attention is True
    assert analysis.strengths == ()
    assert analysis.improvement_areas == (
        "Overall grade average needs improvement",
        "Increase class participation",
        "Improve assignment completion rate",
        "Address recent performance decline",
        "Focus on weaker subjects: Math, History",
    )
    assert analysis.risk_level is RiskLevel.HIGH


def test_ties_keep_input_order() -> None:
    analysis = build_analysis(
        grades=[{"subject": "A", "score": 80}, {"subject": "B", "score": 80}, {"subject": "C", "score": 80}],
    )

    assert [grade.subject for grade in analysis.metrics.highest_subjects] == ["A", "B"]
    assert [grade.subject for grade in analysis.metrics.lowest_subjects] == ["A", "B"]


def test_single_grade_fills_both_windows() -> None:
    analysis = build_analysis(grades=[{"subject": "Math", "score": 77}])

    assert [grade.subject for grade in analysis.metrics.highest_subjects] == ["Math"]
    assert [grade.subject for grade in analysis.metrics.lowest_subjects] == ["Math"]


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({"participationScore": 4}, RiskLevel.HIGH),
        ({"assignmentCompletionRate": 69.99}, RiskLevel.HIGH),
        ({"performanceTrend": "declining"}, RiskLevel.HIGH),
        ({"participationScore": 6}, RiskLevel.MEDIUM),
        ({"assignmentCompletionRate": 84}, RiskLevel.MEDIUM),
        ({"participationScore": 7, "assignmentCompletionRate": 85}, RiskLevel.LOW),
    ],
)
def test_risk_ladder(overrides, expected) -> None:
    analysis = build_analysis(grades=[{"subject": "Math", "score": 90}], **overrides)

    assert analysis.risk_level is expected
    assert determine_risk(analysis.metrics, analysis.student.performance_trend) is expected


def test_average_risk_thresholds() -> None:
    assert build_analysis(grades=[{"subject": "Math", "score": 69}]).risk_level is RiskLevel.HIGH
    assert build_analysis(grades=[{"subject": "Math", "score": 79}]).risk_level is RiskLevel.MEDIUM
    assert build_analysis(grades=[{"subject": "Math", "score": 80}]).risk_level is RiskLevel.LOW


def test_attention_and_improvement_thresholds_are_pinned() -> None:
    assert analyzer.ATTENTION_AVERAGE_THRESHOLD == 75.0
    assert analyzer.ATTENTION_COMPLETION_THRESHOLD == 80.0

    at_threshold = build_analysis(grades=[{"subject": "Math", "score": 75}])
    below = build_analysis(grades=[{"subject": "Math", "score": 74.99}])

    assert "Overall grade average needs improvement" not in at_threshold.improvement_areas
    assert "Overall grade average needs improvement" in below.improvement_areas
    assert below.metrics.needs_attention is True


def test_analysis_is_deterministic() -> None:
    assert build_analysis() == build_analysis()


def test_round_score_rounds_halves_away_from_zero() -> None:
    assert round_score(0.125) == 0.13
    assert round_score(-84.125) == -84.13
    assert round_score(84.125) == 84.13
    assert round_score(0.0) == 0.0
    assert round_score(84.25, 1) == 84.3
    assert round_score(-0.05, 1) == -0.1


def test_class_summary() -> None:
    strong = build_analysis(id="a", name="Ava", grades=[{"subject": "Math", "score": 95}])
    middle = build_analysis(id="b", name="Ben", grades=[{"subject": "Math", "score": 82}])
    weak = build_analysis(
        id="c",
        name="Cal",
        grades=[{"subject": "Math", "score": 60}],
        performanceTrend="declining",
        assignmentCompletionRate=92,
    )
    tied = build_analysis(id="d", name="Dee", grades=[{"subject": "Math", "score": 82}])

    summary = summarize_class([strong, middle, weak, tied])

    assert summary.class_average == 79.75
    assert summary.top_students == ("Ava", "Ben", "Dee")
    assert summary.attention_needed == ("Cal",)
    assert summary.notes == (
        "1 student(s) show a declining trend.",
        "4 student(s) have 90%+ assignment completion.",
        "1 student(s) are classified as high risk.",
    )


def test_class_summary_of_nothing() -> None:
    summary = summarize_class([])

    assert summary.class_average == 0.0
    assert summary.top_students == ()
    assert summary.notes == ()


def test_analyze_student_does_not_mutate_input() -> None:
    analysis = build_analysis()
    again = analyze_student(analysis.student)

    assert again == analysis


def test_two_grade_average() -> None:
    analysis = build_analysis(grades=[{"subject": "Math", "score": 90}, {"subject": "English", "score": 70}])

    assert analysis.metrics.average_score == 80


def test_several_high_risk_triggers_at_once() -> None:
    analysis = build_analysis(
        grades=[{"subject": "Math", "score": 70}],
        participationScore=5,
        assignmentCompletionRate=60,
        performanceTrend="declining",
    )

    assert analysis.metrics.average_score == 70
    assert analysis.risk_level is RiskLevel.HIGH
