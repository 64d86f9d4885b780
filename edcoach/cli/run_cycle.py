"""CLI entry point for the student coaching cycle."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from edcoach.core.validation import ValidationFailure, strict_validation
from edcoach.pipeline import CycleReport, PipelineContext, bootstrap_pipeline, run_cycle

REPO_ROOT = Path(__file__).resolve().parents[2]
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOGGER = logging.getLogger("edcoach.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyze a student roster and write coaching messages.")
    parser.add_argument(
        "--config",
        default="config/pipeline.yaml",
        help="Path to the pipeline YAML (default: config/pipeline.yaml)",
    )
    parser.add_argument(
        "--repo-root",
        default=str(REPO_ROOT),
        help=f"Repository root (default: {REPO_ROOT})",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for logs and the local outbox (default: <repo-root>/outputs)",
    )
    parser.add_argument(
        "--roster",
        default=None,
        help="Override the roster JSON defined in config.roster_path",
    )
    parser.add_argument(
        "--preferences",
        default=None,
        help="Override the teacher rules JSON defined in config.preferences_path",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Do not call the language model; every message uses the deterministic fallback.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for each provider call (overrides config.provider_timeout_seconds)",
    )
    parser.add_argument(
        "--repeat-minutes",
        type=float,
        default=None,
        help="Keep running a new cycle every N minutes instead of exiting after one.",
    )
    parser.add_argument(
        "--max-runs",
        type=int,
        default=None,
        help="Stop after this many cycles when --repeat-minutes is set.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        type=str.upper,
        help="Logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress the per-cycle summary on stdout.",
    )
    return parser


def _resolve_path(value: str | Path, *, base: Path | None = None) -> Path:
    candidate = Path(value).expanduser()
    if candidate.is_absolute():
        return candidate.resolve()
    anchor = Path(base).expanduser().resolve() if base is not None else Path.cwd()
    return (anchor / candidate).resolve()


def _resolve_optional(value: str | Path | None, *, base: Path | None = None) -> Path | None:
    if value is None:
        return None
    return _resolve_path(value, base=base)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.repeat_minutes is not None and args.repeat_minutes <= 0:
            raise ValueError("--repeat-minutes must be positive")
        repo_root = _resolve_path(args.repo_root)
        config_path = _resolve_path(args.config, base=repo_root)
        roster_override = _resolve_optional(args.roster, base=repo_root)
        preferences_override = _resolve_optional(args.preferences, base=repo_root)
        output_dir_override = _resolve_optional(args.output_dir, base=repo_root)

        strict_validation.validate_file_exists(config_path)
        if roster_override is not None:
            strict_validation.validate_file_exists(roster_override)

        ctx = bootstrap_pipeline(
            config_path=config_path,
            repo_root=repo_root,
            output_dir=output_dir_override,
            roster_path=roster_override,
            preferences_path=preferences_override,
            timeout_seconds=args.timeout,
            offline=args.offline,
        )
        if args.repeat_minutes is None:
            report = run_cycle(ctx)
            _print_report(report, quiet=args.quiet)
        else:
            _run_scheduled(ctx, args.repeat_minutes, max_runs=args.max_runs, quiet=args.quiet)
    except (FileNotFoundError, ValidationFailure, ValueError) as exc:
        parser.error(str(exc))
    except Exception as exc:  # noqa: BLE001 - surface as a non-zero exit
        print(f"[edcoach-run] error: {exc}", file=sys.stderr)
        return 1

    return 0


def _run_scheduled(ctx: PipelineContext, minutes: float, *, max_runs: int | None, quiet: bool) -> None:
    """Run a cycle now and then every ``minutes``; a failed cycle does not stop the schedule."""
    LOGGER.info("Interval schedule configured: every %s minute(s)", minutes)
    completed = 0
    while max_runs is None or completed < max_runs:
        try:
            _print_report(run_cycle(ctx), quiet=quiet)
        except Exception as exc:  # noqa: BLE001 - keep the schedule alive
            LOGGER.error("Scheduled run failed: %s", exc)
        completed += 1
        if max_runs is not None and completed >= max_runs:
            break
        time.sleep(minutes * 60)


def _print_report(report: CycleReport, *, quiet: bool = False) -> None:
    if quiet:
        return
    sent = sum(1 for result in report.students if result.status == "sent")
    print(
        f"[cycle] run={report.run_id} status={report.status} "
        f"students={sent}/{report.total_count} fallbacks={report.fallback_count} "
        f"invalid={len(report.validation_errors)}"
    )
    if report.teacher is not None:
        fallback = " (fallback)" if report.teacher.used_fallback else ""
        location = f" -> {report.teacher.location}" if report.teacher.location else ""
        print(f"[teacher] {report.teacher.status}{fallback}{location}")
    if report.sink_errors:
        preview = "; ".join(f"{entry['target']}: {entry['error']}" for entry in report.sink_errors[:2])
        if len(report.sink_errors) > 2:
            preview += ", …"
        print(f"[sink-errors] {len(report.sink_errors)} issue(s) ({preview})")


if __name__ == "__main__":
    sys.exit(main())
