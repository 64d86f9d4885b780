"""Local email simulation: messages are written to disk, never sent."""

from __future__ import annotations

import html
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .models import Student

LOGGER = logging.getLogger(__name__)

STUDENT_INTRO = "Here is a supportive summary of your recent progress, plus a few next steps:"
STUDENT_CLOSING = "You can do this. Pick one focus to try this week and build from there."
SIGNATURE = "Your Educational Assistant"
TEACHER_SUBJECT = "Class performance summary"
UNIQUE_NAME_ATTEMPTS = 5
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


@dataclass(frozen=True, slots=True)
class EmailContent:
    to: str
    subject: str
    text: str
    html: str


def _paragraphs_html(*blocks: str) -> str:
    rendered = ["<p>{}</p>".format(html.escape(block).replace("\n", "<br />")) for block in blocks]
    return "\n".join(rendered)


def build_student_email(student: Student, message: str) -> EmailContent:
    body = message.strip()
    text = "\n".join(
        [
            f"Hi {student.name},",
            "",
            STUDENT_INTRO,
            "",
            body,
            "",
            STUDENT_CLOSING,
            SIGNATURE,
        ]
    )
    return EmailContent(
        to=student.email,
        subject=f"Your learning update and next steps, {student.name}",
        text=text,
        html=_paragraphs_html(f"Hi {student.name},", STUDENT_INTRO, body, f"{STUDENT_CLOSING}\n{SIGNATURE}"),
    )


def build_teacher_email(teacher_email: str, message: str) -> EmailContent:
    body = message.strip()
    return EmailContent(
        to=teacher_email,
        subject=TEACHER_SUBJECT,
        text=f"Hello,\n\n{body}\n\nBest,\nEducational Assistant",
        html=_paragraphs_html("Hello,", body, "Best,\nEducational Assistant"),
    )


class LocalOutbox:
    """Writes each email as a header + body text file under ``output_dir``."""

    def __init__(self, output_dir: Optional[Path], email_from: str) -> None:
        self.output_dir = output_dir
        self.email_from = email_from

    def deliver(self, email: EmailContent) -> Optional[Path]:
        LOGGER.info("Local email generated for %s (%s)", email.to, email.subject)
        LOGGER.debug("Local email body:\n%s", email.text)
        if self.output_dir is None:
            return None

        contents = "\n".join(
            [
                f"From: {self.email_from}",
                f"To: {email.to}",
                f"Subject: {email.subject}",
                "",
                email.text,
                "",
            ]
        )
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        base_name = f"{stamp}-{_UNSAFE_CHARS.sub('_', email.to)}"
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self._write_unique(base_name, contents)
        LOGGER.info("Local email saved to %s", path)
        return path

    def _write_unique(self, base_name: str, contents: str) -> Path:
        for _ in range(UNIQUE_NAME_ATTEMPTS):
            path = self.output_dir / f"{base_name}-{uuid.uuid4().hex[:12]}.txt"
            try:
                with path.open("x", encoding="utf-8") as handle:
                    handle.write(contents)
            except FileExistsError:
                continue
            return path
        raise OSError(f"Could not create a unique email file for {base_name}")


__all__ = ["EmailContent", "LocalOutbox", "build_student_email", "build_teacher_email"]
