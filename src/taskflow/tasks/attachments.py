# src/taskflow/tasks/attachments.py

"""
Attachments embedded in a task description.

The description is the single source of truth. Attachments are stored as lines:

    **Attachment:** [report.pdf](https://files.example/report.pdf)

`extract_attachments` splits a description into clean text + attachments and
`format_description` puts them back together (text, blank line, one line per attachment).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

ATTACHMENT_LINE = re.compile(r"^\s*\*\*Attachment:\*\*\s*\[(.*?)\]\((.*?)\)\s*$")

_IMAGE_EXT = {"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp"}
_VIDEO_EXT = {"mp4", "webm", "mov", "avi"}


@dataclass(frozen=True, slots=True)
class Attachment:
    name: str
    url: str
    kind: str  # image | video | file

    def to_line(self) -> str:
        return f"**Attachment:** [{self.name}]({self.url})"


def attachment_kind(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext in _IMAGE_EXT:
        return "image"
    if ext in _VIDEO_EXT:
        return "video"
    return "file"


def extract_attachments(description: str | None) -> tuple[str, list[Attachment]]:
    if not description:
        return "", []

    attachments: list[Attachment] = []
    clean_lines: list[str] = []
    for line in description.split("\n"):
        m = ATTACHMENT_LINE.match(line)
        if m:
            name, url = m.group(1), m.group(2)
            attachments.append(Attachment(name=name, url=url, kind=attachment_kind(name)))
        else:
            clean_lines.append(line)

    return "\n".join(clean_lines).strip(), attachments


def format_description(text: str, attachments: list[Attachment]) -> str:
    description = (text or "").strip()
    if attachments:
        if description:
            description += "\n\n"
        description += "\n".join(a.to_line() for a in attachments)
    return description


def attach(description: str, name: str, url: str) -> str:
    text, attachments = extract_attachments(description)
    attachments.append(Attachment(name=name, url=url, kind=attachment_kind(name)))
    return format_description(text, attachments)


def detach(description: str, url: str) -> str:
    text, attachments = extract_attachments(description)
    return format_description(text, [a for a in attachments if a.url != url])
