from __future__ import annotations

import re
from dataclasses import dataclass, field

_NON_LETTERS_RE = re.compile(r"[^A-Za-z\s]")
_BULLET_RE = re.compile(r"^[-*•□◦▪]+\s*")
_WS_RE = re.compile(r"\s+")


@dataclass
class OutlineMilestone:
  name: str
  tasks: list[str] = field(default_factory=list)


def _is_control_line(line: str) -> bool:
  # RTF group openers, control words and group closers carry no content.
  return line.startswith("{") or line.startswith("\\") or line.strip() == "}"


def _heading_text(line: str) -> str | None:
  letters = _WS_RE.sub(" ", _NON_LETTERS_RE.sub("", line)).strip()
  if len(letters) > 2 and letters == letters.upper():
    return letters
  return None


def parse_outline(content: str) -> list[OutlineMilestone]:
  """
  Split a plain-text or RTF outline into milestones and their tasks.

  An ALL-CAPS line starts a milestone; every other non-empty line becomes a
  task of the current milestone. Lines before the first heading are dropped.
  """
  milestones: list[OutlineMilestone] = []
  current: OutlineMilestone | None = None
  for raw in (content or "").splitlines():
    if _is_control_line(raw):
      continue
    line = raw.strip().rstrip("\\").strip()
    if not line:
      continue

    heading = _heading_text(line)
    if heading:
      current = OutlineMilestone(name=heading[:100])
      milestones.append(current)
      continue

    if current is None:
      continue
    task = _BULLET_RE.sub("", line).strip()
    if task:
      current.tasks.append(task[:200])
  return milestones
