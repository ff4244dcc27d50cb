from __future__ import annotations

RATING_VALUES: dict[str, int] = {"LOW": 1, "MEDIUM": 2, "HIGH": 3}
EFFORT_VALUES: dict[str, int] = {"SMALL": 1, "MEDIUM": 3, "LARGE": 5}


def priority_score(value: str, urgency: str, effort: str) -> float:
  """
  Priority = value * 2 + urgency * 1.5 + (5 - effort), rounded to 2 decimals.

  Ranges from 3.5 (LOW/LOW/LARGE) to 14.5 (HIGH/HIGH/SMALL).
  """
  v = RATING_VALUES[value] * 2
  u = RATING_VALUES[urgency] * 1.5
  e = 5 - EFFORT_VALUES[effort]
  return round(v + u + e, 2)
