from __future__ import annotations

import itertools

import pytest

from app.dependency_guard import would_create_cycle
from app.scoring import EFFORT_VALUES, RATING_VALUES, priority_score


@pytest.mark.anyio
async def test_priority_score_bounds() -> None:
  assert priority_score("HIGH", "HIGH", "SMALL") == 14.5
  assert priority_score("LOW", "LOW", "LARGE") == 3.5
  assert priority_score("MEDIUM", "MEDIUM", "MEDIUM") == 9.0


@pytest.mark.anyio
async def test_priority_score_all_triples_deterministic() -> None:
  seen = []
  for v, u, e in itertools.product(RATING_VALUES, RATING_VALUES, EFFORT_VALUES):
    s = priority_score(v, u, e)
    assert s == priority_score(v, u, e)
    assert 3.5 <= s <= 14.5
    assert s == round(RATING_VALUES[v] * 2 + RATING_VALUES[u] * 1.5 + (5 - EFFORT_VALUES[e]), 2)
    seen.append(s)
  assert len(seen) == 27


@pytest.mark.anyio
async def test_effort_mapping_is_one_three_five() -> None:
  assert EFFORT_VALUES == {"SMALL": 1, "MEDIUM": 3, "LARGE": 5}


def _lookup_from(edges: dict[str, str | None], calls: list[str]):
  async def _next(node: str) -> str | None:
    calls.append(node)
    return edges.get(node)

  return _next


@pytest.mark.anyio
async def test_cycle_detected_on_chain() -> None:
  # A -> B -> C
  edges = {"A": "B", "B": "C", "C": None}
  calls: list[str] = []
  assert await would_create_cycle("C", "A", _lookup_from(edges, calls)) is True


@pytest.mark.anyio
async def test_acyclic_edges_accepted() -> None:
  edges = {"A": "B", "B": "C", "C": None, "D": None}
  calls: list[str] = []
  assert await would_create_cycle("D", "A", _lookup_from(edges, calls)) is False
  assert calls == ["A", "B", "C"]
  assert await would_create_cycle("A", "C", _lookup_from(edges, [])) is False


@pytest.mark.anyio
async def test_self_dependency_rejected_without_lookup() -> None:
  calls: list[str] = []
  assert await would_create_cycle("A", "A", _lookup_from({}, calls)) is True
  assert calls == []


@pytest.mark.anyio
async def test_clearing_dependency_never_cycles() -> None:
  calls: list[str] = []
  assert await would_create_cycle("A", None, _lookup_from({"A": "A"}, calls)) is False
  assert calls == []


@pytest.mark.anyio
async def test_preexisting_loop_does_not_hang() -> None:
  edges = {"X": "Y", "Y": "X"}
  assert await would_create_cycle("Z", "X", _lookup_from(edges, [])) is True
