"""
state.py
Per-view list state with pure reducers.

Raw fetched rows live here; anything derived (summaries, pages) is recomputed
from them on every render and never stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    rows: tuple = ()
    filters: dict[str, Any] = field(default_factory=dict)
    page: int = 1
    generation: int = 0  # token of the latest fetch that was started
    loaded: bool = False


def set_filters(state: ViewState, **changes: Any) -> ViewState:
    """Merge filter changes; going back to page 1 whenever something actually changed."""
    merged = {**state.filters, **changes}
    if merged == state.filters:
        return state
    return replace(state, filters=merged, page=1)


def set_page(state: ViewState, page: int) -> ViewState:
    return replace(state, page=max(1, int(page)))


def begin_fetch(state: ViewState) -> tuple[ViewState, int]:
    token = state.generation + 1
    return replace(state, generation=token), token


def apply_fetch(state: ViewState, token: int, rows) -> ViewState:
    """Store rows from fetch `token` unless a newer fetch has been started since."""
    if token != state.generation:
        logger.debug("Dropping stale fetch result %s (latest %s)", token, state.generation)
        return state
    return replace(state, rows=tuple(rows), loaded=True)
