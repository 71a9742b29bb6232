"""
Bounded undo/redo history.

The history works via snapshots:
- Each committed mutation pushes the previous present onto `past` and
  captures the new collections as `present`
- A new edit discards the redo branch (`future`)
- `past` is capped at MAX_HISTORY_SIZE entries, oldest evicted first
"""

from typing import Optional

from .models import Connection, Device, DiagramSnapshot, HistoryState


MAX_HISTORY_SIZE = 50


def create_snapshot(devices: list[Device], connections: list[Connection]) -> DiagramSnapshot:
    """Capture deep copies of the collections."""
    return DiagramSnapshot(
        devices=[d.model_copy(deep=True) for d in devices],
        connections=[c.model_copy(deep=True) for c in connections],
    )


def new_history(
    devices: Optional[list[Device]] = None,
    connections: Optional[list[Connection]] = None
) -> HistoryState:
    """History with no past or future, whose present is the given state."""
    return HistoryState(present=create_snapshot(devices or [], connections or []))


def push_to_history(
    history: HistoryState,
    devices: list[Device],
    connections: list[Connection]
) -> HistoryState:
    """Record a new present; clears the redo stack."""
    return HistoryState(
        past=[*history.past, history.present],
        present=create_snapshot(devices, connections),
        future=[],
    )


def trim_history(history: HistoryState, max_size: int = MAX_HISTORY_SIZE) -> HistoryState:
    """Keep only the most recent `max_size` past snapshots."""
    if len(history.past) <= max_size:
        return history
    return history.model_copy(update={"past": history.past[-max_size:]})


def record(
    history: HistoryState,
    devices: list[Device],
    connections: list[Connection]
) -> HistoryState:
    """Push and trim in one step."""
    return trim_history(push_to_history(history, devices, connections))


def undo(history: HistoryState) -> Optional[HistoryState]:
    """Step back one snapshot, or None if there is nothing to undo."""
    if not history.past:
        return None
    return HistoryState(
        past=history.past[:-1],
        present=history.past[-1],
        future=[history.present, *history.future],
    )


def redo(history: HistoryState) -> Optional[HistoryState]:
    """Step forward one snapshot, or None if there is nothing to redo."""
    if not history.future:
        return None
    return HistoryState(
        past=[*history.past, history.present],
        present=history.future[0],
        future=history.future[1:],
    )


def can_undo(history: HistoryState) -> bool:
    return len(history.past) > 0


def can_redo(history: HistoryState) -> bool:
    return len(history.future) > 0
