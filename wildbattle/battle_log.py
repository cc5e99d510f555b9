"""Append-only battle log.

Entries double as UI narration and as the record of turn order: ids are
strictly increasing and entries are never edited.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from wildbattle.api.models import BattleState, LogCategory, LogEntry


def _now() -> datetime:
    return datetime.now(tz=UTC)


def next_log_id(log: Sequence[LogEntry]) -> int:
    return (log[-1].id + 1) if log else 1


def append_log(state: BattleState, *, message: str, category: LogCategory = LogCategory.info) -> LogEntry:
    entry = LogEntry(id=next_log_id(state.log), message=message, category=category, created_at=_now())
    state.log.append(entry)
    return entry


def entries_after(log: Sequence[LogEntry], after_id: int) -> list[LogEntry]:
    return [e for e in log if e.id > after_id]


def last_log_id(log: Sequence[LogEntry]) -> int:
    return log[-1].id if log else 0
