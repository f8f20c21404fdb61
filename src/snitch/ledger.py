"""Capture ledger: an append-only JSONL log of capture lifecycle events.

Each controller gets its own ``run_id``, so the events of one CLI run or
editor session can be grouped when reading the ledger back.
"""

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from .models.ledger import EventType, LedgerEvent

logger = logging.getLogger(__name__)


class LedgerWriter:
    """Appends capture events to a project's ledger file.

    The file and its parent directory are created on first write. Existing
    lines are never rewritten.
    """

    def __init__(self, ledger_path: Path, run_id: Optional[str] = None):
        self.ledger_path = Path(ledger_path)
        self.run_id = run_id or str(uuid.uuid4())

    def append_event(
        self,
        event_type: EventType,
        payload: dict,
        entry_id: Optional[str] = None,
    ) -> LedgerEvent:
        """Record one event and return it.

        Args:
            event_type: Lifecycle step being recorded
            payload: Event-specific data (buffer, offsets, skip reason...)
            entry_id: ID of the tracking entry the event concerns, if any
        """
        event = LedgerEvent(
            event_id=str(uuid.uuid4()),
            run_id=self.run_id,
            ts=datetime.now(timezone.utc),
            event_type=event_type,
            entry_id=entry_id,
            payload=payload,
        )
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        with self.ledger_path.open("a", encoding="utf-8") as f:
            f.write(event.model_dump_json() + "\n")
        logger.debug(f"Ledger {event_type} entry={entry_id} run={self.run_id}")
        return event


def iter_ledger_events(ledger_path: Path) -> Iterator[LedgerEvent]:
    """Yield ledger events oldest first, skipping lines that do not parse."""
    if not ledger_path.exists():
        return
    with ledger_path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield LedgerEvent.model_validate_json(line)
            except ValidationError as e:
                logger.warning(f"{ledger_path}:{lineno}: skipping malformed ledger line ({e.error_count()} error(s))")


def read_ledger_tail(ledger_path: Path, n: int = 20, entry_id: Optional[str] = None) -> list[LedgerEvent]:
    """The last ``n`` events, optionally only those for one entry.

    ``entry_id`` matches by prefix, so the shortened IDs shown by
    ``snitch list`` can be used.
    """
    if n <= 0:
        return []
    events = iter_ledger_events(ledger_path)
    if entry_id:
        events = (e for e in events if e.entry_id and e.entry_id.startswith(entry_id))
    return list(deque(events, maxlen=n))
