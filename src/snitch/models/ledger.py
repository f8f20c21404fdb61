"""Pydantic models for ledger events."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

EventType = Literal[
    "CAPTURE_STARTED",
    "ENTRY_FINALIZED",
    "LINK_INSERTED",
    "LINK_SKIPPED",
    "CAPTURE_ABANDONED",
]


class LedgerEvent(BaseModel):
    """Append-only ledger event record.

    Written as JSONL to <project>/.snitch/ledger.jsonl.
    Never mutate or delete; only append.
    """

    event_id: str = Field(description="Unique event identifier (uuid4)")
    run_id: str = Field(description="Run identifier (uuid4)")
    ts: datetime = Field(description="Event timestamp (ISO8601 UTC)")
    event_type: EventType = Field(description="Event type")
    entry_id: str | None = Field(default=None, description="Related entry ID if applicable")
    payload: dict = Field(default_factory=dict, description="Event-specific data")

    model_config = {"frozen": True}
