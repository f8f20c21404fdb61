"""Pydantic models for capture sessions."""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Lifecycle of the capture-region binding."""

    IDLE = "idle"
    PENDING = "pending"
    FINALIZING = "finalizing"


SkipReason = Literal["no_entry", "foreign_template", "no_session", "guard_mismatch", "stale_marker"]


class FinalizeResult(BaseModel):
    """Outcome of handling one capture finalize."""

    template_key: Optional[str] = Field(default=None, description="Template key of the finalized capture")
    entry_id: Optional[str] = Field(default=None, description="Assigned entry id")
    sequence_number: Optional[int] = Field(default=None, description="Assigned sequence number")
    link_inserted: bool = Field(default=False, description="Whether the source region was rewritten")
    link_text: Optional[str] = Field(default=None, description="Inserted link text")
    skip_reason: Optional[SkipReason] = Field(default=None, description="Why the rewrite was skipped")

    model_config = {"frozen": True}
