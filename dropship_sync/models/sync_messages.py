"""Pydantic models for reconciliation runs and status tracking.

This module defines the data models for sync run state, the change
report and the result returned to callers.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional, Union
from datetime import datetime, timezone
from enum import Enum


class SyncState(str, Enum):
    """Reconciliation run states for status tracking."""
    IDLE = "idle"
    LOCKED = "locked"
    FETCHING = "fetching"
    MATCHING = "matching"
    BATCHING = "batching"
    DONE = "done"
    FAILED = "failed"


class SyncStatus(str, Enum):
    """Final outcome of a reconciliation run."""
    SUCCESS = "success"
    LOCK_HELD = "lock_held"


class FieldChange(BaseModel):
    """Before/after value of one catalog field."""
    from_: Union[int, float] = Field(alias="from")
    to: Union[int, float]

    model_config = {"populate_by_name": True}


class ProductChange(BaseModel):
    """A catalog record whose price or stock changed during a sync."""
    product_id: int
    sku: str
    changed: Dict[str, FieldChange]

    def to_report(self) -> dict:
        """Dictionary form used in the activity log."""
        return self.model_dump(by_alias=True)


class SyncResult(BaseModel):
    """Result of a reconciliation run.

    Attributes:
        status: success or lock_held
        updated: Number of records whose price or stock changed
        changes: Per-record change report
        pages: Number of catalog pages visited
    """
    status: SyncStatus
    updated: int = Field(default=0, ge=0)
    changes: List[ProductChange] = Field(default_factory=list)
    pages: int = Field(default=0, ge=0)


class SyncStatusMessage(BaseModel):
    """Current sync status stored in the cache for observers.

    Attributes:
        state: Current run state
        triggered_by: What started the run
        started_at: ISO 8601 timestamp when the run started
        batch: Last completed page number
        updated: Cumulative updated count
    """
    state: SyncState = Field(
        default=SyncState.IDLE,
        description="Current run state"
    )
    triggered_by: Optional[Literal["manual", "scheduled"]] = None
    started_at: Optional[str] = Field(
        default=None,
        description="ISO 8601 timestamp when sync started"
    )
    batch: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)

    @property
    def is_syncing(self) -> bool:
        """Whether a sync operation is currently in progress."""
        return self.state not in (SyncState.IDLE, SyncState.DONE, SyncState.FAILED)

    @classmethod
    def started(cls, triggered_by: str) -> "SyncStatusMessage":
        return cls(
            state=SyncState.LOCKED,
            triggered_by=triggered_by,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
