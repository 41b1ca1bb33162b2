"""Trigger summary returned by the internal cron endpoints."""
from typing import Optional, Literal
from pydantic import BaseModel


class TriggerSummary(BaseModel):
    """Result of one trigger invocation. Always returned, never an error page."""
    trigger: str
    status: Literal["ok", "noop", "skipped", "error"]
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0  # routine: already sent in this hour window
    cleared: int = 0
    started: int = 0
    escalated: int = 0
    exhausted: int = 0
    error: Optional[str] = None

    @classmethod
    def noop(cls, trigger: str) -> "TriggerSummary":
        return cls(trigger=trigger, status="noop")
