"""Concurrency configuration and run statistics models."""

from pydantic import BaseModel, Field


class ConcurrencyConfig(BaseModel):
    """Concurrency configuration for page processing"""

    # Maximum pages in flight at once
    max_concurrency: int = Field(default=5, ge=1, le=64)

    # Save progress every N completed pages (0 = only at run end)
    checkpoint_interval: int = Field(default=10, ge=0, le=1000)


class RunSummary(BaseModel):
    """Aggregate outcome of one executor run.

    ``completed`` includes items skipped because they were already complete
    or known free. ``abandoned`` counts items never admitted because
    shutdown started.
    """

    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped_completed: int = 0
    skipped_free: int = 0
    abandoned: int = 0
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        """Items that actually ran this time"""
        return self.completed - self.skipped_completed - self.skipped_free
