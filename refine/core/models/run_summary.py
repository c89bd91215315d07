"""
RunSummary model reported at the end of every dataset run.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class PipelineState(str, Enum):
    INIT = "INIT"
    READING = "READING"
    DONE = "DONE"
    FAILED = "FAILED"


class RunSummary(BaseModel):
    """
    Counters of one dataset run, produced whether the run completed or aborted.

    Attributes:
        dataset_id: Mapping that was run
        state: DONE or FAILED
        rows_iterated: Raw rows pulled from the reader
        rows_skipped: Rows rejected by a structural precondition
        occurrences_written: Data lines in the occurrences file
        unique_events: Data lines in the events file
        non_matching_names: Distinct names that failed exact verification
        inconsistent_events: Events whose later records disagreed with the first
        error: Failure message when state is FAILED
        events_path: Core file written
        occurrences_path: Extension file written
    """

    dataset_id: str
    state: PipelineState = PipelineState.INIT
    rows_iterated: int = 0
    rows_skipped: int = 0
    occurrences_written: int = 0
    unique_events: int = 0
    non_matching_names: list[str] = Field(default_factory=list)
    inconsistent_events: int = 0
    error: str | None = None
    events_path: str | None = None
    occurrences_path: str | None = None
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.DONE

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
