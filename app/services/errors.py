"""
Pipeline error base class.

Every failure surfaced by the analysis pipeline carries the group and the
batch range it happened in, so a run can be replayed by hand from the last
durably advanced cursor.
"""

from datetime import datetime
from typing import Optional


class PipelineError(Exception):
    """Base class for failures of one group's analysis run."""

    def __init__(
        self,
        message: str,
        group_id: Optional[str] = None,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
    ):
        super().__init__(message)
        self.group_id = group_id
        self.period_start = period_start
        self.period_end = period_end
