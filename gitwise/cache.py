from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from gitwise.schemas import AnalysisRecord


class CacheDecision(str, Enum):
    SERVE_CACHED = "ServeCached"
    REFRESH = "Refresh"


class CacheGate:
    """Decides whether a stored record can be served as-is.

    Only the record's age and narrative summary are checked; the metadata
    half of the record is trusted as long as the AI half is fresh.
    """

    def __init__(self, freshness_window: timedelta):
        self.freshness_window = freshness_window

    def decide(
        self, record: Optional[AnalysisRecord], force: bool, now: datetime
    ) -> CacheDecision:
        if record is None or force:
            return CacheDecision.REFRESH
        if now - record.last_fetched >= self.freshness_window:
            return CacheDecision.REFRESH
        if not record.functional_summary.strip():
            return CacheDecision.REFRESH
        return CacheDecision.SERVE_CACHED
