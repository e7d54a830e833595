"""Tests for the cache-validity decision."""

from datetime import datetime, timedelta, timezone

import pytest

from gitwise.cache import CacheDecision, CacheGate

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def gate():
    return CacheGate(timedelta(hours=24))


class TestCacheGate:
    @pytest.mark.parametrize(
        "age_hours, force, narrative_present, expected",
        [
            (1, False, True, CacheDecision.SERVE_CACHED),
            (30, False, True, CacheDecision.REFRESH),
            (1, False, False, CacheDecision.REFRESH),
            (1, True, True, CacheDecision.REFRESH),
            (24, False, True, CacheDecision.REFRESH),
            (23.9, False, True, CacheDecision.SERVE_CACHED),
        ],
    )
    def test_decision_table(self, gate, record, age_hours, force, narrative_present, expected):
        stored = record.model_copy(
            update={
                "last_fetched": NOW - timedelta(hours=age_hours),
                "functional_summary": record.functional_summary if narrative_present else "",
            }
        )
        assert gate.decide(stored, force, NOW) is expected

    def test_missing_record_refreshes(self, gate):
        assert gate.decide(None, False, NOW) is CacheDecision.REFRESH

    def test_whitespace_summary_refreshes(self, gate, record):
        stored = record.model_copy(update={"last_fetched": NOW, "functional_summary": "   "})
        assert gate.decide(stored, False, NOW) is CacheDecision.REFRESH
