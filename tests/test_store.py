"""Tests for the SQLAlchemy analysis store."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from gitwise.errors import PersistenceError
from gitwise.store import AnalysisRow, create_store


class TestAnalysisStore:
    def test_round_trip_by_key(self, store, record):
        saved = store.upsert(record)

        assert saved.id is not None
        assert store.find_by_key(saved.id) == saved
        assert saved.model_dump(exclude={"id"}) == record.model_dump(exclude={"id"})

    def test_find_by_url(self, store, record):
        saved = store.upsert(record)
        assert store.find_by_url("https://github.com/octo/hello") == saved
        assert store.find_by_url("https://github.com/octo/other") is None
        assert store.find_by_key(saved.id + 1) is None

    def test_upsert_replaces_wholesale(self, store, record):
        first = store.upsert(record)
        replacement = record.model_copy(
            update={
                "code_health_score": 40,
                "risk_assessment": None,
                "improvements": ["Only one"],
                "last_fetched": record.last_fetched + timedelta(hours=3),
            }
        )
        second = store.upsert(replacement)

        assert second.id == first.id
        loaded = store.find_by_key(first.id)
        assert loaded.code_health_score == 40
        assert loaded.risk_assessment is None
        assert loaded.improvements == ["Only one"]
        assert loaded.last_fetched == record.last_fetched + timedelta(hours=3)

    def test_one_row_per_url(self, store, record):
        store.upsert(record)
        store.upsert(record)
        with store._sessions() as session:
            assert session.query(AnalysisRow).count() == 1

    def test_delete(self, store, record):
        store.upsert(record)
        assert store.delete_by_url(record.repo_url) is True
        assert store.find_by_url(record.repo_url) is None
        assert store.delete_by_url(record.repo_url) is False

    def test_file_backed_store(self, tmp_path, record):
        url = f"sqlite:///{tmp_path / 'gitwise.db'}"
        saved = create_store(url).upsert(record)
        # A fresh engine sees the same data.
        assert create_store(url).find_by_url(record.repo_url) == saved

    def test_database_errors_become_persistence_errors(self, store, record):
        AnalysisRow.__table__.drop(store.engine)
        with pytest.raises(PersistenceError) as excinfo:
            store.upsert(record)
        assert isinstance(excinfo.value.__cause__, OperationalError)
