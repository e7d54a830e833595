import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from gitwise.errors import PersistenceError
from gitwise.schemas import AnalysisRecord

logger = logging.getLogger(__name__)

Base = declarative_base()


class AnalysisRow(Base):
    __tablename__ = "analysis_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repo_url = Column(String(500), unique=True, index=True, nullable=False)

    owner = Column(String(200), nullable=False)
    repo_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    stars = Column(Integer, nullable=False, default=0)
    forks = Column(Integer, nullable=False, default=0)
    languages = Column(JSON, nullable=False, default=dict)
    recent_commits = Column(JSON, nullable=False, default=list)
    contributors = Column(JSON, nullable=False, default=list)
    file_tree = Column(JSON, nullable=False, default=list)

    functional_summary = Column(Text, nullable=False)
    target_audience_and_use = Column(Text, nullable=False)
    tech_stack = Column(JSON, nullable=False, default=list)
    code_health_score = Column(Integer, nullable=False)
    health_score_justification = Column(Text)
    improvements = Column(JSON, nullable=False, default=list)
    risk_assessment = Column(JSON)
    architecture_assessment = Column(JSON)
    analysis_degraded = Column(Boolean, nullable=False, default=False)

    # Naive UTC; SQLite drops tzinfo.
    last_fetched = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<AnalysisRow {self.repo_url} (score {self.code_health_score})>"


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _row_values(record: AnalysisRecord) -> dict:
    values = record.model_dump(mode="json", exclude={"id", "last_fetched"})
    values["last_fetched"] = _to_naive_utc(record.last_fetched)
    return values


def _to_record(row: AnalysisRow) -> AnalysisRecord:
    data = {column.name: getattr(row, column.name) for column in AnalysisRow.__table__.columns}
    data["last_fetched"] = row.last_fetched.replace(tzinfo=timezone.utc)
    return AnalysisRecord.model_validate(data)


class AnalysisRepository(Protocol):
    def find_by_key(self, key: int) -> Optional[AnalysisRecord]: ...

    def find_by_url(self, repo_url: str) -> Optional[AnalysisRecord]: ...

    def upsert(self, record: AnalysisRecord) -> AnalysisRecord: ...

    def delete_by_url(self, repo_url: str) -> bool: ...


class SQLAlchemyAnalysisStore:
    """AnalysisRepository backed by one SQLAlchemy table, one row per repo URL."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def find_by_key(self, key: int) -> Optional[AnalysisRecord]:
        try:
            with self._sessions() as session:
                row = session.get(AnalysisRow, key)
                return _to_record(row) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load record {key}: {exc}") from exc

    def find_by_url(self, repo_url: str) -> Optional[AnalysisRecord]:
        try:
            with self._sessions() as session:
                row = session.scalars(
                    select(AnalysisRow).where(AnalysisRow.repo_url == repo_url)
                ).first()
                return _to_record(row) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load record for {repo_url}: {exc}") from exc

    def _write(self, values: dict) -> AnalysisRecord:
        with self._sessions.begin() as session:
            row = session.scalars(
                select(AnalysisRow).where(AnalysisRow.repo_url == values["repo_url"])
            ).first()
            if row is None:
                row = AnalysisRow(**values)
                session.add(row)
            else:
                for name, value in values.items():
                    setattr(row, name, value)
            session.flush()
            return _to_record(row)

    def upsert(self, record: AnalysisRecord) -> AnalysisRecord:
        """Insert or wholesale-replace the row for ``record.repo_url``."""
        values = _row_values(record)
        try:
            try:
                saved = self._write(values)
            except IntegrityError:
                # Another writer inserted the same URL first; overwrite it.
                logger.debug(f"Concurrent insert for {record.repo_url}, retrying as update")
                saved = self._write(values)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to persist {record.repo_url}: {exc}") from exc

        logger.info(f"Persisted analysis for {record.repo_url} (id={saved.id})")
        return saved

    def delete_by_url(self, repo_url: str) -> bool:
        try:
            with self._sessions.begin() as session:
                result = session.execute(
                    delete(AnalysisRow).where(AnalysisRow.repo_url == repo_url)
                )
                deleted = result.rowcount > 0
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete {repo_url}: {exc}") from exc

        logger.info(f"Invalidated {repo_url}: deleted={deleted}")
        return deleted


def create_store(database_url: str) -> SQLAlchemyAnalysisStore:
    """Engine + schema for ``database_url``; in-memory SQLite shares one connection."""
    kwargs: dict = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    store = SQLAlchemyAnalysisStore(create_engine(database_url, **kwargs))
    store.create_schema()
    return store
