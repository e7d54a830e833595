"""Analysis pipeline: cache check, collection, LLM analysis, normalization, persistence.

Each call to ``Orchestrator.analyze`` is an independent run. There is no
locking per repository; concurrent runs for one URL both recompute and the
last write wins.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from gitwise.cache import CacheDecision, CacheGate
from gitwise.errors import NotFoundError, PersistenceError, UpstreamFetchError, ValidationError
from gitwise.github_client import canonical_repo_url
from gitwise.normalizer import ResponseNormalizer
from gitwise.schemas import AnalysisRecord, RawAnalysisResult, RepositorySnapshot
from gitwise.store import AnalysisRepository

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "Idle"
    CACHE_CHECK = "CacheCheck"
    SERVE_CACHED = "ServeCached"
    COLLECTING = "Collecting"
    COLLECTED = "Collected"
    REQUESTING = "Requesting"
    NORMALIZED = "Normalized"
    PERSISTING = "Persisting"
    DONE = "Done"
    FAILED_UPSTREAM = "FailedUpstream"
    FAILED_PERSISTENCE = "FailedPersistence"


class MetadataCollector(Protocol):
    async def collect(self, repo_url: str) -> RepositorySnapshot: ...


class AnalysisRequester(Protocol):
    async def request(self, snapshot: RepositorySnapshot) -> RawAnalysisResult: ...


@dataclass
class PipelineRun:
    repo_url: str
    state: PipelineState = PipelineState.IDLE
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])

    def advance(self, state: PipelineState) -> None:
        logger.debug(f"{self.repo_url}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


@dataclass
class AnalysisOutcome:
    record: AnalysisRecord
    cached: bool
    force_refreshed: bool
    run: PipelineRun


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_repo_url(repo_url: Any) -> str:
    if not isinstance(repo_url, str) or not repo_url.strip():
        raise ValidationError("Repository URL is required")
    return canonical_repo_url(repo_url)


class Orchestrator:
    def __init__(
        self,
        store: AnalysisRepository,
        cache_gate: CacheGate,
        collector: MetadataCollector,
        requester: AnalysisRequester,
        normalizer: ResponseNormalizer,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.cache_gate = cache_gate
        self.collector = collector
        self.requester = requester
        self.normalizer = normalizer
        self.clock = clock

    async def analyze(self, repo_url: Any, force: bool = False) -> AnalysisOutcome:
        url = validate_repo_url(repo_url)
        run = PipelineRun(repo_url=url)
        start_time = time.monotonic()

        run.advance(PipelineState.CACHE_CHECK)
        existing = self.store.find_by_url(url)
        decision = self.cache_gate.decide(existing, force, self.clock())
        if decision is CacheDecision.SERVE_CACHED:
            run.advance(PipelineState.SERVE_CACHED)
            logger.info(f"Cache hit for {url}")
            return AnalysisOutcome(record=existing, cached=True, force_refreshed=False, run=run)

        if force:
            logger.info(f"Forced refresh for {url}")
        elif existing is not None:
            logger.info(f"Cached record for {url} is stale or incomplete, refreshing")
        else:
            logger.info(f"No cached record for {url}, analyzing")

        run.advance(PipelineState.COLLECTING)
        try:
            snapshot = await self.collector.collect(url)
        except UpstreamFetchError as exc:
            run.advance(PipelineState.FAILED_UPSTREAM)
            logger.warning(f"Metadata collection failed for {url}: {exc.classification.value}")
            raise
        run.advance(PipelineState.COLLECTED)

        run.advance(PipelineState.REQUESTING)
        raw = await self.requester.request(snapshot)
        record = self.normalizer.normalize(raw, snapshot, url, self.clock())
        run.advance(PipelineState.NORMALIZED)

        run.advance(PipelineState.PERSISTING)
        try:
            saved = self.store.upsert(record)
        except PersistenceError:
            run.advance(PipelineState.FAILED_PERSISTENCE)
            logger.error(f"Persisting analysis for {url} failed", exc_info=True)
            raise
        run.advance(PipelineState.DONE)

        elapsed = time.monotonic() - start_time
        logger.info(
            f"Analysis complete for {url} in {elapsed:.1f}s "
            f"(score={saved.code_health_score}, degraded={saved.analysis_degraded})"
        )
        return AnalysisOutcome(record=saved, cached=False, force_refreshed=bool(force), run=run)

    def get_by_key(self, key: int) -> AnalysisRecord:
        record = self.store.find_by_key(key)
        if record is None:
            raise NotFoundError(f"No analysis with id {key}")
        return record

    def get_by_url(self, repo_url: Any) -> AnalysisRecord:
        url = validate_repo_url(repo_url)
        record = self.store.find_by_url(url)
        if record is None:
            raise NotFoundError(f"Repository {url} has not been analyzed")
        return record

    def invalidate(self, repo_url: Any) -> bool:
        return self.store.delete_by_url(validate_repo_url(repo_url))
