import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gitwise.cache import CacheGate
from gitwise.chat import ChatContextCompiler, create_chat_client
from gitwise.config import Settings, configure_logging, load_settings
from gitwise.errors import (
    AuthError,
    ChatError,
    ChatTimeoutError,
    ConfigurationError,
    FetchClassification,
    GitWiseError,
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
    UpstreamFetchError,
    ValidationError,
)
from gitwise.github_client import GitHubCollector, create_client
from gitwise.llm_client import AnalysisRequester, create_analysis_client
from gitwise.normalizer import ResponseNormalizer
from gitwise.orchestrator import Orchestrator
from gitwise.schemas import (
    AnalysisRecord,
    AnalyzeRequest,
    AnalyzeResponse,
    ChatRequest,
    ChatResponse,
    InvalidateResponse,
    RepoUrlRequest,
)
from gitwise.store import create_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    orchestrator: Orchestrator
    chat: ChatContextCompiler


def build_services(settings: Settings, github_client: httpx.AsyncClient) -> Services:
    """Wire the pipeline components for one process."""
    store = create_store(settings.database_url)
    orchestrator = Orchestrator(
        store=store,
        cache_gate=CacheGate(settings.freshness_window),
        collector=GitHubCollector(settings, github_client),
        requester=AnalysisRequester(settings, create_analysis_client(settings)),
        normalizer=ResponseNormalizer(settings),
    )
    chat = ChatContextCompiler(settings, store, create_chat_client(settings))
    return Services(orchestrator=orchestrator, chat=chat)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, **extra},
    )


def _upstream_status(classification: FetchClassification) -> int:
    if classification is FetchClassification.NOT_FOUND:
        return 404
    if classification is FetchClassification.RATE_LIMITED:
        return 429
    return 502


def _services(request: Request) -> Services:
    return request.app.state.services


router = APIRouter(prefix="/api/repo")


async def _analyze(request: Request, repo_url: str, force: bool) -> AnalyzeResponse:
    settings: Settings = request.app.state.settings
    orchestrator = _services(request).orchestrator
    logger.info(f"Analyze request: {repo_url} (force={force})")
    try:
        outcome = await asyncio.wait_for(
            orchestrator.analyze(repo_url, force=force), timeout=settings.endpoint_timeout
        )
    except asyncio.TimeoutError:
        logger.warning(f"Request timed out after {settings.endpoint_timeout}s: {repo_url}")
        raise HTTPException(
            status_code=504,
            detail={"status": "error", "message": "Request timed out"},
        )

    message = (
        "Data retrieved from cache" if outcome.cached else "Repository analyzed successfully"
    )
    return AnalyzeResponse(
        message=message,
        data=outcome.record,
        cached=outcome.cached,
        force_refreshed=outcome.force_refreshed,
    )


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(body: AnalyzeRequest, request: Request) -> AnalyzeResponse:
    return await _analyze(request, body.repo_url, body.force)


@router.post("/refresh", response_model=AnalyzeResponse)
async def refresh(body: RepoUrlRequest, request: Request) -> AnalyzeResponse:
    return await _analyze(request, body.repo_url, True)


@router.post("/invalidate", response_model=InvalidateResponse)
def invalidate(body: RepoUrlRequest, request: Request) -> InvalidateResponse:
    deleted = _services(request).orchestrator.invalidate(body.repo_url)
    return InvalidateResponse(deleted=deleted)


@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, request: Request) -> ChatResponse:
    reply = await _services(request).chat.chat(body.repo_url, body.message, body.model)
    return ChatResponse(reply=reply)


@router.get("/url/{repo_url:path}", response_model=AnalysisRecord)
def get_by_url(repo_url: str, request: Request) -> AnalysisRecord:
    return _services(request).orchestrator.get_by_url(repo_url)


@router.get("/{repo_id}", response_model=AnalysisRecord)
def get_by_id(repo_id: int, request: Request) -> AnalysisRecord:
    return _services(request).orchestrator.get_by_key(repo_id)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail
        if isinstance(detail, dict) and "status" in detail and "message" in detail:
            content = detail
        else:
            content = {"status": "error", "message": str(detail)}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        msg = "; ".join(f"{'.'.join(str(l) for l in e['loc'])}: {e['msg']}" for e in errors)
        return _error(422, msg)

    @app.exception_handler(GitWiseError)
    async def gitwise_exception_handler(request: Request, exc: GitWiseError) -> JSONResponse:
        if isinstance(exc, ValidationError):
            return _error(400, str(exc))
        if isinstance(exc, NotFoundError):
            return _error(404, str(exc))
        if isinstance(exc, UpstreamFetchError):
            return _error(
                _upstream_status(exc.classification),
                f"GitHub API error: {exc}",
                classification=exc.classification.value,
            )
        if isinstance(exc, QuotaExceededError):
            return _error(429, str(exc))
        if isinstance(exc, ChatTimeoutError):
            return _error(504, str(exc))
        if isinstance(exc, (AuthError, ChatError)):
            return _error(502, str(exc))
        if isinstance(exc, PersistenceError):
            logger.error(f"Persistence failure: {exc}", exc_info=exc)
            return _error(500, "Internal server error")
        if isinstance(exc, ConfigurationError):
            logger.error(f"Configuration error: {exc}")
            return _error(500, "Internal server error")
        logger.error(f"Service error: {exc}", exc_info=exc)
        return _error(500, str(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _error(500, "Internal server error")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("GitWise analyzer starting up")
        async with AsyncExitStack() as stack:
            if services is None:
                github_client = await stack.enter_async_context(create_client(settings))
                app.state.services = build_services(settings, github_client)
            yield
        logger.info("GitWise analyzer shutting down")

    app = FastAPI(
        title="GitWise Repository Analyzer",
        description="Analyzes GitHub repositories with LLM insights and answers follow-up questions",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    if services is not None:
        app.state.services = services
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "ok"}

    app.include_router(router)
    return app


_settings = load_settings()
configure_logging(_settings.log_level)
app = create_app(_settings)
