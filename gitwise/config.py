import os
import logging
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

GITHUB_API_BASE: str = "https://api.github.com"
GEMINI_OPENAI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, loaded once and handed to each component."""

    # --- API keys ---
    github_token: str = ""
    analysis_api_key: str = ""
    chat_api_key: str = ""

    # --- Models / endpoints ---
    analysis_base_url: str = GEMINI_OPENAI_BASE_URL
    analysis_model: str = "gemini-2.5-flash"
    chat_base_url: str = OPENROUTER_BASE_URL
    chat_model: str = "anthropic/claude-3.5-sonnet"
    client_url: str = "http://localhost:5173"
    chat_title: str = "GitWise AI Chat"

    # --- Storage ---
    database_url: str = "sqlite:///gitwise.db"

    # --- Server ---
    port: int = 8000
    log_level: str = "INFO"

    # --- Cache / normalization ---
    freshness_window: timedelta = timedelta(hours=24)
    improvement_count: int = 5

    # --- GitHub collection ---
    commit_page_size: int = 10
    contributor_page_size: int = 10

    # --- Analysis prompt bounds ---
    prompt_language_limit: int = 5
    prompt_path_limit: int = 20
    prompt_commit_limit: int = 10

    # --- Chat context bounds ---
    chat_path_limit: int = 50
    chat_contributor_limit: int = 15
    chat_commit_limit: int = 15

    # --- LLM parameters ---
    llm_temperature: float = 0.2
    llm_max_tokens: int = 2000
    chat_temperature: float = 0.7
    chat_max_tokens: int = 1000

    # --- Timeouts ---
    request_timeout: float = 30.0    # per HTTP request (seconds)
    analysis_timeout: float = 60.0   # analysis LLM call; below endpoint_timeout - request_timeout
    endpoint_timeout: float = 120.0  # analyze route deadline (seconds)


def load_settings() -> Settings:
    """Build Settings from the environment (and .env, if present)."""
    return Settings(
        github_token=os.getenv("GITHUB_TOKEN", ""),
        analysis_api_key=os.getenv("ANALYSIS_API_KEY", os.getenv("GEMINI_API_KEY", "")),
        chat_api_key=os.getenv("OPENROUTER_API_KEY", ""),
        analysis_base_url=os.getenv("ANALYSIS_BASE_URL", GEMINI_OPENAI_BASE_URL),
        analysis_model=os.getenv("ANALYSIS_MODEL", "gemini-2.5-flash"),
        chat_base_url=os.getenv("OPENROUTER_BASE_URL", OPENROUTER_BASE_URL),
        chat_model=os.getenv("OPENROUTER_MODEL", "anthropic/claude-3.5-sonnet"),
        client_url=os.getenv("CLIENT_URL", "http://localhost:5173"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///gitwise.db"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").upper(),
        freshness_window=timedelta(hours=float(os.getenv("FRESHNESS_HOURS", "24"))),
        improvement_count=int(os.getenv("IMPROVEMENT_COUNT", "5")),
        analysis_timeout=float(os.getenv("ANALYSIS_TIMEOUT", "60")),
        endpoint_timeout=float(os.getenv("ENDPOINT_TIMEOUT", "120")),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
