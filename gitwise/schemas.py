from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Repository snapshot (transient) ---


class Commit(CamelModel):
    sha: str
    message: str
    author: str = "Unknown"
    avatar: str = ""
    date: Optional[str] = None


class Contributor(CamelModel):
    login: str
    avatar_url: str = ""
    contributions: int = 0


class FileEntry(CamelModel):
    name: str
    path: str
    type: str  # "file" or "dir"


class RepositorySnapshot(CamelModel):
    owner: str
    name: str
    description: str = "No description provided."
    stars: int = 0
    forks: int = 0
    languages: dict[str, int] = Field(default_factory=dict)
    commits: list[Commit] = Field(default_factory=list)
    contributors: list[Contributor] = Field(default_factory=list)
    file_tree: list[FileEntry] = Field(default_factory=list)

    def top_languages(self, limit: int) -> list[str]:
        ranked = sorted(self.languages.items(), key=lambda item: (-item[1], item[0]))
        return [name for name, _ in ranked[:limit]]


# --- LLM output (transient, unvalidated) ---


class RawAnalysisResult(BaseModel):
    """Whatever came back from the analysis LLM.

    ``payload`` is None when nothing usable could be extracted; ``error``
    then says why. Field values inside ``payload`` are untrusted.
    """

    payload: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return self.payload is not None


# --- Canonical persisted record ---


class RiskItem(CamelModel):
    issue: str
    severity: str = "Medium"
    file_reference: Optional[str] = None
    reason: str = ""


class ArchitectureAssessment(CamelModel):
    pattern: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class AnalysisRecord(CamelModel):
    id: Optional[int] = None
    repo_url: str

    # Snapshot fields
    owner: str
    repo_name: str
    description: str
    stars: int = 0
    forks: int = 0
    languages: dict[str, int] = Field(default_factory=dict)
    recent_commits: list[Commit] = Field(default_factory=list)
    contributors: list[Contributor] = Field(default_factory=list)
    file_tree: list[FileEntry] = Field(default_factory=list)

    # Normalized AI fields
    functional_summary: str
    target_audience_and_use: str
    tech_stack: list[str] = Field(default_factory=list)
    code_health_score: int = Field(ge=0, le=100)
    health_score_justification: Optional[str] = None
    improvements: list[str] = Field(default_factory=list)
    risk_assessment: Optional[list[RiskItem]] = None
    architecture_assessment: Optional[ArchitectureAssessment] = None
    analysis_degraded: bool = False

    last_fetched: datetime


# --- HTTP bodies ---


class AnalyzeRequest(CamelModel):
    repo_url: str
    force: bool = False


class RepoUrlRequest(CamelModel):
    repo_url: str


class ChatRequest(CamelModel):
    repo_url: str
    message: str
    model: Optional[str] = None


class AnalyzeResponse(CamelModel):
    message: str
    data: AnalysisRecord
    cached: bool
    force_refreshed: bool


class InvalidateResponse(BaseModel):
    status: str = "ok"
    deleted: bool


class ChatResponse(BaseModel):
    reply: str


class ErrorResponse(BaseModel):
    status: str
    message: str
