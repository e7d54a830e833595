"""Coerces raw LLM analysis output into a complete AnalysisRecord.

Every field is normalized independently, so a partially valid response
keeps whatever it got right. Nothing in here raises on bad input: missing
or malformed values fall back to deterministic defaults built from the
repository snapshot.
"""

import logging
import math
from datetime import datetime
from typing import Any, Optional

from gitwise.config import Settings
from gitwise.file_scorer import rank_paths
from gitwise.schemas import (
    AnalysisRecord,
    ArchitectureAssessment,
    RawAnalysisResult,
    RepositorySnapshot,
    RiskItem,
)

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50
DEFAULT_DESCRIPTION = "No description provided."
SEVERITIES = ("Low", "Medium", "High", "Critical")
_NULLISH = {"", "null", "none", "n/a", "na", "-"}

FUNCTIONAL_TEMPLATE = (
    "This repository hosts {subject}. It is technically implemented using {stack}. "
    "Its structure, contributors and recent commit history are summarized below."
)
AUDIENCE_TEMPLATE = (
    "Intended for developers and teams working with {stack} who want to use, "
    "evaluate or contribute to {full_name}."
)

PATH_FILLERS = (
    "Add automated tests that cover the behaviour implemented in {path}.",
    "Document the purpose and usage of {path} in the README.",
    "Review {path} for error handling and input validation gaps.",
    "Add linting or static type checks for {path} to the CI pipeline.",
    "Split large responsibilities in {path} into smaller, focused modules.",
)
GENERIC_FILLERS = (
    "Add automated tests and run them in continuous integration.",
    "Expand the README with setup, usage and contribution instructions.",
    "Review error handling and input validation across the codebase.",
    "Introduce linting and static analysis to keep code style consistent.",
    "Add a CONTRIBUTING guide and issue templates for new contributors.",
)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return None if text.lower() in _NULLISH else text


def _clamp_score(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(0, min(100, int(round(value))))


def flatten_score(value: Any) -> tuple[int, Optional[str]]:
    """(score, justification) from a number, a {score, justification} object, or junk."""
    if isinstance(value, dict):
        inner = value.get("score")
        if isinstance(inner, str):
            try:
                inner = float(inner.strip().rstrip("%"))
            except ValueError:
                inner = None
        score = _clamp_score(inner)
        justification = _optional_text(value.get("justification"))
        return (DEFAULT_SCORE if score is None else score), justification

    score = _clamp_score(value)
    return (DEFAULT_SCORE if score is None else score), None


def format_improvement(item: dict) -> str:
    title = _text(item.get("title"))
    description = _text(item.get("description"))
    text = f"{title}: {description}" if title and description else title or description
    if not text:
        return ""
    reference = _optional_text(item.get("fileReference"))
    if reference:
        text = f"{text} (File: {reference})"
    return text


def normalize_improvements(value: Any) -> list[str]:
    """Display strings from a list of strings and/or improvement objects."""
    if not isinstance(value, list):
        return []
    improvements = []
    for item in value:
        if isinstance(item, str):
            if item.strip():
                improvements.append(item)
        elif isinstance(item, dict):
            text = format_improvement(item)
            if text:
                improvements.append(text)
    return improvements


def filler_improvements(snapshot: RepositorySnapshot) -> list[str]:
    """Deterministic suggestions, citing real paths from the snapshot when it has any."""
    paths = rank_paths(snapshot.file_tree, files_only=True) or rank_paths(snapshot.file_tree)
    if not paths:
        return list(GENERIC_FILLERS)
    return [
        template.format(path=paths[i % len(paths)]) for i, template in enumerate(PATH_FILLERS)
    ] + list(GENERIC_FILLERS)


def pad_improvements(
    improvements: list[str], snapshot: RepositorySnapshot, count: int
) -> list[str]:
    """Truncate or pad to exactly ``count`` entries."""
    result = list(improvements[:count])
    for filler in filler_improvements(snapshot):
        if len(result) >= count:
            break
        if filler not in result:
            result.append(filler)
    extra = 1
    while len(result) < count:
        result.append(f"Review open issues and recent commits for follow-up work (#{extra}).")
        extra += 1
    return result


def normalize_tech_stack(value: Any, snapshot: RepositorySnapshot) -> list[str]:
    stack: list[str] = []
    if isinstance(value, list):
        for item in value:
            name = _text(item.get("name")) if isinstance(item, dict) else _text(item)
            if name and name not in stack:
                stack.append(name)
    elif isinstance(value, str):
        stack = [part.strip() for part in value.split(",") if part.strip()]
    return stack or snapshot.top_languages(5)


def _normalize_severity(value: Any) -> str:
    text = _text(value).capitalize()
    return text if text in SEVERITIES else "Medium"


def normalize_risks(value: Any) -> Optional[list[RiskItem]]:
    if not isinstance(value, list):
        return None
    risks = []
    for item in value:
        if isinstance(item, str) and item.strip():
            risks.append(RiskItem(issue=item.strip()))
        elif isinstance(item, dict) and _text(item.get("issue")):
            risks.append(
                RiskItem(
                    issue=_text(item.get("issue")),
                    severity=_normalize_severity(item.get("severity")),
                    file_reference=_optional_text(item.get("fileReference")),
                    reason=_text(item.get("reason")),
                )
            )
    return risks


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def normalize_architecture(value: Any) -> Optional[ArchitectureAssessment]:
    if isinstance(value, str) and value.strip():
        return ArchitectureAssessment(pattern=value.strip())
    if not isinstance(value, dict):
        return None
    assessment = ArchitectureAssessment(
        pattern=_text(value.get("pattern")),
        strengths=_string_list(value.get("strengths")),
        weaknesses=_string_list(value.get("weaknesses")),
    )
    if not (assessment.pattern or assessment.strengths or assessment.weaknesses):
        return None
    return assessment


def _subject(snapshot: RepositorySnapshot) -> str:
    description = snapshot.description.strip()
    if not description or description == DEFAULT_DESCRIPTION:
        return f"the {snapshot.owner}/{snapshot.name} project"
    return description.rstrip(". ")


def synthesize_functional_summary(snapshot: RepositorySnapshot, stack: list[str]) -> str:
    return FUNCTIONAL_TEMPLATE.format(
        subject=_subject(snapshot),
        stack=", ".join(stack) or "an undetermined technology stack",
    )


def synthesize_target_audience(snapshot: RepositorySnapshot, stack: list[str]) -> str:
    return AUDIENCE_TEMPLATE.format(
        stack=", ".join(stack) or "general-purpose tooling",
        full_name=f"{snapshot.owner}/{snapshot.name}",
    )


class ResponseNormalizer:
    def __init__(self, settings: Settings):
        self._settings = settings

    def normalize(
        self,
        raw: RawAnalysisResult,
        snapshot: RepositorySnapshot,
        repo_url: str,
        fetched_at: datetime,
    ) -> AnalysisRecord:
        payload = raw.payload or {}
        if not raw.usable:
            logger.warning(
                f"Analysis degraded for {snapshot.owner}/{snapshot.name}: {raw.error}"
            )

        stack = normalize_tech_stack(payload.get("techStack"), snapshot)
        score, justification = flatten_score(payload.get("codeHealthScore"))
        improvements = pad_improvements(
            normalize_improvements(payload.get("improvements")),
            snapshot,
            self._settings.improvement_count,
        )

        functional = _text(payload.get("functionalSummary")) or _text(payload.get("summary"))
        if not functional:
            functional = synthesize_functional_summary(snapshot, stack)
        audience = _text(payload.get("targetAudienceAndUse"))
        if not audience:
            audience = synthesize_target_audience(snapshot, stack)

        return AnalysisRecord(
            repo_url=repo_url,
            owner=snapshot.owner,
            repo_name=snapshot.name,
            description=snapshot.description,
            stars=snapshot.stars,
            forks=snapshot.forks,
            languages=snapshot.languages,
            recent_commits=snapshot.commits,
            contributors=snapshot.contributors,
            file_tree=snapshot.file_tree,
            functional_summary=functional,
            target_audience_and_use=audience,
            tech_stack=stack,
            code_health_score=score,
            health_score_justification=justification,
            improvements=improvements,
            risk_assessment=normalize_risks(payload.get("riskAssessment")),
            architecture_assessment=normalize_architecture(payload.get("architectureAssessment")),
            analysis_degraded=not raw.usable,
            last_fetched=fetched_at,
        )
