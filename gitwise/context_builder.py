import logging

from gitwise.config import Settings
from gitwise.file_scorer import rank_paths
from gitwise.prompts import CHAT_SYSTEM_TEMPLATE
from gitwise.schemas import AnalysisRecord, RepositorySnapshot

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 3


def estimate_tokens(text: str) -> int:
    """Conservative token count: 3 chars per token."""
    return len(text) // CHARS_PER_TOKEN


def _format_languages(languages: dict[str, int], names: list[str]) -> str:
    total = sum(languages.values()) or 1
    return ", ".join(f"{name} ({languages[name] * 100 / total:.1f}%)" for name in names)


def build_analysis_context(snapshot: RepositorySnapshot, settings: Settings) -> str:
    """Size-bounded description of a snapshot for the analysis prompt."""
    languages = snapshot.top_languages(settings.prompt_language_limit)
    paths = rank_paths(snapshot.file_tree, limit=settings.prompt_path_limit)
    commits = snapshot.commits[: settings.prompt_commit_limit]

    lines = [
        f"Repository: {snapshot.owner}/{snapshot.name}",
        f"Description: {snapshot.description}",
        f"Stars: {snapshot.stars}, Forks: {snapshot.forks}",
        f"Languages: {_format_languages(snapshot.languages, languages) or 'Unknown'}",
        f"Contributors: {len(snapshot.contributors)}",
        "",
        f"## Root Files and Directories ({len(paths)} of {len(snapshot.file_tree)})",
    ]
    types = {entry.path: entry.type for entry in snapshot.file_tree}
    lines.extend(f"- {types[path]}: {path}" for path in paths)
    if not paths:
        lines.append("- (no files listed)")

    lines.append("")
    lines.append(f"## Recent Commits ({len(commits)})")
    lines.extend(f"- [{c.sha}] {c.message} (by {c.author})" for c in commits)
    if not commits:
        lines.append("- (no commits found)")

    context = "\n".join(lines)
    logger.debug(f"Built analysis context: ~{estimate_tokens(context)} tokens")
    return context


def build_chat_context(record: AnalysisRecord, settings: Settings) -> str:
    """Bounded system prompt describing an analyzed repository."""
    paths = [entry.path for entry in record.file_tree[: settings.chat_path_limit]]
    contributors = sorted(record.contributors, key=lambda c: -c.contributions)
    contributors = contributors[: settings.chat_contributor_limit]
    commits = record.recent_commits[: settings.chat_commit_limit]

    contributor_stats = "\n".join(
        f"{i}. {c.login}: {c.contributions} commits" for i, c in enumerate(contributors, 1)
    )
    recent = "\n".join(f'- [{c.sha[:7]}] "{c.message}" by {c.author}' for c in commits)
    risks = "\n".join(
        f"- [{r.severity}] {r.issue} (File: {r.file_reference or 'N/A'})"
        for r in record.risk_assessment or []
    )

    context = CHAT_SYSTEM_TEMPLATE.format(
        owner=record.owner,
        repo_name=record.repo_name,
        description=record.description or "No description provided",
        functional_summary=record.functional_summary,
        target_audience_and_use=record.target_audience_and_use,
        tech_stack=", ".join(record.tech_stack) or "Unknown",
        code_health_score=record.code_health_score,
        path_limit=settings.chat_path_limit,
        file_structure="\n".join(f"- {p}" for p in paths) or "No file structure available.",
        contributor_stats=contributor_stats or "No contributor data available.",
        recent_commits=recent or "No recent commits found.",
        risks=risks or "No specific risks identified.",
        improvements="\n".join(record.improvements) or "No improvements listed.",
    )
    logger.debug(f"Built chat context: ~{estimate_tokens(context)} tokens")
    return context
