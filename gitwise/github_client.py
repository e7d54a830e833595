import asyncio
import logging
import re
from typing import Any, AsyncGenerator
from contextlib import asynccontextmanager

import httpx

from gitwise.config import GITHUB_API_BASE, Settings
from gitwise.errors import FetchClassification, InvalidUrlError, UpstreamFetchError
from gitwise.schemas import Commit, Contributor, FileEntry, RepositorySnapshot

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "https://github.com/identicons/default.png"

_GITHUB_URL_RE = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/"
    r"(?P<owner>[A-Za-z0-9](?:[A-Za-z0-9-]{0,38}))/"
    r"(?P<name>[A-Za-z0-9._-]+?)"
    r"(?:\.git)?(?:/[^?#]*)?(?:[?#].*)?$"
)


def parse_github_url(url: str) -> tuple[str, str]:
    """Extract (owner, repo) from a github.com repository URL."""
    if not isinstance(url, str):
        raise InvalidUrlError("Repository URL must be a string")

    match = _GITHUB_URL_RE.match(url.strip())
    if not match:
        raise InvalidUrlError(
            f"Invalid GitHub URL format: {url!r}. Use: https://github.com/owner/repo"
        )

    owner, name = match.group("owner"), match.group("name")
    if name in {".", ".."}:
        raise InvalidUrlError(f"Invalid repository name in URL: {url!r}")
    return owner, name


def canonical_repo_url(url: str) -> str:
    """Storage key for a repository. GitHub owner and repo names are case-insensitive."""
    owner, name = parse_github_url(url)
    return f"https://github.com/{owner.lower()}/{name.lower()}"


def classify_response(response: httpx.Response) -> FetchClassification:
    """Map a failed GitHub response onto the fetch-error classification."""
    status = response.status_code
    if status == 404:
        return FetchClassification.NOT_FOUND
    if status == 429:
        return FetchClassification.RATE_LIMITED
    if status == 403:
        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining == "0" or "rate limit" in response.text.lower():
            return FetchClassification.RATE_LIMITED
        return FetchClassification.AUTH_FAILED
    if status == 401:
        return FetchClassification.AUTH_FAILED
    return FetchClassification.UPSTREAM_OTHER


def _build_headers(token: str) -> dict[str, str]:
    headers = {
        "User-Agent": "gitwise-analyzer/1.0",
        "Accept": "application/vnd.github+json",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


@asynccontextmanager
async def create_client(settings: Settings) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create an httpx async client configured for the GitHub API."""
    async with httpx.AsyncClient(
        base_url=GITHUB_API_BASE,
        headers=_build_headers(settings.github_token),
        timeout=settings.request_timeout,
    ) as client:
        yield client


class GitHubCollector:
    """Collects a RepositorySnapshot from the GitHub REST API.

    All sub-fetches run concurrently and are joined all-or-nothing: the
    first failure aborts the collection with an UpstreamFetchError.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self._settings = settings
        self._client = client

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        logger.debug(f"GET {url} params={params}")
        try:
            response = await self._client.get(url, params=params)
        except httpx.RequestError as exc:
            raise UpstreamFetchError(
                FetchClassification.NETWORK_ERROR,
                f"Network error fetching {url}: {exc}",
            ) from exc

        if response.status_code == 204:
            return []
        if response.status_code != 200:
            classification = classify_response(response)
            raise UpstreamFetchError(
                classification,
                f"GitHub returned {response.status_code} for {url} ({classification.value})",
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFetchError(
                FetchClassification.UPSTREAM_OTHER,
                f"GitHub returned a non-JSON body for {url}",
            ) from exc

    async def get_repo_info(self, owner: str, repo: str) -> dict:
        return await self._get(f"/repos/{owner}/{repo}")

    async def get_commits(self, owner: str, repo: str) -> list[Commit]:
        data = await self._get(
            f"/repos/{owner}/{repo}/commits",
            params={"per_page": self._settings.commit_page_size},
        )
        commits = []
        for item in data[: self._settings.commit_page_size]:
            detail = item.get("commit") or {}
            author = detail.get("author") or {}
            account = item.get("author") or {}
            message = (detail.get("message") or "").split("\n")[0]
            commits.append(
                Commit(
                    sha=(item.get("sha") or "")[:7],
                    message=message,
                    author=author.get("name") or "Unknown",
                    avatar=account.get("avatar_url") or DEFAULT_AVATAR,
                    date=author.get("date"),
                )
            )
        return commits

    async def get_contributors(self, owner: str, repo: str) -> list[Contributor]:
        data = await self._get(
            f"/repos/{owner}/{repo}/contributors",
            params={"per_page": self._settings.contributor_page_size},
        )
        return [
            Contributor(
                login=item.get("login") or "unknown",
                avatar_url=item.get("avatar_url") or DEFAULT_AVATAR,
                contributions=item.get("contributions") or 0,
            )
            for item in data[: self._settings.contributor_page_size]
        ]

    async def get_languages(self, owner: str, repo: str) -> dict[str, int]:
        data = await self._get(f"/repos/{owner}/{repo}/languages")
        return {str(name): int(size) for name, size in data.items()}

    async def get_root_listing(self, owner: str, repo: str) -> list[FileEntry]:
        data = await self._get(f"/repos/{owner}/{repo}/contents")
        # A single-file response is a dict; only directory listings are useful here.
        if not isinstance(data, list):
            return []
        return [
            FileEntry(name=item["name"], path=item["path"], type=item["type"])
            for item in data
            if item.get("type") in ("file", "dir")
        ]

    async def collect(self, repo_url: str) -> RepositorySnapshot:
        owner, repo = parse_github_url(repo_url)
        logger.info(f"Collecting metadata for {owner}/{repo}")

        tasks = [
            asyncio.ensure_future(fetch)
            for fetch in (
                self.get_repo_info(owner, repo),
                self.get_commits(owner, repo),
                self.get_contributors(owner, repo),
                self.get_languages(owner, repo),
                self.get_root_listing(owner, repo),
            )
        ]
        try:
            info, commits, contributors, languages, tree = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        logger.info(
            f"Collected {owner}/{repo}: {len(commits)} commits, "
            f"{len(contributors)} contributors, {len(tree)} root entries"
        )
        return RepositorySnapshot(
            owner=owner,
            name=repo,
            description=info.get("description") or "No description provided.",
            stars=info.get("stargazers_count") or 0,
            forks=info.get("forks_count") or 0,
            languages=languages,
            commits=commits,
            contributors=contributors,
            file_tree=tree,
        )
