"""
Remote API gateway for GitHub's Git Data and Repositories APIs.

This module provides the GitHubGateway class, the single shared client that
implements the primitive blob, tree, commit, ref, branch and merge
operations. Every call takes an explicit CredentialContext; the gateway
itself holds no account state, only the HTTP session.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

import aiohttp
from aiohttp import ClientTimeout

from ..models.config import CredentialContext
from ..models.git import (
    Branch,
    BranchProtection,
    Commit,
    CommitAuthor,
    MergeOutcome,
    Tree,
    TreeEntry,
)
from ..utils.error_handling import (
    BranchNotFoundError,
    CommitNotFoundError,
    ConflictError,
    InternalError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    map_api_error,
)
from ..utils.logging import get_logger

logger = get_logger("gateway")

API_VERSION = "2022-11-28"
PAGE_SIZE = 100


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _parse_identity(data: Optional[Dict[str, Any]]) -> Optional[CommitAuthor]:
    if not data:
        return None
    return CommitAuthor(
        name=data.get("name", ""),
        email=data.get("email", ""),
        date=_parse_timestamp(data.get("date")),
    )


def _parse_commit(body: Dict[str, Any]) -> Commit:
    """Build a Commit from a repository commit payload."""
    detail = body.get("commit", {})
    author = _parse_identity(detail.get("author"))
    return Commit(
        sha=body["sha"],
        message=detail.get("message", ""),
        tree_sha=detail.get("tree", {}).get("sha", ""),
        parents=[parent["sha"] for parent in body.get("parents", [])],
        author=author,
        committer=_parse_identity(detail.get("committer")),
        timestamp=author.date if author else None,
        files_changed=[f["filename"] for f in body.get("files") or []],
    )


def _parse_branch(body: Dict[str, Any], ctx: CredentialContext) -> Branch:
    return Branch(
        name=body["name"],
        head_sha=body["commit"]["sha"],
        protected=bool(body.get("protected", False)),
        default_branch=body["name"] == ctx.default_branch,
    )


def _ref_path(name: str) -> str:
    return quote(name, safe="/")


class GitHubGateway:
    """
    Async client for the remote repository primitives.

    Use as an async context manager, or call close() when done. A session is
    opened lazily on first use when the gateway is not entered explicitly.
    """

    def __init__(
        self,
        timeout: int = 30,
        session: Optional[aiohttp.ClientSession] = None,
        user_agent: str = "project-hub-sync/0.1",
    ):
        """
        Initialize the gateway.

        Args:
            timeout: Total request timeout in seconds
            session: Pre-built client session (mainly for tests)
            user_agent: User-Agent header sent with every request
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        """Close the underlying session if the gateway opened it."""
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None

    def _headers(self, ctx: CredentialContext) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {ctx.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    async def _request(
        self,
        ctx: CredentialContext,
        method: str,
        path: str,
        operation: str,
        repo: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Any]:
        """
        Issue one request and map failures onto the error taxonomy.

        Args:
            ctx: Credentials to authenticate with
            method: HTTP method
            path: API path, appended to ctx.api_url
            operation: Gateway operation name, attached to raised errors
            repo: Repository name, attached to raised errors
            payload: JSON request body
            params: Query string parameters

        Returns:
            Tuple of (status, decoded JSON body or None)
        """
        session = self._ensure_session()
        url = f"{ctx.api_url.rstrip('/')}{path}"
        logger.debug(
            f"{method} {path}", extra={"operation": operation, "repo": repo}
        )

        try:
            async with session.request(
                method,
                url,
                headers=self._headers(ctx),
                json=payload,
                params=params,
            ) as response:
                status = response.status
                text = await response.text()
                headers = response.headers
        except asyncio.TimeoutError as e:
            raise InternalError(
                "Request timed out", operation=operation, repo=repo
            ) from e
        except aiohttp.ClientError as e:
            raise InternalError(
                f"Transport error: {e}", operation=operation, repo=repo
            ) from e

        try:
            body = json.loads(text) if text else None
        except ValueError as e:
            if status < 400:
                raise InternalError(
                    "Malformed response body", operation=operation, repo=repo, status=status
                ) from e
            body = None

        if status < 400:
            return status, body

        message = body.get("message", "") if isinstance(body, dict) else text
        logger.debug(
            f"{method} {path} failed with {status}",
            extra={"operation": operation, "repo": repo, "error": message},
        )

        reset_at = None
        reset_header = headers.get("X-RateLimit-Reset")
        if reset_header and reset_header.isdigit():
            reset_at = datetime.fromtimestamp(int(reset_header), tz=timezone.utc)

        if status in (403, 429) and headers.get("X-RateLimit-Remaining") == "0":
            raise RateLimitError(
                message or "API rate limit exceeded",
                operation=operation,
                repo=repo,
                status=status,
                reset_at=reset_at,
            )

        raise map_api_error(status, message, operation, repo, reset_at=reset_at)

    # -- Blobs and trees ------------------------------------------------------

    async def create_blob(
        self, ctx: CredentialContext, repo: str, content: str, encoding: str = "utf-8"
    ) -> str:
        _, body = await self._request(
            ctx,
            "POST",
            f"{ctx.repo_path(repo)}/git/blobs",
            "create_blob",
            repo,
            payload={"content": content, "encoding": encoding},
        )
        return body["sha"]

    async def get_tree(
        self, ctx: CredentialContext, repo: str, sha: str, recursive: bool = True
    ) -> Tree:
        params = {"recursive": "1"} if recursive else None
        _, body = await self._request(
            ctx,
            "GET",
            f"{ctx.repo_path(repo)}/git/trees/{sha}",
            "get_tree",
            repo,
            params=params,
        )
        entries = [
            TreeEntry(
                path=item["path"],
                mode=item["mode"],
                type=item["type"],
                sha=item.get("sha"),
            )
            for item in body.get("tree", [])
        ]
        return Tree(sha=body["sha"], entries=entries, truncated=body.get("truncated", False))

    async def create_tree(
        self,
        ctx: CredentialContext,
        repo: str,
        base_sha: str,
        entries: Sequence[TreeEntry],
    ) -> str:
        _, body = await self._request(
            ctx,
            "POST",
            f"{ctx.repo_path(repo)}/git/trees",
            "create_tree",
            repo,
            payload={
                "base_tree": base_sha,
                "tree": [entry.to_payload() for entry in entries],
            },
        )
        return body["sha"]

    # -- Commits --------------------------------------------------------------

    async def create_commit(
        self,
        ctx: CredentialContext,
        repo: str,
        message: str,
        tree_sha: str,
        parents: List[str],
        author: Optional[CommitAuthor] = None,
        committer: Optional[CommitAuthor] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "message": message,
            "tree": tree_sha,
            "parents": list(parents),
        }
        if author is not None:
            payload["author"] = author.to_payload()
        if committer is not None:
            payload["committer"] = committer.to_payload()

        _, body = await self._request(
            ctx,
            "POST",
            f"{ctx.repo_path(repo)}/git/commits",
            "create_commit",
            repo,
            payload=payload,
        )
        return body["sha"]

    async def get_commit(self, ctx: CredentialContext, repo: str, sha: str) -> Commit:
        try:
            _, body = await self._request(
                ctx, "GET", f"{ctx.repo_path(repo)}/commits/{sha}", "get_commit", repo
            )
        except NotFoundError as e:
            raise CommitNotFoundError(repo, sha) from e
        except ValidationError as e:
            # Unknown but well-formed shas come back as 422 "No commit found"
            if "no commit found" in e.message.lower():
                raise CommitNotFoundError(repo, sha) from e
            raise
        return _parse_commit(body)

    async def list_commits(
        self,
        ctx: CredentialContext,
        repo: str,
        branch: Optional[str] = None,
        path: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        author: Optional[str] = None,
        limit: int = 30,
    ) -> List[Commit]:
        params: Dict[str, Any] = {
            "sha": branch or ctx.default_branch,
            "per_page": min(limit, PAGE_SIZE),
        }
        if path:
            params["path"] = path
        if since:
            params["since"] = since.isoformat()
        if until:
            params["until"] = until.isoformat()
        if author:
            params["author"] = author

        _, body = await self._request(
            ctx,
            "GET",
            f"{ctx.repo_path(repo)}/commits",
            "list_commits",
            repo,
            params=params,
        )
        return [_parse_commit(item) for item in (body or [])[:limit]]

    # -- Refs -----------------------------------------------------------------

    async def get_ref(self, ctx: CredentialContext, repo: str, branch: str) -> str:
        try:
            _, body = await self._request(
                ctx,
                "GET",
                f"{ctx.repo_path(repo)}/git/ref/heads/{_ref_path(branch)}",
                "get_ref",
                repo,
            )
        except NotFoundError as e:
            raise BranchNotFoundError(repo, branch, operation="get_ref") from e
        return body["object"]["sha"]

    async def create_ref(
        self, ctx: CredentialContext, repo: str, name: str, sha: str
    ) -> str:
        _, body = await self._request(
            ctx,
            "POST",
            f"{ctx.repo_path(repo)}/git/refs",
            "create_ref",
            repo,
            payload={"ref": f"refs/heads/{name}", "sha": sha},
        )
        return body["object"]["sha"]

    async def update_ref(
        self,
        ctx: CredentialContext,
        repo: str,
        name: str,
        sha: str,
        force: bool = False,
    ) -> str:
        _, body = await self._request(
            ctx,
            "PATCH",
            f"{ctx.repo_path(repo)}/git/refs/heads/{_ref_path(name)}",
            "update_ref",
            repo,
            payload={"sha": sha, "force": force},
        )
        return body["object"]["sha"]

    async def delete_ref(self, ctx: CredentialContext, repo: str, name: str) -> None:
        try:
            await self._request(
                ctx,
                "DELETE",
                f"{ctx.repo_path(repo)}/git/refs/heads/{_ref_path(name)}",
                "delete_ref",
                repo,
            )
        except NotFoundError as e:
            raise BranchNotFoundError(repo, name, operation="delete_ref") from e
        except ValidationError as e:
            if "does not exist" in e.message.lower():
                raise BranchNotFoundError(repo, name, operation="delete_ref") from e
            raise

    # -- Branches and merges --------------------------------------------------

    async def list_branches(self, ctx: CredentialContext, repo: str) -> List[Branch]:
        branches: List[Branch] = []
        page = 1
        while True:
            _, body = await self._request(
                ctx,
                "GET",
                f"{ctx.repo_path(repo)}/branches",
                "list_branches",
                repo,
                params={"per_page": PAGE_SIZE, "page": page},
            )
            items: Iterable[Dict[str, Any]] = body or []
            branches.extend(_parse_branch(item, ctx) for item in items)
            if len(body or []) < PAGE_SIZE:
                return branches
            page += 1

    async def get_branch(self, ctx: CredentialContext, repo: str, name: str) -> Branch:
        try:
            _, body = await self._request(
                ctx,
                "GET",
                f"{ctx.repo_path(repo)}/branches/{_ref_path(name)}",
                "get_branch",
                repo,
            )
        except NotFoundError as e:
            raise BranchNotFoundError(repo, name) from e
        return _parse_branch(body, ctx)

    async def update_branch_protection(
        self,
        ctx: CredentialContext,
        repo: str,
        branch: str,
        protection: BranchProtection,
    ) -> None:
        await self._request(
            ctx,
            "PUT",
            f"{ctx.repo_path(repo)}/branches/{_ref_path(branch)}/protection",
            "update_branch_protection",
            repo,
            payload=protection.to_payload(),
        )

    async def merge(
        self,
        ctx: CredentialContext,
        repo: str,
        base: str,
        head: str,
        message: Optional[str] = None,
    ) -> MergeOutcome:
        payload = {"base": base, "head": head}
        if message:
            payload["commit_message"] = message

        try:
            status, body = await self._request(
                ctx,
                "POST",
                f"{ctx.repo_path(repo)}/merges",
                "merge",
                repo,
                payload=payload,
            )
        except ConflictError as e:
            if e.status != 409:
                raise
            return MergeOutcome(conflicted=True, message=e.message or "Merge conflict")

        if status == 204 or not body:
            return MergeOutcome(already_merged=True, message="Already up to date")

        return MergeOutcome(
            sha=body["sha"],
            message=body.get("commit", {}).get("message", message or ""),
            files_changed=[f["filename"] for f in body.get("files") or []],
        )
