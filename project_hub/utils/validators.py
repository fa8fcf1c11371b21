"""
Identifier validation for remote repository operations.

Every check here runs before a request is issued, so a malformed owner,
repository, branch, sha or path never reaches the remote API.
"""

import re

from .error_handling import ValidationError

_OWNER_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")
_REPO_RE = re.compile(r"^[A-Za-z0-9._-]{1,100}$")
_SHA_RE = re.compile(r"^[0-9a-fA-F]{7,40}$")

# Characters git refuses in ref names (see git-check-ref-format)
_FORBIDDEN_REF_CHARS = set(" ~^:?*[\\\x7f")


def validate_owner(owner: str) -> str:
    """Validate an account or organisation name."""
    if not isinstance(owner, str) or not _OWNER_RE.match(owner):
        raise ValidationError(f"Invalid repository owner: {owner!r}")
    if owner.endswith("-"):
        raise ValidationError(f"Invalid repository owner: {owner!r}")
    return owner


def validate_repository_name(repo: str) -> str:
    """
    Validate a repository name.

    Args:
        repo: Repository name without the owner prefix

    Returns:
        The repository name, unchanged

    Raises:
        ValidationError: If the name is empty, too long or uses forbidden characters
    """
    if not isinstance(repo, str) or not repo:
        raise ValidationError("Invalid repository name: name cannot be empty")

    if repo in (".", ".."):
        raise ValidationError(f"Invalid repository name: {repo!r}")

    if not _REPO_RE.match(repo):
        raise ValidationError(
            f"Invalid repository name: {repo!r} "
            "(letters, digits, '.', '-' and '_' only, max 100 characters)"
        )

    return repo


def validate_branch_name(branch: str) -> str:
    """
    Validate a branch name using git's ref-format rules.

    Args:
        branch: Short branch name (no 'refs/heads/' prefix)

    Returns:
        The branch name, unchanged

    Raises:
        ValidationError: If git would reject the name
    """
    if not isinstance(branch, str) or not branch:
        raise ValidationError("Invalid branch name: name cannot be empty")

    if len(branch) > 255:
        raise ValidationError("Invalid branch name: too long (max 255 characters)")

    if branch.startswith(("/", "-", "refs/")) or branch.endswith(("/", ".", ".lock")):
        raise ValidationError(f"Invalid branch name: {branch!r}")

    if ".." in branch or "//" in branch or "@{" in branch or branch == "@":
        raise ValidationError(f"Invalid branch name: {branch!r}")

    for char in branch:
        if char in _FORBIDDEN_REF_CHARS or ord(char) < 0x20:
            raise ValidationError(
                f"Invalid branch name: {branch!r} contains {char!r}"
            )

    for segment in branch.split("/"):
        if segment.startswith("."):
            raise ValidationError(f"Invalid branch name: {branch!r}")

    return branch


def validate_commit_sha(sha: str) -> str:
    """Validate an abbreviated (7+) or full (40) hex commit sha."""
    if not isinstance(sha, str) or not _SHA_RE.match(sha):
        raise ValidationError(f"Invalid commit sha: {sha!r}")
    return sha


def validate_file_path(path: str) -> str:
    """
    Validate a repository-relative file path.

    Raises:
        ValidationError: For absolute paths, '..' segments or empty segments
    """
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("Invalid file path: path cannot be empty")

    if path.startswith("/") or "\\" in path:
        raise ValidationError(f"Invalid file path: {path!r} must be relative")

    segments = path.split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        raise ValidationError(f"Invalid file path: {path!r}")

    if segments[0] == ".git":
        raise ValidationError(f"Invalid file path: {path!r}")

    return path
