"""
Conventional commit messages for staged change records.
"""

import re
from collections import Counter
from typing import Sequence

from ..models.staging import ChangeType, PendingChange

COMMIT_TYPES = {
    ChangeType.FEATURE: "feat",
    ChangeType.BUGFIX: "fix",
    ChangeType.REFACTOR: "refactor",
    ChangeType.DOCUMENTATION: "docs",
    ChangeType.OTHER: "chore",
}

# Ties in the change-type count are broken in this order
_PRIORITY = [
    ChangeType.FEATURE,
    ChangeType.BUGFIX,
    ChangeType.REFACTOR,
    ChangeType.DOCUMENTATION,
    ChangeType.OTHER,
]

SUBJECT_LIMIT = 72


def _clean(description: str) -> str:
    text = re.sub(r"\s+", " ", description).strip().rstrip(".")
    if text:
        text = text[0].upper() + text[1:]
    return text


def generate_commit_message(changes: Sequence[PendingChange]) -> str:
    """
    Generate a commit message summarising pending changes.

    The subject uses the most frequent change type and the first change's
    description. With more than one change, every change is listed in the body.

    Args:
        changes: Pending change records, oldest first

    Returns:
        Formatted commit message following conventional commit format

    Raises:
        ValueError: If changes is empty
    """
    if not changes:
        raise ValueError("Cannot generate a commit message without changes")

    counts = Counter(change.type for change in changes)
    dominant = max(_PRIORITY, key=lambda t: (counts[t], -_PRIORITY.index(t)))

    subject = f"{COMMIT_TYPES[dominant]}: {_clean(changes[0].description)}"
    if len(changes) > 1:
        subject += f" (+{len(changes) - 1} more)"
    if len(subject) > SUBJECT_LIMIT:
        subject = subject[: SUBJECT_LIMIT - 3].rstrip() + "..."

    if len(changes) == 1:
        return subject

    lines = [subject, ""]
    for change in changes:
        lines.append(f"- {COMMIT_TYPES[change.type]}: {_clean(change.description)}")
    return "\n".join(lines)
