"""Hierarchical key paths for stored items.

Layout::

    /repo-:repoId
    /repo-:repoId/runner-:name
    /repo-:repoId/history-:runnerId/outage-:outageId
"""

import re


_NUMERIC_SEGMENT = re.compile(r"(?<=-)(\d+)(?=/|$)")

# Wide enough for any unsigned 64-bit id
_SORT_KEY_WIDTH = 20


def repository_key(repo_id: str) -> str:
    """Key of a Repository item."""
    return f"/repo-{repo_id}"


def runner_prefix(repo_id: str) -> str:
    """Prefix covering every Runner of a repository."""
    return f"/repo-{repo_id}/runner-"


def runner_key(repo_id: str, name: str) -> str:
    """Key of a Runner item. Names are unique within a repository."""
    return f"{runner_prefix(repo_id)}{name}"


def outage_prefix(repo_id: str, runner_id: int) -> str:
    """Prefix covering a runner's outage history.

    Also the scope of the outage id sequence.
    """
    return f"/repo-{repo_id}/history-{runner_id}/outage-"


def outage_key(repo_id: str, runner_id: int, outage_id: int) -> str:
    """Key of an OutageEvent item."""
    return f"{outage_prefix(repo_id, runner_id)}{outage_id}"


def sort_key(key_path: str) -> str:
    """Ordering key for range scans.

    Numeric segments are zero-padded so that ``outage-10`` sorts after
    ``outage-9``.
    """
    return _NUMERIC_SEGMENT.sub(lambda m: m.group(1).zfill(_SORT_KEY_WIDTH), key_path)
