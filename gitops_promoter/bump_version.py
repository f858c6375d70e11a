from __future__ import annotations

import difflib
import logging
from typing import Callable, Optional

from gitops_promoter.github_gateway import (
    PROMOTION_LABEL,
    CreatedPullRequest,
    RepoGateway,
    TreeMutation,
)
from gitops_promoter.merge_retry import merge_with_retry

logger = logging.getLogger(__name__)

BUMP_BRANCH_PREFIX = "artifact_version_bump/"


def bump_branch_name(triggering_repo: str, triggering_sha: str) -> str:
    return f"{BUMP_BRANCH_PREFIX}{triggering_repo}/{triggering_sha}"


def content_diff(path: str, old: str, new: str) -> str:
    return "".join(
        difflib.unified_diff(
            old.splitlines(keepends=True),
            new.splitlines(keepends=True),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
        )
    )


def bump_version(
    gateway: RepoGateway,
    *,
    file_path: str,
    new_content: str,
    triggering_repo: str,
    triggering_sha: str,
    triggering_actor: str = "",
    auto_merge: bool = False,
    default_branch: Optional[str] = None,
    merge: Callable[[Callable[[int], None], int], None] = merge_with_retry,
) -> Optional[CreatedPullRequest]:
    """
    Overwrite `file_path` on the default branch through a PR.

    Returns None without touching the repository when the file already has
    the new content.
    """
    base = default_branch or gateway.default_branch()
    current = gateway.get_file_content(file_path, base) or ""
    if current == new_content:
        logger.info("[bump] %s already up to date on %s", file_path, base)
        return None
    logger.info("[bump] diff for %s:\n%s", file_path, content_diff(file_path, current, new_content))

    commit_sha = gateway.create_commit(
        [TreeMutation.write_file(file_path, new_content)],
        base,
        f"Bumping version @ {file_path}",
    )
    branch_ref = gateway.create_branch(
        commit_sha, bump_branch_name(triggering_repo, triggering_sha)
    )
    created = gateway.create_pull(
        title=f"{triggering_repo}🚠 Bumping version @ {file_path}",
        body=f"Bumping version triggered by {triggering_repo}@{triggering_sha}",
        base=base,
        head=branch_ref,
        labels=[PROMOTION_LABEL],
        assignee=triggering_actor or None,
    )
    logger.info("[bump] new PR URL: %s", created.html_url)

    if auto_merge:
        logger.info("[bump] auto-merging #%s", created.number)
        merge(gateway.merge, created.number)
    return created
