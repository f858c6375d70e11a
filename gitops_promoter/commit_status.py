from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from github import GithubException
from jinja2 import Environment, StrictUndefined, TemplateError

logger = logging.getLogger(__name__)

STATUS_CONTEXT = "gitops-promoter"
STATUS_DESCRIPTION = "GitOps Promoter"
DEFAULT_TARGET_URL = "https://github.com/gitops-promoter/gitops-promoter"

PENDING = "pending"
SUCCESS = "success"
ERROR = "error"


class StatusWriter(Protocol):
    def set_commit_status(
        self, sha: str, *, state: str, description: str, context: str, target_url: str
    ) -> None: ...


def commit_status_target_url(
    commit_time: datetime, template_path: Optional[str]
) -> str:
    """
    Render the status link from an operator supplied Jinja2 template.

    The template gets `commit_time` (a datetime). A missing template or any
    render failure falls back to DEFAULT_TARGET_URL.
    """
    if not template_path:
        return DEFAULT_TARGET_URL
    try:
        source = Path(template_path).read_text(encoding="utf-8")
        template = Environment(undefined=StrictUndefined).from_string(source)
        rendered = template.render(commit_time=commit_time).strip()
    except (OSError, TemplateError) as exc:
        logger.debug("Failed to render target URL template %s: %s", template_path, exc)
        return DEFAULT_TARGET_URL
    return rendered or DEFAULT_TARGET_URL


def set_commit_status(
    writer: StatusWriter,
    *,
    repo: str,
    sha: str,
    state: str,
    template_path: Optional[str] = None,
) -> None:
    """
    Best-effort status update; failures are logged, never raised, so that a
    status write cannot change the outcome of event handling.
    """
    if not sha:
        logger.warning("[status] no head SHA for %s, skipping %s status", repo, state)
        return
    target_url = commit_status_target_url(datetime.now(timezone.utc), template_path)
    logger.debug("[status] setting %s@%s to %s", repo, sha, state)
    try:
        writer.set_commit_status(
            sha,
            state=state,
            description=STATUS_DESCRIPTION,
            context=STATUS_CONTEXT,
            target_url=target_url,
        )
    except GithubException as exc:
        logger.error("[status] failed to set %s status on %s@%s: %s", state, repo, sha, exc)
