from __future__ import annotations

import logging
from typing import Optional

from pydantic_graph import Graph

from gitops_promoter import commit_status
from gitops_promoter.chain_metadata import decode_pr_metadata
from gitops_promoter.commit_status import StatusWriter
from gitops_promoter.deadline import Deadline, run_with_deadline
from gitops_promoter.errors import DeadlineExceededError
from gitops_promoter.events import PullRequestEvent, classify_pr_event
from gitops_promoter.logging_config import ensure_logging_configured
from gitops_promoter.workflows.pr_event.state import PrEventDeps, PrEventState
from gitops_promoter.workflows.pr_event.steps import (
    AutoMergePromotion,
    DiffChangedComponents,
    GeneratePromotionPlan,
    LoadRepoConfig,
    OpenNextPromotion,
    PostDiffComments,
    PostPromotionPlan,
    ResetBranchSync,
)

logger = logging.getLogger(__name__)


def build_pr_event_graph() -> Graph:
    return Graph(
        nodes=[
            LoadRepoConfig,
            GeneratePromotionPlan,
            PostPromotionPlan,
            OpenNextPromotion,
            AutoMergePromotion,
            ResetBranchSync,
            DiffChangedComponents,
            PostDiffComments,
        ],
        state_type=PrEventState,
    )


async def run_pr_event_workflow(state: PrEventState, deps: PrEventDeps) -> PrEventState:
    ensure_logging_configured()
    graph = build_pr_event_graph()
    result = await graph.run(start_node=LoadRepoConfig(), state=state, deps=deps)
    return result.state if hasattr(result, "state") else state


def handle_pr_event(
    event: PullRequestEvent,
    deps: PrEventDeps,
    *,
    status: Optional[StatusWriter] = None,
) -> Optional[PrEventState]:
    """
    Handle one pull request event end to end.

    Classified events are bracketed by a pending and a final commit status on
    the PR head. The workflow runs under the per-event deadline; the status
    writes do not, and a timed out event reports `error` as soon as the
    deadline fires, even while one of its GitHub calls is still in flight.
    Failures are logged and reported through the status, never raised.

    Returns the final workflow state, or None when the event was ignored or
    failed.
    """
    repo = event.repository.full_name
    pr_number = event.pull_request.number
    kind = classify_pr_event(event)
    if kind is None:
        logger.debug("[pr] %s#%s action %s ignored", repo, pr_number, event.action)
        return None

    logger.info("[pr] %s#%s handling %s event", repo, pr_number, kind.value)
    state = PrEventState(
        event=event,
        kind=kind,
        metadata=decode_pr_metadata(event.pull_request.body),
    )
    writer = status or deps.gateway
    sha = event.pull_request.head.sha
    template_path = deps.settings.commit_status_url_template_path
    commit_status.set_commit_status(
        writer, repo=repo, sha=sha, state=commit_status.PENDING, template_path=template_path
    )

    state.deadline = Deadline(deps.settings.event_timeout_seconds)
    try:
        result = run_with_deadline(
            lambda: run_pr_event_workflow(state, deps), state.deadline
        )
    except DeadlineExceededError:
        logger.error(
            "[pr] %s#%s %s event timed out after %ss",
            repo,
            pr_number,
            kind.value,
            deps.settings.event_timeout_seconds,
        )
        result = None
    except Exception:
        logger.exception("[pr] %s#%s handling of %s event failed", repo, pr_number, kind.value)
        result = None

    commit_status.set_commit_status(
        writer,
        repo=repo,
        sha=sha,
        state=commit_status.SUCCESS if result is not None else commit_status.ERROR,
        template_path=template_path,
    )
    return result
