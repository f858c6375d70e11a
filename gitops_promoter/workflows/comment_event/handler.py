"""
Issue comment handling.

The only comment interaction is the branch-sync checkbox the bot renders at the
bottom of its diff comments. Ticking it points the affected CD apps at the PR
branch so the change can be tried out before merging.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from gitops_promoter.comment_checkbox import (
    analyze_comment_update_checkbox,
    is_sync_from_branch_allowed,
)
from gitops_promoter.delivery_controller import DeliveryController
from gitops_promoter.diff_comment import BRANCH_SYNC_CHECKBOX_ID
from gitops_promoter.events import IssueCommentEvent
from gitops_promoter.github_gateway import RepoGateway
from gitops_promoter.promotion_plan import changed_component_paths
from gitops_promoter.repo_config import CONFIG_FILE_NAME, parse_repo_config

logger = logging.getLogger(__name__)


def sync_checkbox_checked(event: IssueCommentEvent, bot_login: str) -> bool:
    """True when a bot comment on an open PR had its sync checkbox ticked."""
    if event.action != "edited":
        return False
    if not bot_login or event.comment.user.login != bot_login:
        return False
    if event.issue.state != "open":
        return False
    was_checked, is_checked = analyze_comment_update_checkbox(
        event.comment.body, event.previous_body, BRANCH_SYNC_CHECKBOX_ID
    )
    return not was_checked and is_checked


def handle_comment_event(
    event: IssueCommentEvent,
    gateway: RepoGateway,
    delivery: Optional[DeliveryController] = None,
) -> List[str]:
    """
    React to a comment event and return the component paths that were synced
    from the PR branch.
    """
    repo = event.repository.full_name
    pr_number = event.issue.number
    bot_login = gateway.bot_login
    # Who triggered the event, not who wrote the comment.
    if bot_login and event.sender.login == bot_login:
        logger.debug("[comment] %s#%s ignoring self comment", repo, pr_number)
        return []

    if not sync_checkbox_checked(event, bot_login):
        return []
    logger.info("[comment] %s#%s sync checkbox was checked", repo, pr_number)

    config = parse_repo_config(
        gateway.get_file_content(CONFIG_FILE_NAME, gateway.default_branch()) or ""
    )
    regex = config.argocd.allow_sync_from_branch_path_regex
    if not regex:
        logger.info("[comment] %s has no sync-from-branch path regex, nothing to do", repo)
        return []
    if delivery is None:
        logger.info("[comment] no delivery controller configured, skipping branch sync")
        return []

    # Comment payloads carry no ref, so look the PR up.
    head_ref = gateway.get_pull(pr_number).head.ref
    synced: List[str] = []
    for component_path in changed_component_paths(gateway.changed_files(pr_number), config):
        if not is_sync_from_branch_allowed(regex, component_path):
            continue
        try:
            delivery.set_app_revision(
                component_path,
                head_ref,
                event.repository.html_url,
                use_sha_label=config.argocd.use_sha_label_for_app_discovery,
            )
        except Exception as exc:
            logger.error(
                "[comment] failed to sync %s from branch %s: %s", component_path, head_ref, exc
            )
            continue
        synced.append(component_path)
    return synced
