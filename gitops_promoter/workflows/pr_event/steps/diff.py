from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict

from github import GithubException
from pydantic_graph import BaseNode, End, GraphRunContext

from gitops_promoter.comment_checkbox import should_display_sync_branch_checkbox
from gitops_promoter.diff_comment import DiffCommentData, render_diff_comments
from gitops_promoter.github_gateway import COMMENT_TAG, NOOP_LABEL, PROMOTION_LABEL
from gitops_promoter.merge_retry import merge_with_retry
from gitops_promoter.promotion_plan import changed_component_paths, load_component_config

logger = logging.getLogger(__name__)


@dataclass
class DiffChangedComponents(BaseNode):
    """Ask the CD controller what this PR would change and react to an empty diff."""

    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        state = ctx.state
        config = state.config
        if not config.argocd.comment_diff_on_pr:
            return End(None)

        delivery = ctx.deps.delivery
        if delivery is None:
            logger.info("[changed] no delivery controller configured, skipping diff")
            return End(None)

        gateway = ctx.deps.gateway
        files = await asyncio.to_thread(gateway.changed_files, state.pr_number)
        state.changed_components = changed_component_paths(files, config)

        components_to_diff: Dict[str, bool] = {}
        for component_path in state.changed_components:
            component_config = await asyncio.to_thread(
                load_component_config, gateway, component_path, state.head_ref
            )
            components_to_diff[component_path] = not component_config.disable_diff
            if component_config.disable_diff:
                logger.debug("[changed] diff disabled for %s", component_path)

        has_diff, has_errors, results = await asyncio.to_thread(
            lambda: delivery.generate_diff_of_changed_components(
                components_to_diff,
                state.head_ref,
                state.repo_url,
                use_sha_label=config.argocd.use_sha_label_for_app_discovery,
                create_temp_apps=config.argocd.create_temp_app_object_for_new_apps,
            )
        )
        state.diff_results = list(results)
        logger.debug("[changed] got diff for %s", state.head_ref)

        if not has_diff and not has_errors:
            await self._handle_empty_diff(ctx)

        if state.diff_results:
            return PostDiffComments()
        logger.debug("[changed] diff found no affected apps")
        return End(None)

    async def _handle_empty_diff(self, ctx: GraphRunContext) -> None:
        state = ctx.state
        gateway = ctx.deps.gateway
        logger.info("[changed] diff is empty, #%s will not change cluster state", state.pr_number)
        try:
            await asyncio.to_thread(gateway.add_labels, state.pr_number, [NOOP_LABEL])
        except GithubException as exc:
            logger.error("[changed] could not label #%s: %s", state.pr_number, exc)

        # Without any known component we can't tell what the PR touches.
        if (
            PROMOTION_LABEL in state.event.pull_request.label_names
            and state.config.argocd.auto_merge_no_diff_prs
            and state.changed_components
        ):
            logger.info("[changed] auto-merging no-diff promotion #%s", state.pr_number)
            await asyncio.to_thread(
                merge_with_retry, gateway.merge, state.pr_number, deadline=state.deadline
            )


@dataclass
class PostDiffComments(BaseNode):
    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        state = ctx.state
        data = DiffCommentData(
            diff_of_changed_components=state.diff_results,
            branch_name=state.head_ref,
            display_sync_branch_checkbox=should_display_sync_branch_checkbox(
                state.changed_components,
                state.config.argocd.allow_sync_from_branch_path_regex,
                state.diff_results,
            ),
        )
        max_size = ctx.deps.settings.comment_max_size - len(COMMENT_TAG)
        comments = render_diff_comments(data, max_size)
        logger.info(
            "[changed] posting %d diff comment(s) for %d component(s)",
            len(comments),
            len(state.diff_results),
        )
        for body in comments:
            await asyncio.to_thread(ctx.deps.gateway.comment, state.pr_number, body)
            state.comments_posted += 1
        return End(None)
