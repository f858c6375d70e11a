from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from gitops_promoter.comment_checkbox import is_sync_from_branch_allowed
from gitops_promoter.promotion_plan import changed_component_paths

logger = logging.getLogger(__name__)

HEAD_REVISION = "HEAD"


@dataclass
class ResetBranchSync(BaseNode):
    """
    After a merge, point every branch-synced app back at HEAD.

    Failures are logged per component; the promotions already opened stand.
    """

    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        state = ctx.state
        argocd = state.config.argocd
        if not argocd.allow_sync_from_branch_path_regex:
            return End(None)

        delivery = ctx.deps.delivery
        if delivery is None:
            logger.info("[branch-sync] no delivery controller configured, skipping reset")
            return End(None)

        files = await asyncio.to_thread(ctx.deps.gateway.changed_files, state.pr_number)
        for component_path in changed_component_paths(files, state.config):
            if not is_sync_from_branch_allowed(
                argocd.allow_sync_from_branch_path_regex, component_path
            ):
                continue
            logger.info("[branch-sync] ensuring app %s is set to HEAD", component_path)
            try:
                await asyncio.to_thread(
                    lambda path=component_path: delivery.set_app_revision(
                        path,
                        HEAD_REVISION,
                        state.repo_url,
                        use_sha_label=argocd.use_sha_label_for_app_discovery,
                    )
                )
            except Exception as exc:
                logger.error(
                    "[branch-sync] failed to set %s to HEAD: %s", component_path, exc
                )
        return End(None)
