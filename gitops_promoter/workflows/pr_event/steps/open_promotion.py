from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List

from github import GithubException
from pydantic_graph import BaseNode, End, GraphRunContext

from gitops_promoter.branch_naming import promotion_branch_name
from gitops_promoter.chain_metadata import build_promotion_pr_body
from gitops_promoter.directory_sync import plan_directory_sync
from gitops_promoter.errors import PromoterError
from gitops_promoter.github_gateway import PROMOTION_LABEL, RepoGateway, TreeMutation
from gitops_promoter.merge_retry import merge_with_retry
from gitops_promoter.promotion_plan import PromotionInstance
from gitops_promoter.templating import AUTO_MERGE_TEMPLATE, render_template

logger = logging.getLogger(__name__)


def promotion_pr_title(promotion: PromotionInstance) -> str:
    components = ",".join(promotion.metadata.component_names)
    return f"🚀 Promotion: {components} ➡️  {promotion.metadata.target_description}"


def sync_mutations(
    gateway: RepoGateway, promotion: PromotionInstance, ref: str
) -> List[TreeMutation]:
    """
    Tree mutations for every target/source pair of one promotion.

    A pair that fails to list is logged and left out; the rest of the
    promotion still goes ahead.
    """
    mutations: List[TreeMutation] = []
    for target, source in sorted(promotion.computed_sync_paths.items()):
        try:
            mutations.extend(plan_directory_sync(gateway, source, target, ref))
        except GithubException as exc:
            logger.error("[sync] failed to plan %s -> %s: %s", source, target, exc)
            continue
        logger.debug("[sync] planned %s -> %s", source, target)
    return mutations


@dataclass
class OpenNextPromotion(BaseNode):
    """Turn the next pending promotion into a commit, a branch and a PR."""

    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        state = ctx.state
        if not state.pending_promotions:
            from .branch_sync import ResetBranchSync

            return ResetBranchSync()

        key = state.pending_promotions.pop(0)
        promotion = state.plan[key]
        gateway = ctx.deps.gateway
        base = state.default_branch

        mutations = await asyncio.to_thread(sync_mutations, gateway, promotion, base)
        if not mutations:
            logger.info("[merged] nothing to sync for %s, skipping", key)
            return OpenNextPromotion()

        commit_sha = await asyncio.to_thread(
            gateway.create_commit,
            mutations,
            base,
            f"Syncing from {promotion.metadata.source_path}",
        )
        branch = promotion_branch_name(
            state.pr_number, state.head_ref, promotion.metadata.target_paths
        )
        branch_ref = await asyncio.to_thread(gateway.create_branch, commit_sha, branch)

        # Promotion PRs opened by us carry the original author in their metadata.
        author = state.metadata.original_pr_author or state.event.pull_request.user.login
        body = build_promotion_pr_body(
            state.metadata, promotion, pr_number=state.pr_number, pr_author=author
        )
        created = await asyncio.to_thread(
            lambda: gateway.create_pull(
                title=promotion_pr_title(promotion),
                body=body,
                base=base,
                head=branch_ref,
                labels=[PROMOTION_LABEL],
                assignee=author,
            )
        )
        state.created_prs.append(created)

        if state.config.auto_approve_promotion_prs:
            approver = ctx.deps.approver
            if approver is None:
                raise PromoterError(
                    "autoApprovePromotionPrs is set but no approver identity is configured"
                )
            logger.info("[merged] approving #%s", created.number)
            await asyncio.to_thread(approver.approve, created.number)

        if promotion.metadata.auto_merge:
            return AutoMergePromotion(pr_number=created.number)
        return OpenNextPromotion()


@dataclass
class AutoMergePromotion(BaseNode):
    pr_number: int

    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        gateway = ctx.deps.gateway
        logger.info("[merged] auto-merging #%s", self.pr_number)
        body = render_template(
            AUTO_MERGE_TEMPLATE,
            ctx.deps.settings.templates_path,
            pr_number=self.pr_number,
        )
        await asyncio.to_thread(gateway.comment, self.pr_number, body)
        await asyncio.to_thread(
            merge_with_retry, gateway.merge, self.pr_number, deadline=ctx.state.deadline
        )
        return OpenNextPromotion()
