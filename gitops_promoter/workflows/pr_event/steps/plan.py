from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from gitops_promoter.events import PrEventKind
from gitops_promoter.templating import DRY_RUN_TEMPLATE, render_template

logger = logging.getLogger(__name__)


@dataclass
class GeneratePromotionPlan(BaseNode):
    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        state = ctx.state
        # A merged PR's branch may already be gone, so plan against the default
        # branch. show-plan runs on an open PR and reads its head.
        ref = (
            state.default_branch
            if state.kind is PrEventKind.MERGED
            else state.head_ref
        )
        state.plan = await asyncio.to_thread(
            ctx.deps.planner.generate_promotion_plan,
            ctx.deps.gateway,
            state.config,
            pr_number=state.pr_number,
            pr_labels=state.event.pull_request.label_names,
            ref=ref,
        )
        state.pending_promotions = sorted(state.plan)

        if state.kind is PrEventKind.SHOW_PLAN or state.config.dry_run_mode:
            return PostPromotionPlan()

        from .open_promotion import OpenNextPromotion

        return OpenNextPromotion()


@dataclass
class PostPromotionPlan(BaseNode):
    """Comment the plan instead of acting on it (dry-run mode and show-plan)."""

    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        state = ctx.state
        logger.info(
            "[plan] posting plan with %d promotion(s) on #%s",
            len(state.plan),
            state.pr_number,
        )
        body = render_template(
            DRY_RUN_TEMPLATE,
            ctx.deps.settings.templates_path,
            promotions=state.plan,
        )
        await asyncio.to_thread(ctx.deps.gateway.comment, state.pr_number, body)
        state.comments_posted += 1

        if state.kind is PrEventKind.MERGED:
            from .branch_sync import ResetBranchSync

            return ResetBranchSync()
        return End(None)
