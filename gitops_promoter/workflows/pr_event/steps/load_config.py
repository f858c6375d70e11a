from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from gitops_promoter.errors import ConfigError
from gitops_promoter.events import PrEventKind
from gitops_promoter.repo_config import CONFIG_FILE_NAME, parse_repo_config

logger = logging.getLogger(__name__)


@dataclass
class LoadRepoConfig(BaseNode):
    """Read the in-repo config from the default branch and route by event kind."""

    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        gateway = ctx.deps.gateway
        default_branch = await asyncio.to_thread(gateway.default_branch)
        ctx.state.default_branch = default_branch

        content = await asyncio.to_thread(
            gateway.get_file_content, CONFIG_FILE_NAME, default_branch
        )
        if content is None:
            logger.info(
                "[config] %s has no %s on %s, using defaults",
                gateway.full_name,
                CONFIG_FILE_NAME,
                default_branch,
            )
        try:
            ctx.state.config = parse_repo_config(content or "")
        except ConfigError as exc:
            logger.error("[config] %s: %s", gateway.full_name, exc)
            if ctx.state.kind is PrEventKind.MERGED:
                await asyncio.to_thread(
                    gateway.comment,
                    ctx.state.pr_number,
                    f"Failed to get configuration\n```\n{exc}\n```\n",
                )
            raise

        if ctx.state.kind is PrEventKind.CHANGED:
            from .diff import DiffChangedComponents

            return DiffChangedComponents()

        from .plan import GeneratePromotionPlan

        return GeneratePromotionPlan()
