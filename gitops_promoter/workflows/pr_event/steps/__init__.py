from __future__ import annotations

from .branch_sync import ResetBranchSync
from .diff import DiffChangedComponents, PostDiffComments
from .load_config import LoadRepoConfig
from .open_promotion import AutoMergePromotion, OpenNextPromotion
from .plan import GeneratePromotionPlan, PostPromotionPlan

__all__ = [
    "AutoMergePromotion",
    "DiffChangedComponents",
    "GeneratePromotionPlan",
    "LoadRepoConfig",
    "OpenNextPromotion",
    "PostDiffComments",
    "PostPromotionPlan",
    "ResetBranchSync",
]
