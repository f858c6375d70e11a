"""
In-repo configuration.

The repository being promoted carries a `promoter.yaml` at its root (read from
the default branch). Component directories may carry their own `promoter.yaml`
to restrict where they get promoted and to opt out of CD diffs.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gitops_promoter.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "promoter.yaml"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PromotionConditions(_ConfigModel):
    pr_has_labels: List[str] = Field(default_factory=list, alias="prHasLabels")
    auto_merge: bool = Field(default=False, alias="autoMerge")


class PromotionPr(_ConfigModel):
    target_paths: List[str] = Field(default_factory=list, alias="targetPaths")
    target_description: str = Field(default="", alias="targetDescription")


class PromotionPath(_ConfigModel):
    source_path: str = Field(alias="sourcePath")
    conditions: PromotionConditions = Field(default_factory=PromotionConditions)
    component_path_extra_depth: int = Field(default=0, alias="componentPathExtraDepth")
    promotion_prs: List[PromotionPr] = Field(default_factory=list, alias="promotionPrs")


class DeliveryConfig(_ConfigModel):
    comment_diff_on_pr: bool = Field(default=False, alias="commentDiffonPR")
    auto_merge_no_diff_prs: bool = Field(default=False, alias="autoMergeNoDiffPRs")
    allow_sync_from_branch_path_regex: str = Field(
        default="", alias="allowSyncfromBranchPathRegex"
    )
    use_sha_label_for_app_discovery: bool = Field(
        default=False, alias="useSHALabelForAppDiscovery"
    )
    create_temp_app_object_for_new_apps: bool = Field(
        default=False, alias="createTempAppObjectFromNewApps"
    )


class RepoConfig(_ConfigModel):
    promotion_paths: List[PromotionPath] = Field(
        default_factory=list, alias="promotionPaths"
    )
    dry_run_mode: bool = Field(default=False, alias="dryRunMode")
    auto_approve_promotion_prs: bool = Field(
        default=False, alias="autoApprovePromotionPrs"
    )
    argocd: DeliveryConfig = Field(default_factory=DeliveryConfig)


class ComponentConfig(_ConfigModel):
    promotion_target_allow_list: List[str] = Field(
        default_factory=list, alias="promotionTargetAllowList"
    )
    promotion_target_block_list: List[str] = Field(
        default_factory=list, alias="promotionTargetBlockList"
    )
    disable_diff: bool = Field(default=False, alias="disableArgoCDDiff")


def _load_yaml_mapping(content: str, origin: str) -> dict:
    try:
        data = yaml.safe_load(content or "")
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {origin}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{origin} must contain a mapping, got {type(data).__name__}")
    return data


def parse_repo_config(content: str, origin: str = CONFIG_FILE_NAME) -> RepoConfig:
    try:
        return RepoConfig.model_validate(_load_yaml_mapping(content, origin))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {origin}: {exc}") from exc


def parse_component_config(
    content: Optional[str], origin: str = CONFIG_FILE_NAME
) -> ComponentConfig:
    """Component config is optional; a missing file means no restrictions."""
    if content is None:
        return ComponentConfig()
    try:
        return ComponentConfig.model_validate(_load_yaml_mapping(content, origin))
    except ValidationError as exc:
        raise ConfigError(f"Invalid component configuration in {origin}: {exc}") from exc
