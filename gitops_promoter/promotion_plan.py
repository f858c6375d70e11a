from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Set

from gitops_promoter.repo_config import (
    CONFIG_FILE_NAME,
    ComponentConfig,
    RepoConfig,
    parse_component_config,
)

logger = logging.getLogger(__name__)


@dataclass
class PromotionInstanceMetadata:
    source_path: str
    target_paths: List[str]
    component_names: List[str] = field(default_factory=list)
    auto_merge: bool = False
    per_component_skipped_target_paths: Dict[str, List[str]] = field(
        default_factory=dict
    )
    target_description: str = ""


@dataclass
class PromotionInstance:
    metadata: PromotionInstanceMetadata
    # target component path -> source component path
    computed_sync_paths: Dict[str, str] = field(default_factory=dict)


class PlanSource(Protocol):
    """The repository reads a planner needs."""

    def changed_files(self, pr_number: int) -> List[str]: ...

    def get_file_content(self, path: str, ref: str) -> Optional[str]: ...


class PromotionPlanner(Protocol):
    def generate_promotion_plan(
        self,
        source: PlanSource,
        config: RepoConfig,
        *,
        pr_number: int,
        pr_labels: Sequence[str],
        ref: str,
    ) -> Dict[str, PromotionInstance]: ...


def _as_dir(path: str) -> str:
    return path if path.endswith("/") else f"{path}/"


def components_under(
    files: Iterable[str], source_path: str, extra_depth: int = 0
) -> Set[str]:
    """
    Component names (relative to `source_path`) touched by `files`.

    A component is the first `1 + extra_depth` path segments below the source
    path; files sitting directly in the source path belong to no component.
    """
    prefix = _as_dir(source_path)
    depth = 1 + max(extra_depth, 0)
    found: Set[str] = set()
    for path in files:
        if not path.startswith(prefix):
            continue
        parts = path[len(prefix) :].split("/")
        if len(parts) <= depth:
            continue
        found.add("/".join(parts[:depth]))
    return found


def changed_component_paths(files: Iterable[str], config: RepoConfig) -> List[str]:
    """Full paths of every configured component touched by `files`."""
    files = list(files)
    paths: Set[str] = set()
    for promotion_path in config.promotion_paths:
        prefix = _as_dir(promotion_path.source_path)
        for component in components_under(
            files, prefix, promotion_path.component_path_extra_depth
        ):
            paths.add(prefix + component)
    return sorted(paths)


def load_component_config(
    source: PlanSource, component_path: str, ref: str
) -> ComponentConfig:
    config_path = f"{component_path.rstrip('/')}/{CONFIG_FILE_NAME}"
    return parse_component_config(source.get_file_content(config_path, ref), config_path)


def is_target_allowed(component_config: ComponentConfig, target_path: str) -> bool:
    allow = component_config.promotion_target_allow_list
    if allow and not any(re.search(pattern, target_path) for pattern in allow):
        return False
    return not any(
        re.search(pattern, target_path)
        for pattern in component_config.promotion_target_block_list
    )


class ConfigPromotionPlanner:
    """Builds promotions from the `promotionPaths` section of the repo config."""

    def generate_promotion_plan(
        self,
        source: PlanSource,
        config: RepoConfig,
        *,
        pr_number: int,
        pr_labels: Sequence[str],
        ref: str,
    ) -> Dict[str, PromotionInstance]:
        files = source.changed_files(pr_number)
        labels = set(pr_labels)
        claimed: Set[str] = set()
        plan: Dict[str, PromotionInstance] = {}

        for promotion_path in config.promotion_paths:
            required = set(promotion_path.conditions.pr_has_labels)
            if not required.issubset(labels):
                logger.debug(
                    "[plan] %s skipped, PR lacks labels %s",
                    promotion_path.source_path,
                    sorted(required - labels),
                )
                continue

            source_dir = _as_dir(promotion_path.source_path)
            components = sorted(
                c
                for c in components_under(
                    files, source_dir, promotion_path.component_path_extra_depth
                )
                if source_dir + c not in claimed
            )
            if not components:
                continue
            claimed.update(source_dir + c for c in components)

            component_configs = {
                c: load_component_config(source, source_dir + c, ref) for c in components
            }

            for promotion_pr in promotion_path.promotion_prs:
                target_paths = list(promotion_pr.target_paths)
                instance = PromotionInstance(
                    metadata=PromotionInstanceMetadata(
                        source_path=source_dir,
                        target_paths=target_paths,
                        component_names=list(components),
                        auto_merge=promotion_path.conditions.auto_merge,
                        target_description=promotion_pr.target_description
                        or ", ".join(target_paths),
                    )
                )
                for component in components:
                    for target in target_paths:
                        if not is_target_allowed(component_configs[component], target):
                            instance.metadata.per_component_skipped_target_paths.setdefault(
                                component, []
                            ).append(target)
                            continue
                        instance.computed_sync_paths[_as_dir(target) + component] = (
                            source_dir + component
                        )

                if not instance.computed_sync_paths:
                    logger.info(
                        "[plan] no allowed targets for %s -> %s",
                        source_dir,
                        target_paths,
                    )
                    continue
                key = f"{source_dir}>{'|'.join(sorted(target_paths))}"
                plan[key] = instance

        logger.info("[plan] PR #%s produced %d promotion(s)", pr_number, len(plan))
        return plan
