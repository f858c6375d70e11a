"""
Promotion chain metadata.

Every promotion PR carries, hidden in its description, the record of the hops
that led to it: who opened the original PR, which paths this hop promoted and,
per ancestor promotion PR, the source and target paths it covered. When a
promotion PR merges, the record is decoded, extended with one hop and embedded
in the next generation of promotion PRs.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Dict, Iterable, List, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gitops_promoter.promotion_plan import PromotionInstance

logger = logging.getLogger(__name__)

METADATA_LABEL = "GitOps Promoter data, do not delete"
_METADATA_RE = re.compile(r"<!--\|[^|]*\|([^|]*)\|-->")

# GitHub markdown collapses plain spaces, so indentation uses non-breaking ones.
_MK_TAB = "&nbsp;&nbsp;&nbsp;&nbsp;"


class HopMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_path: str = Field(alias="sourcePath")
    target_paths: List[str] = Field(default_factory=list, alias="targetPaths")


class PromotionChainMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_pr_author: str = Field(default="", alias="originalPrAuthor")
    original_pr_number: int = Field(default=0, alias="originalPrNumber")
    promoted_paths: List[str] = Field(default_factory=list, alias="promotedPaths")
    previous_promotion_paths: Dict[int, HopMetadata] = Field(
        default_factory=dict, alias="previousPromotionPaths"
    )


def serialize_metadata(metadata: PromotionChainMetadata) -> str:
    payload = metadata.model_dump_json(by_alias=True)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def encode_pr_metadata(metadata: PromotionChainMetadata) -> str:
    """The hidden description block carrying `metadata`."""
    return f"<!--|{METADATA_LABEL}|{serialize_metadata(metadata)}|-->"


def decode_pr_metadata(pr_body: str | None) -> PromotionChainMetadata:
    """
    Read the metadata block from a PR description.

    PRs opened by humans have no block; a damaged block is logged and treated
    the same way, so a bad description never stops event handling.
    """
    match = _METADATA_RE.search(pr_body or "")
    if not match or not match.group(1):
        return PromotionChainMetadata()
    logger.info("[metadata] found PR metadata")
    try:
        raw = base64.b64decode(match.group(1), validate=True)
        return PromotionChainMetadata.model_validate_json(raw)
    except (binascii.Error, ValueError, ValidationError) as exc:
        logger.error("[metadata] failed to parse PR metadata: %s", exc)
        return PromotionChainMetadata()


def get_promotion_skip_paths(promotion: PromotionInstance) -> Set[str]:
    """
    Target paths to hide from the promotion PR body.

    A component without skip entries is promoted everywhere, so nothing is
    hidden. Otherwise the component skipping the fewest paths wins, which
    shows the user more promoted paths rather than fewer.
    """
    per_component = promotion.metadata.per_component_skipped_target_paths
    if not per_component:
        return set()

    for component in promotion.metadata.component_names:
        if component not in per_component:
            return set()

    fewest = min(sorted(per_component), key=lambda c: len(per_component[c]))
    return set(per_component[fewest])


def render_promotion_hops(
    hop_keys: Iterable[int],
    metadata: PromotionChainMetadata,
    skip_paths: Set[str],
) -> str:
    lines = []
    for depth, key in enumerate(hop_keys):
        hop = metadata.previous_promotion_paths[key]
        targets = sorted({p for p in hop.target_paths if p not in skip_paths})
        indent = _MK_TAB * (depth + 1)
        joined = f"`  \n{indent}`".join(targets)
        lines.append(
            f"{_MK_TAB * depth}↘️  #{key}  `{hop.source_path}` ➡️  \n{indent}`{joined}`  \n"
        )
    return "".join(lines)


def next_hop_metadata(
    current: PromotionChainMetadata,
    promotion: PromotionInstance,
    *,
    pr_number: int,
    pr_author: str,
) -> PromotionChainMetadata:
    """
    Metadata for a promotion PR opened after PR `pr_number` merged.

    Existing hops are copied untouched and exactly one hop, keyed by the
    merged PR, is added.
    """
    hops = {k: v.model_copy(deep=True) for k, v in current.previous_promotion_paths.items()}
    hops[pr_number] = HopMetadata(
        source_path=promotion.metadata.source_path,
        target_paths=list(promotion.metadata.target_paths),
    )
    return PromotionChainMetadata(
        original_pr_author=current.original_pr_author or pr_author,
        original_pr_number=current.original_pr_number or pr_number,
        promoted_paths=sorted(promotion.computed_sync_paths),
        previous_promotion_paths=hops,
    )


def build_promotion_pr_body(
    current: PromotionChainMetadata,
    promotion: PromotionInstance,
    *,
    pr_number: int,
    pr_author: str,
) -> str:
    metadata = next_hop_metadata(
        current, promotion, pr_number=pr_number, pr_author=pr_author
    )
    components = ",".join(promotion.metadata.component_names)
    body = f"Promotion path({components}):\n\n"
    body += render_promotion_hops(
        sorted(metadata.previous_promotion_paths),
        metadata,
        get_promotion_skip_paths(promotion),
    )
    return body + "\n" + encode_pr_metadata(metadata)
