from __future__ import annotations

import hashlib
from typing import Iterable

BRANCH_PREFIX = "promotions/"
MAX_BRANCH_NAME_LENGTH = 250
MAX_ORIGIN_BRANCH_LENGTH = 200
HASH_SUFFIX_LENGTH = 12


def promotion_branch_name(
    pr_number: int, origin_branch: str, target_paths: Iterable[str]
) -> str:
    """
    Build a unique promotion branch name from the PR number, the PR branch and
    the promotion target paths.

    The suffix is derived from the target paths so that promotions of the same
    PR into different targets never share a branch, even when the origin branch
    part is truncated. The result never exceeds MAX_BRANCH_NAME_LENGTH.
    """
    joined = "_".join(sorted(target_paths))
    # sha1 is only used as a content fingerprint here.
    suffix = hashlib.sha1(joined.encode("utf-8")).hexdigest()[:HASH_SUFFIX_LENGTH]
    safe_origin = origin_branch.replace("/", "-")[:MAX_ORIGIN_BRANCH_LENGTH]
    name = f"{BRANCH_PREFIX}{pr_number}-{safe_origin}-{suffix}"
    if len(name) > MAX_BRANCH_NAME_LENGTH:
        # Only reachable with absurd PR numbers; trim the origin part further.
        overflow = len(name) - MAX_BRANCH_NAME_LENGTH
        name = f"{BRANCH_PREFIX}{pr_number}-{safe_origin[:-overflow]}-{suffix}"
    return name
