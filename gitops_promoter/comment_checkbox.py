from __future__ import annotations

import re
from typing import Iterable, Sequence, Tuple

from gitops_promoter.delivery_controller import AppDiffResult


def _checkbox_state(body: str, marker: str) -> str | None:
    pattern = re.compile(rf"(?m)^\s*-\s*\[(.)\]\s*<!-- {re.escape(marker)} -->.*$")
    match = pattern.search(body or "")
    return match.group(1) if match else None


def analyze_comment_update_checkbox(
    new_body: str, old_body: str, marker: str
) -> Tuple[bool, bool]:
    """
    Return (was_checked_before, is_checked_now) for the checkbox tagged `marker`.

    The checkbox is located by its marker comment, not by position. If it is
    missing from either body nothing changed and (False, False) is returned.
    """
    old_state = _checkbox_state(old_body, marker)
    new_state = _checkbox_state(new_body, marker)
    if old_state is None or new_state is None:
        return False, False
    return old_state.lower() == "x", new_state.lower() == "x"


def is_sync_from_branch_allowed(allowed_path_regex: str, path: str) -> bool:
    if not allowed_path_regex:
        return False
    return re.search(allowed_path_regex, path) is not None


def should_display_sync_branch_checkbox(
    component_paths: Iterable[str],
    allowed_path_regex: str,
    diff_results: Sequence[AppDiffResult],
) -> bool:
    """
    Offer branch syncing only for allowed components whose app already exists
    and is not yet tracking the PR branch.
    """
    for component_path in component_paths:
        if not is_sync_from_branch_allowed(allowed_path_regex, component_path):
            continue
        for result in diff_results:
            if (
                result.component_path == component_path
                and not result.app_was_temporarily_created
                and not result.app_synced_from_pr_branch
            ):
                return True
    return False
