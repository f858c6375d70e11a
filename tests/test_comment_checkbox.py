from __future__ import annotations

import pytest

from gitops_promoter.comment_checkbox import (
    analyze_comment_update_checkbox,
    is_sync_from_branch_allowed,
    should_display_sync_branch_checkbox,
)
from gitops_promoter.delivery_controller import AppDiffResult

UNCHECKED = "This is a comment\nfoobar\n- [ ] <!-- check-slug-1 --> Description of checkbox\nfoobar"
CHECKED = "This is a comment\nfoobar\n- [x] <!-- check-slug-1 --> Description of checkbox\nfoobar"


@pytest.mark.parametrize(
    "new_body, old_body, expected",
    [
        (CHECKED, UNCHECKED, (False, True)),
        (UNCHECKED, CHECKED, (True, False)),
        ("This is a comment\nfoobar", "This is a comment\nfoobar", (False, False)),
        (CHECKED, "no checkbox here", (False, False)),
    ],
)
def test_analyze_comment_update_checkbox(new_body, old_body, expected) -> None:
    assert analyze_comment_update_checkbox(new_body, old_body, "check-slug-1") == expected


def test_checkbox_is_found_by_marker_not_position() -> None:
    old = "- [x] <!-- other --> Other\n- [ ] <!-- check-slug-1 --> Mine"
    new = "- [ ] <!-- other --> Other\n- [x] <!-- check-slug-1 --> Mine"
    assert analyze_comment_update_checkbox(new, old, "check-slug-1") == (False, True)


@pytest.mark.parametrize(
    "regex, path, expected",
    [
        (r"^workspace/.*$", "workspace/app3", True),
        (r"^workspace/.*$", "clusters/prod/aws/eu-east-1/app3", False),
        ("", "workspace/app3", False),
    ],
)
def test_is_sync_from_branch_allowed(regex, path, expected) -> None:
    assert is_sync_from_branch_allowed(regex, path) is expected


@pytest.mark.parametrize(
    "paths, results, expected",
    [
        (
            ["workspace/app1"],
            [AppDiffResult(component_path="workspace/app1", app_was_temporarily_created=True)],
            False,
        ),
        (
            ["workspace/app1"],
            [AppDiffResult(component_path="workspace/app1", app_synced_from_pr_branch=True)],
            False,
        ),
        (
            ["workspace/app1"],
            [AppDiffResult(component_path="workspace/app1")],
            True,
        ),
        (
            ["workspace/app1", "workspace/app2", "workspace/app3"],
            [
                AppDiffResult(component_path="workspace/app1"),
                AppDiffResult(component_path="workspace/app2", app_was_temporarily_created=True),
                AppDiffResult(component_path="workspace/app3", app_synced_from_pr_branch=True),
            ],
            True,
        ),
        (
            ["clusters/prod/app1"],
            [AppDiffResult(component_path="clusters/prod/app1")],
            False,
        ),
    ],
    ids=["new-app", "synced-from-branch", "existing-app", "mixed", "not-allowed"],
)
def test_should_display_sync_branch_checkbox(paths, results, expected) -> None:
    assert (
        should_display_sync_branch_checkbox(paths, r"^workspace/.*$", results) is expected
    )
