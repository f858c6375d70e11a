"""
Render CD diff results as PR comments that fit GitHub's comment size limit.

Rendering degrades in three steps: one comment for everything, one comment per
component, and finally a concise per-component comment that lists changed
objects without their diffs.
"""

from __future__ import annotations

import logging
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from gitops_promoter.delivery_controller import AppDiffResult
from gitops_promoter.errors import CommentTooLargeError

logger = logging.getLogger(__name__)

BRANCH_SYNC_CHECKBOX_ID = "gitops-promoter-branch-sync"

_APP_LOGO = '<img src="https://argo-cd.readthedocs.io/en/stable/assets/favicon.png" width="20"/>'


class DiffCommentData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    diff_of_changed_components: List[AppDiffResult] = Field(
        default_factory=list, alias="DiffOfChangedComponents"
    )
    display_sync_branch_checkbox: bool = Field(
        default=False, alias="DisplaySyncBranchCheckBox"
    )
    branch_name: str = Field(default="", alias="BranchName")


def _alert(kind: str, text: str) -> str:
    quoted = "\n".join(f"> {line}" if line else ">" for line in text.split("\n"))
    return f"> [!{kind}]  \n{quoted}\n\n"


def _app_link(app: AppDiffResult) -> str:
    return f"**[{app.app_name}]({app.app_url})**"


def _render_app(app: AppDiffResult, concise: bool) -> str:
    if app.diff_error:
        out = _alert(
            "CAUTION", f"**Error getting diff from ArgoCD** (`{app.component_path}`)"
        )
        out += (
            f"Please check the App Conditions of {_APP_LOGO} {_app_link(app)} "
            "for more details.\n\n"
        )
        if app.app_was_temporarily_created:
            out += _alert(
                "WARNING",
                "For investigation we kept the temporary application, "
                "please make sure to clean it up later!",
            )
        return out + f"```\n{app.diff_error}\n```\n\n"

    out = f"{_APP_LOGO} {_app_link(app)} @ `{app.component_path}`\n\n"
    if app.app_was_temporarily_created:
        out += _alert(
            "NOTE",
            "A temporary ArgoCD app object was created to render manifest previews.  \n"
            "Please be aware:  \n"
            "* The app will only appear in the ArgoCD UI for a few seconds.",
        )
    else:
        if app.health_status != "Healthy":
            out += _alert(
                "CAUTION", f"The ArgoCD app health status is currently {app.health_status}"
            )
        if app.sync_status != "Synced":
            out += _alert(
                "WARNING", f"The ArgoCD app sync status is currently {app.sync_status}"
            )
        if not app.auto_sync_enabled:
            out += _alert(
                "NOTE",
                "This ArgoCD app doesn't have `auto-sync` enabled, merging this PR "
                "will **not** apply changes to cluster without additional actions.",
            )

    changed = [e for e in app.diff_elements if e.diff]
    if app.has_diff or changed:
        out += "<details><summary>ArgoCD Diff(Click to expand):</summary>\n\n```diff\n"
        for element in changed:
            if concise:
                out += f"{element.identifier}\n"
            else:
                out += f"{element.identifier}:\n{element.diff.rstrip()}\n"
        out += "```\n\n</details>\n\n"
    elif app.app_synced_from_pr_branch:
        out += _alert(
            "NOTE",
            "The app already has this branch set as the source target revision, "
            "and autosync is enabled. Diff calculation was skipped.",
        )
    else:
        out += "No diff 🤷\n\n"
    return out


def build_diff_comment(
    data: DiffCommentData,
    *,
    concise: bool = False,
    part_number: int = 0,
    total_parts: int = 0,
) -> str:
    """Render one comment for every component in `data`."""
    out = ""
    if part_number and data.diff_of_changed_components:
        out += (
            f"Component {part_number}/{total_parts}: "
            f"{data.diff_of_changed_components[0].component_path} "
            "(Split for comment size)\n\n"
        )
    if concise:
        out += (
            "Diff of ArgoCD applications "
            "(concise view, full diff didn't fit GH comment):\n\n"
        )
    else:
        out += "Diff of ArgoCD applications:\n\n"

    for app in data.diff_of_changed_components:
        out += _render_app(app, concise)

    if data.display_sync_branch_checkbox:
        out += (
            f"- [ ] <!-- {BRANCH_SYNC_CHECKBOX_ID} --> "
            f"Set ArgoCD apps Target Revision to `{data.branch_name}`\n"
        )
    return out


def render_diff_comments(data: DiffCommentData, max_size: int) -> List[str]:
    """
    Split the diff report into comments shorter than `max_size`.

    Raises CommentTooLargeError when a component does not fit even in the
    concise form; nothing should be posted in that case.
    """
    full = build_diff_comment(data)
    if len(full) < max_size:
        return [full]

    comments: List[str] = []
    total = len(data.diff_of_changed_components)
    for index, app in enumerate(data.diff_of_changed_components, start=1):
        scoped = data.model_copy(update={"diff_of_changed_components": [app]})
        comment = build_diff_comment(scoped, part_number=index, total_parts=total)
        if len(comment) < max_size:
            comments.append(comment)
            continue

        logger.info(
            "[diff] component %s does not fit (%d chars), using concise view",
            app.component_path,
            len(comment),
        )
        comment = build_diff_comment(
            scoped, concise=True, part_number=index, total_parts=total
        )
        if len(comment) >= max_size:
            raise CommentTooLargeError(app.component_path, len(comment), max_size)
        comments.append(comment)
    return comments
