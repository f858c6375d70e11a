"""
Interface to the continuous-delivery controller.

Computing what a branch would change on the clusters is the controller's
business; this package only consumes the per-application result shape and asks
the controller to point applications at a revision.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field


class DiffElement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_namespace: str = Field(default="", alias="ObjectNamespace")
    object_kind: str = Field(default="", alias="ObjectKind")
    object_name: str = Field(default="", alias="ObjectName")
    diff: str = Field(default="", alias="Diff")

    @property
    def identifier(self) -> str:
        return f"{self.object_namespace}/{self.object_kind}/{self.object_name}"


class AppDiffResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    component_path: str = Field(alias="ComponentPath")
    app_name: str = Field(default="", alias="ArgoCdAppName")
    app_url: str = Field(default="", alias="ArgoCdAppURL")
    health_status: str = Field(default="", alias="ArgoCdAppHealthStatus")
    sync_status: str = Field(default="", alias="ArgoCdAppSyncStatus")
    auto_sync_enabled: bool = Field(default=False, alias="ArgoCdAppAutoSyncEnabled")
    app_was_temporarily_created: bool = Field(
        default=False, alias="AppWasTemporarilyCreated"
    )
    app_synced_from_pr_branch: bool = Field(default=False, alias="AppSyncedFromPRBranch")
    has_diff: bool = Field(default=False, alias="HasDiff")
    diff_error: Optional[str] = Field(default=None, alias="DiffError")
    diff_elements: List[DiffElement] = Field(default_factory=list, alias="DiffElements")


class DeliveryController(Protocol):
    def generate_diff_of_changed_components(
        self,
        components_to_diff: Dict[str, bool],
        ref: str,
        repo_url: str,
        *,
        use_sha_label: bool,
        create_temp_apps: bool,
    ) -> Tuple[bool, bool, List[AppDiffResult]]:
        """Return (has_diff, has_errors, per-component results)."""
        ...

    def set_app_revision(
        self, component_path: str, revision: str, repo_url: str, *, use_sha_label: bool
    ) -> None: ...
