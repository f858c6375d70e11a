"""
Webhook event models and classification.

Only pull request and issue comment events are handled. Every other event type
parses to None and is dropped without error.
"""

from __future__ import annotations

import enum
import json
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gitops_promoter.errors import PayloadError

SHOW_PLAN_LABEL = "show-plan"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class User(_Payload):
    login: str = ""
    name: Optional[str] = None


class Label(_Payload):
    name: str


class Owner(_Payload):
    login: str


class Repository(_Payload):
    name: str
    owner: Owner
    html_url: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner.login}/{self.name}"


class GitRef(_Payload):
    ref: str = ""
    sha: str = ""


class PullRequest(_Payload):
    number: int
    merged: bool = False
    body: Optional[str] = None
    labels: List[Label] = Field(default_factory=list)
    head: GitRef = Field(default_factory=GitRef)
    user: User = Field(default_factory=User)

    @property
    def label_names(self) -> List[str]:
        return [label.name for label in self.labels]


class PullRequestEvent(_Payload):
    action: str
    pull_request: PullRequest
    repository: Repository
    label: Optional[Label] = None


class Issue(_Payload):
    number: int
    state: str = ""
    body: Optional[str] = None
    user: User = Field(default_factory=User)


class Comment(_Payload):
    body: str = ""
    user: User = Field(default_factory=User)


class BodyChange(_Payload):
    from_: str = Field(default="", alias="from")


class CommentChanges(_Payload):
    body: Optional[BodyChange] = None


class IssueCommentEvent(_Payload):
    action: str
    issue: Issue
    comment: Comment
    repository: Repository
    sender: User = Field(default_factory=User)
    changes: Optional[CommentChanges] = None

    @property
    def previous_body(self) -> str:
        if self.changes and self.changes.body:
            return self.changes.body.from_
        return ""


WebhookEvent = Union[PullRequestEvent, IssueCommentEvent]

_EVENT_MODELS = {
    "pull_request": PullRequestEvent,
    "issue_comment": IssueCommentEvent,
}


def parse_event(event_type: str, payload: bytes) -> Optional[WebhookEvent]:
    """
    Parse a webhook body. Unhandled event types return None; handled types
    with a broken body raise PayloadError.
    """
    model = _EVENT_MODELS.get(event_type)
    if model is None:
        return None
    try:
        return model.model_validate(json.loads(payload))
    except (ValueError, ValidationError) as exc:
        raise PayloadError(f"could not parse {event_type} payload: {exc}") from exc


class PrEventKind(str, enum.Enum):
    MERGED = "merged"
    CHANGED = "changed"
    SHOW_PLAN = "show-plan"


def classify_pr_event(event: PullRequestEvent) -> Optional[PrEventKind]:
    """Translate a GitHub PR action into the action to take; first match wins."""
    if event.action == "closed" and event.pull_request.merged:
        return PrEventKind.MERGED
    if event.action in ("opened", "reopened", "synchronize"):
        return PrEventKind.CHANGED
    if (
        event.action == "labeled"
        and event.label is not None
        and event.label.name == SHOW_PLAN_LABEL
    ):
        return PrEventKind.SHOW_PLAN
    return None
