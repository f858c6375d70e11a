from __future__ import annotations

import json

import pytest

from gitops_promoter.errors import PayloadError
from gitops_promoter.events import (
    IssueCommentEvent,
    PrEventKind,
    PullRequestEvent,
    classify_pr_event,
    parse_event,
)

REPOSITORY = {
    "name": "gitops",
    "owner": {"login": "acme"},
    "html_url": "https://github.com/acme/gitops",
}


def pr_payload(action: str, *, merged: bool = False, label: str | None = None, **pr) -> dict:
    pull_request = {
        "number": 7,
        "merged": merged,
        "body": "",
        "labels": [],
        "head": {"ref": "feature", "sha": "abc123"},
        "user": {"login": "alice"},
    }
    pull_request.update(pr)
    payload = {"action": action, "pull_request": pull_request, "repository": REPOSITORY}
    if label:
        payload["label"] = {"name": label}
    return payload


def _pr_event(*args, **kwargs) -> PullRequestEvent:
    event = parse_event("pull_request", json.dumps(pr_payload(*args, **kwargs)).encode())
    assert isinstance(event, PullRequestEvent)
    return event


@pytest.mark.parametrize(
    "action, merged, label, expected",
    [
        ("closed", True, None, PrEventKind.MERGED),
        ("closed", False, None, None),
        ("opened", False, None, PrEventKind.CHANGED),
        ("reopened", False, None, PrEventKind.CHANGED),
        ("synchronize", False, None, PrEventKind.CHANGED),
        ("labeled", False, "show-plan", PrEventKind.SHOW_PLAN),
        ("labeled", False, "promotion", None),
        ("edited", False, None, None),
    ],
)
def test_classify_pr_event(action, merged, label, expected) -> None:
    assert classify_pr_event(_pr_event(action, merged=merged, label=label)) is expected


def test_labeled_with_other_label_is_ignored_even_if_show_plan_present() -> None:
    event = _pr_event(
        "labeled", label="noop", labels=[{"name": "show-plan"}, {"name": "noop"}]
    )
    assert classify_pr_event(event) is None


def test_parse_pull_request_event_fields() -> None:
    event = _pr_event("opened", labels=[{"name": "promotion"}])
    assert event.repository.full_name == "acme/gitops"
    assert event.pull_request.head.sha == "abc123"
    assert event.pull_request.label_names == ["promotion"]


def test_parse_issue_comment_event() -> None:
    payload = {
        "action": "edited",
        "issue": {"number": 3, "state": "open", "user": {"login": "alice"}},
        "comment": {"body": "new", "user": {"login": "promoter[bot]"}},
        "changes": {"body": {"from": "old"}},
        "sender": {"login": "alice"},
        "repository": REPOSITORY,
    }
    event = parse_event("issue_comment", json.dumps(payload).encode())
    assert isinstance(event, IssueCommentEvent)
    assert event.previous_body == "old"
    assert event.comment.user.login == "promoter[bot]"


def test_parse_unhandled_event_type_returns_none() -> None:
    assert parse_event("push", b"{}") is None
    assert parse_event("", b"not json") is None


@pytest.mark.parametrize("body", [b"not json", b"{}", b'{"action": "opened"}'])
def test_parse_broken_payload_raises(body: bytes) -> None:
    with pytest.raises(PayloadError):
        parse_event("pull_request", body)
