from __future__ import annotations

import hashlib
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from github import UnknownObjectException

from gitops_promoter.delivery_controller import AppDiffResult
from gitops_promoter.github_gateway import CreatedPullRequest, DirEntry, TreeMutation


def _sha(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class FakeRepoGateway:
    """In-memory stand-in for RepoGateway; every write is recorded."""

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        *,
        changed: Sequence[str] = (),
        default_branch: str = "main",
        head_ref: str = "feature",
        bot_login: str = "promoter[bot]",
    ) -> None:
        self.files = dict(files or {})
        self.changed = list(changed)
        self._default_branch = default_branch
        self.head_ref = head_ref
        self.bot_login = bot_login
        self.commits: List[Tuple[List[TreeMutation], str, str]] = []
        self.branches: List[Tuple[str, str]] = []
        self.pulls: List[dict] = []
        self.comments: List[Tuple[int, str]] = []
        self.labels: List[Tuple[int, List[str]]] = []
        self.merged: List[int] = []
        self.approved: List[int] = []
        self.statuses: List[Tuple[str, str]] = []
        self.next_pr_number = 100

    @property
    def full_name(self) -> str:
        return "acme/gitops"

    def default_branch(self) -> str:
        return self._default_branch

    def _is_dir(self, path: str) -> bool:
        prefix = path.rstrip("/") + "/"
        return any(f.startswith(prefix) for f in self.files)

    def _tree_sha(self, path: str) -> str:
        prefix = path.rstrip("/") + "/"
        content = "".join(
            f"{name[len(prefix):]}:{body}"
            for name, body in sorted(self.files.items())
            if name.startswith(prefix)
        )
        return _sha(content)

    def list_directory(self, path: str, ref: str) -> List[DirEntry]:
        path = path.rstrip("/")
        if path in self.files:
            return [DirEntry(path=path, sha=_sha(self.files[path]), type="file")]
        if path and not self._is_dir(path):
            raise UnknownObjectException(404, {"message": "Not Found"}, None)
        prefix = f"{path}/" if path else ""
        children: Dict[str, DirEntry] = {}
        for name, body in self.files.items():
            if not name.startswith(prefix):
                continue
            head = name[len(prefix) :].split("/", 1)[0]
            child = prefix + head
            if child in self.files:
                children[child] = DirEntry(path=child, sha=_sha(body), type="file")
            else:
                children[child] = DirEntry(
                    path=child, sha=self._tree_sha(child), type="dir"
                )
        return [children[k] for k in sorted(children)]

    def get_file_content(self, path: str, ref: str) -> Optional[str]:
        return self.files.get(path)

    def get_pull(self, number: int):
        return SimpleNamespace(number=number, head=SimpleNamespace(ref=self.head_ref))

    def changed_files(self, pr_number: int) -> List[str]:
        return list(self.changed)

    def create_commit(self, mutations, base_branch: str, message: str) -> str:
        self.commits.append((list(mutations), base_branch, message))
        return f"commit{len(self.commits)}"

    def create_branch(self, commit_sha: str, branch: str) -> str:
        self.branches.append((commit_sha, branch))
        return f"refs/heads/{branch}"

    def create_pull(self, *, title, body, base, head, labels=(), assignee=None):
        number = self.next_pr_number
        self.next_pr_number += 1
        self.pulls.append(
            {
                "number": number,
                "title": title,
                "body": body,
                "base": base,
                "head": head,
                "labels": list(labels),
                "assignee": assignee,
            }
        )
        return CreatedPullRequest(number=number, html_url=f"https://example/pull/{number}")

    def comment(self, pr_number: int, body: str) -> None:
        self.comments.append((pr_number, body))

    def add_labels(self, pr_number: int, labels) -> None:
        self.labels.append((pr_number, list(labels)))

    def merge(self, pr_number: int) -> None:
        self.merged.append(pr_number)

    def approve(self, pr_number: int) -> None:
        self.approved.append(pr_number)

    def set_commit_status(self, sha, *, state, description, context, target_url) -> None:
        self.statuses.append((sha, state))


class FakeDelivery:
    def __init__(
        self,
        results: Sequence[AppDiffResult] = (),
        *,
        has_diff: bool = True,
        has_errors: bool = False,
    ) -> None:
        self.results = list(results)
        self.has_diff = has_diff
        self.has_errors = has_errors
        self.diff_calls: List[dict] = []
        self.revisions: List[Tuple[str, str]] = []

    def generate_diff_of_changed_components(
        self, components_to_diff, ref, repo_url, *, use_sha_label, create_temp_apps
    ):
        self.diff_calls.append(
            {"components": dict(components_to_diff), "ref": ref, "repo_url": repo_url}
        )
        return self.has_diff, self.has_errors, list(self.results)

    def set_app_revision(self, component_path, revision, repo_url, *, use_sha_label):
        self.revisions.append((component_path, revision))


@pytest.fixture
def fake_gateway_cls():
    return FakeRepoGateway


@pytest.fixture
def fake_delivery_cls():
    return FakeDelivery
