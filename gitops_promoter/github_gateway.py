from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from github import GithubException, InputGitTreeElement, UnknownObjectException
from github.PullRequest import PullRequest
from github.Repository import Repository

logger = logging.getLogger(__name__)

COMMENT_TAG = "<!-- gitops-promoter -->\n"
PROMOTION_LABEL = "promotion"
NOOP_LABEL = "noop"

FILE_MODE = "100644"
TREE_MODE = "040000"


@dataclass(frozen=True)
class DirEntry:
    path: str
    sha: str
    type: str  # "file", "dir", "symlink" or "submodule"


@dataclass(frozen=True)
class TreeMutation:
    """
    One entry of a git tree update.

    A directory replacement points `path` at an existing tree object by SHA.
    A file deletion is a blob entry whose SHA is None.
    """

    path: str
    mode: str
    type: str
    sha: Optional[str] = None
    content: Optional[str] = None

    @classmethod
    def replace_directory(cls, path: str, tree_sha: str) -> "TreeMutation":
        return cls(path=path, mode=TREE_MODE, type="tree", sha=tree_sha)

    @classmethod
    def delete_file(cls, path: str) -> "TreeMutation":
        return cls(path=path, mode=FILE_MODE, type="blob", sha=None)

    @classmethod
    def write_file(cls, path: str, content: str) -> "TreeMutation":
        return cls(path=path, mode=FILE_MODE, type="blob", content=content)

    @property
    def is_deletion(self) -> bool:
        return self.type == "blob" and self.sha is None and self.content is None

    def to_input_element(self) -> InputGitTreeElement:
        if self.content is not None:
            return InputGitTreeElement(
                self.path, self.mode, self.type, content=self.content
            )
        # sha=None (as opposed to omitting it) is how the trees API deletes a path.
        return InputGitTreeElement(self.path, self.mode, self.type, sha=self.sha)


@dataclass(frozen=True)
class CreatedPullRequest:
    number: int
    html_url: str


def is_not_found(exc: GithubException) -> bool:
    return isinstance(exc, UnknownObjectException) or exc.status == 404


class RepoGateway:
    """Thin wrapper over a PyGithub repository for the calls promotions need."""

    def __init__(self, repo: Repository, *, bot_login: str = "") -> None:
        self._repo = repo
        self.bot_login = bot_login

    @property
    def full_name(self) -> str:
        return self._repo.full_name

    def default_branch(self) -> str:
        return self._repo.default_branch

    def list_directory(self, path: str, ref: str) -> List[DirEntry]:
        """List one directory level. Raises UnknownObjectException when missing."""
        contents = self._repo.get_contents(path, ref=ref)
        if not isinstance(contents, list):
            contents = [contents]
        return [DirEntry(path=c.path, sha=c.sha, type=c.type) for c in contents]

    def get_file_content(self, path: str, ref: str) -> Optional[str]:
        """Return file text, or None when the file does not exist at `ref`."""
        try:
            content = self._repo.get_contents(path, ref=ref)
        except GithubException as exc:
            if is_not_found(exc):
                return None
            raise
        if isinstance(content, list):
            raise IsADirectoryError(f"{path} is a directory at {ref}")
        return content.decoded_content.decode("utf-8")

    def get_pull(self, number: int) -> PullRequest:
        return self._repo.get_pull(number)

    def changed_files(self, pr_number: int) -> List[str]:
        return [f.filename for f in self._repo.get_pull(pr_number).get_files()]

    def create_commit(
        self, mutations: Sequence[TreeMutation], base_branch: str, message: str
    ) -> str:
        """
        Create a commit on top of `base_branch` HEAD with the given tree entries.

        Only the tree/commit objects are created; no ref is moved.
        """
        ref = self._repo.get_git_ref(f"heads/{base_branch}")
        parent = self._repo.get_git_commit(ref.object.sha)
        elements = [m.to_input_element() for m in mutations]
        try:
            tree = self._repo.create_git_tree(elements, base_tree=parent.tree)
        except GithubException:
            logger.error(
                "[commit] create tree failed on %s with %d entries: %s",
                self.full_name,
                len(mutations),
                [m.path for m in mutations],
            )
            raise
        commit = self._repo.create_git_commit(message, tree, [parent])
        logger.info("[commit] created %s on top of %s", commit.sha, base_branch)
        return commit.sha

    def create_branch(self, commit_sha: str, branch: str) -> str:
        ref_name = f"refs/heads/{branch}"
        logger.info("[branch] creating %s at %s", ref_name, commit_sha)
        self._repo.create_git_ref(ref=ref_name, sha=commit_sha)
        return ref_name

    def create_pull(
        self,
        *,
        title: str,
        body: str,
        base: str,
        head: str,
        labels: Sequence[str] = (),
        assignee: str | None = None,
    ) -> CreatedPullRequest:
        pr = self._repo.create_pull(title=title, body=body, base=base, head=head)
        logger.info("[pr] opened #%s %s", pr.number, pr.html_url)
        if labels:
            pr.add_to_labels(*labels)
        if assignee:
            try:
                pr.add_to_assignees(assignee)
            except GithubException as exc:
                logger.warning(
                    "[pr] could not assign %s to #%s: %s", assignee, pr.number, exc
                )
        return CreatedPullRequest(number=pr.number, html_url=pr.html_url)

    def comment(self, pr_number: int, body: str) -> None:
        self._repo.get_issue(pr_number).create_comment(COMMENT_TAG + body)

    def add_labels(self, pr_number: int, labels: Sequence[str]) -> None:
        self._repo.get_issue(pr_number).add_to_labels(*labels)

    def merge(self, pr_number: int) -> None:
        self._repo.get_pull(pr_number).merge(commit_message="Auto-merge")

    def approve(self, pr_number: int) -> None:
        self._repo.get_pull(pr_number).create_review(event="APPROVE")

    def set_commit_status(
        self, sha: str, *, state: str, description: str, context: str, target_url: str
    ) -> None:
        self._repo.get_commit(sha).create_status(
            state=state, target_url=target_url, description=description, context=context
        )
