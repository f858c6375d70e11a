"""
Directory synchronization over the GitHub trees API.

Pointing a target directory at the source directory's tree SHA copies the whole
subtree without transferring any content. GitHub merges the new tree entry with
the base tree though, so files that only exist in the target survive; those get
explicit deletion entries.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Dict, List, Optional, Protocol

from github import GithubException

from gitops_promoter.github_gateway import DirEntry, TreeMutation, is_not_found

logger = logging.getLogger(__name__)


class DirectoryLister(Protocol):
    def list_directory(self, path: str, ref: str) -> List[DirEntry]: ...


def directory_tree_sha(lister: DirectoryLister, dir_path: str, ref: str) -> Optional[str]:
    """
    Return the git tree SHA of `dir_path` at `ref`, or None if it does not exist.

    The contents API only exposes a directory's SHA through its parent listing.
    A missing parent directory means the directory is missing too.
    """
    parent = posixpath.dirname(dir_path.rstrip("/"))
    try:
        entries = lister.list_directory(parent, ref)
    except GithubException as exc:
        if is_not_found(exc):
            return None
        logger.error("[sync] could not list %s at %s: %s", parent or "/", ref, exc)
        raise
    for entry in entries:
        if entry.path == dir_path.rstrip("/"):
            return entry.sha
    return None


def deletion_entries(lister: DirectoryLister, path: str, ref: str) -> List[TreeMutation]:
    """
    Deletion entries for every file under `path`.

    The trees API cannot delete a directory in one entry, so the whole subtree
    is walked.
    """
    try:
        entries = lister.list_directory(path, ref)
    except GithubException as exc:
        if is_not_found(exc):
            logger.info("[sync] skipping deletion of non-existing %s", path)
            return []
        raise

    mutations: List[TreeMutation] = []
    for entry in entries:
        if entry.type == "file":
            mutations.append(TreeMutation.delete_file(entry.path))
        elif entry.type == "dir":
            mutations.extend(deletion_entries(lister, entry.path, ref))
        else:
            logger.info("[sync] ignoring %s entry %s", entry.type, entry.path)
    return mutations


def flat_file_map(lister: DirectoryLister, root: str, ref: str) -> Dict[str, str]:
    """Map of path relative to `root` -> blob SHA for every file under `root`."""
    files: Dict[str, str] = {}
    root = root.rstrip("/")

    def walk(path: str) -> None:
        try:
            entries = lister.list_directory(path, ref)
        except GithubException as exc:
            if is_not_found(exc):
                return
            raise
        for entry in entries:
            if entry.type == "file":
                files[posixpath.relpath(entry.path, root)] = entry.sha
            elif entry.type == "dir":
                walk(entry.path)

    walk(root)
    return files


def plan_directory_sync(
    lister: DirectoryLister, source: str, target: str, ref: str
) -> List[TreeMutation]:
    """
    Tree mutations that make `target` hold exactly the content of `source` at `ref`.

    A missing source directory means the component was removed, so the target
    gets deleted as well.
    """
    source = source.rstrip("/")
    target = target.rstrip("/")
    source_sha = directory_tree_sha(lister, source, ref)

    if source_sha is None:
        logger.info("[sync] source %s not found at %s, deleting %s", source, ref, target)
        return deletion_entries(lister, target, ref)

    mutations = [TreeMutation.replace_directory(target, source_sha)]

    source_files = flat_file_map(lister, source, ref)
    target_files = flat_file_map(lister, target, ref)
    for rel_path in sorted(target_files):
        if rel_path not in source_files:
            logger.debug("[sync] %s not found under %s, marking as deletion", rel_path, source)
            mutations.append(TreeMutation.delete_file(f"{target}/{rel_path}"))
    return mutations
