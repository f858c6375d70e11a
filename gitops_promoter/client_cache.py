from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generic, Hashable, Optional, TypeVar

from github import Auth, Github, GithubException, GithubIntegration

from gitops_promoter.git_urls import github_api_base_url
from gitops_promoter.settings import GitHubIdentity, Settings

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ClientCache(Generic[K, V]):
    """
    Bounded LRU cache with an atomic get-or-create.

    A miss stores a pending future under the cache lock and runs the factory
    outside it. Concurrent callers for the same account wait on that future, so
    credentials are exchanged once, and other accounts are served meanwhile.
    """

    def __init__(self, maxsize: int = 128) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._maxsize = maxsize
        self._items: "OrderedDict[K, Future]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def get_or_create(self, key: K, factory: Callable[[K], V]) -> V:
        with self._lock:
            entry = self._items.get(key)
            pending = entry is None
            if pending:
                entry = self._items[key] = Future()
                if len(self._items) > self._maxsize:
                    evicted, _ = self._items.popitem(last=False)
                    logger.debug("[clients] evicted %s", evicted)
            else:
                self._items.move_to_end(key)

        if not pending:
            return entry.result()
        try:
            value = factory(key)
        except Exception as exc:
            with self._lock:
                if self._items.get(key) is entry:
                    del self._items[key]
            entry.set_exception(exc)
            raise
        entry.set_result(value)
        return value


@dataclass
class GitHubClients:
    """Clients for one account: API calls, commit status writes and identity."""

    api: Github
    status: Github
    bot_login: str


def _auth_for_owner(identity: GitHubIdentity, owner: str, base_url: str) -> Auth.Auth:
    if identity.is_app:
        private_key = Path(identity.private_key_path or "").read_text(encoding="utf-8")
        app_auth = Auth.AppAuth(int(identity.app_id or 0), private_key)
        integration = GithubIntegration(auth=app_auth, base_url=base_url)
        try:
            installation = integration.get_org_installation(owner)
        except GithubException:
            installation = integration.get_user_installation(owner)
        return app_auth.get_installation_auth(installation.id)
    if identity.oauth_token:
        return Auth.Token(identity.oauth_token)
    raise ValueError("GitHub identity needs either an app id and key or an OAuth token")


def _bot_login(client: Github, identity: GitHubIdentity, base_url: str) -> str:
    try:
        if identity.is_app:
            private_key = Path(identity.private_key_path or "").read_text(encoding="utf-8")
            integration = GithubIntegration(
                auth=Auth.AppAuth(int(identity.app_id or 0), private_key),
                base_url=base_url,
            )
            return f"{integration.get_app().slug}[bot]"
        return client.get_user().login
    except GithubException as exc:
        logger.warning("[clients] could not resolve bot identity: %s", exc)
        return ""


def build_clients(
    identity: GitHubIdentity, owner: str, settings: Settings
) -> GitHubClients:
    base_url = github_api_base_url(settings.github_host)
    auth = _auth_for_owner(identity, owner, base_url)
    api = Github(auth=auth, base_url=base_url, timeout=settings.request_timeout_seconds)
    status = Github(auth=auth, base_url=base_url, timeout=settings.status_timeout_seconds)
    bot_login = settings.bot_identity or _bot_login(api, identity, base_url)
    logger.info("[clients] created GitHub clients for %s (bot=%s)", owner, bot_login)
    return GitHubClients(api=api, status=status, bot_login=bot_login)


class ClientRegistry:
    """Per-owner client caches for the main and the approver identities."""

    def __init__(
        self,
        settings: Settings,
        *,
        factory: Optional[Callable[[GitHubIdentity, str, Settings], GitHubClients]] = None,
    ) -> None:
        self._settings = settings
        self._factory = factory or build_clients
        self._main: ClientCache[str, GitHubClients] = ClientCache(settings.client_cache_size)
        self._approver: ClientCache[str, GitHubClients] = ClientCache(
            settings.client_cache_size
        )

    def main(self, owner: str) -> GitHubClients:
        return self._main.get_or_create(
            owner, lambda o: self._factory(self._settings.main_identity, o, self._settings)
        )

    def approver(self, owner: str) -> Optional[GitHubClients]:
        identity = self._settings.approver_identity
        if not identity.configured:
            return None
        return self._approver.get_or_create(
            owner, lambda o: self._factory(identity, o, self._settings)
        )
