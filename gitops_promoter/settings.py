from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

GITHUB_COMMENT_MAX_SIZE = 65536


@dataclass(frozen=True)
class GitHubIdentity:
    """Credentials for one GitHub identity (GitHub App or OAuth token)."""

    app_id: str | None = None
    private_key_path: str | None = None
    oauth_token: str | None = None

    @property
    def is_app(self) -> bool:
        return bool(self.app_id and self.private_key_path)

    @property
    def configured(self) -> bool:
        return self.is_app or bool(self.oauth_token)


@dataclass(frozen=True)
class Settings:
    webhook_secret: str = ""
    main_identity: GitHubIdentity = GitHubIdentity()
    approver_identity: GitHubIdentity = GitHubIdentity()
    github_host: str | None = None
    event_timeout_seconds: int = 5 * 60
    status_timeout_seconds: int = 60
    request_timeout_seconds: int = 30
    client_cache_size: int = 128
    max_workers: int = 8
    comment_max_size: int = GITHUB_COMMENT_MAX_SIZE
    commit_status_url_template_path: str | None = None
    templates_path: str | None = None
    bot_identity: str | None = None


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; defaulting to %s", name, raw, default)
        return default


def _identity(environ: Mapping[str, str], prefix: str) -> GitHubIdentity:
    return GitHubIdentity(
        app_id=environ.get(f"{prefix}GITHUB_APP_ID") or None,
        private_key_path=environ.get(f"{prefix}GITHUB_APP_PRIVATE_KEY_PATH") or None,
        oauth_token=environ.get(f"{prefix}GITHUB_OAUTH_TOKEN") or None,
    )


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        webhook_secret=env.get("GITHUB_WEBHOOK_SECRET", ""),
        main_identity=_identity(env, ""),
        approver_identity=_identity(env, "APPROVER_"),
        github_host=(env.get("GITHUB_HOST") or "").strip() or None,
        event_timeout_seconds=_env_int(env, "EVENT_TIMEOUT_SECONDS", 5 * 60),
        status_timeout_seconds=_env_int(env, "STATUS_TIMEOUT_SECONDS", 60),
        request_timeout_seconds=_env_int(env, "GITHUB_REQUEST_TIMEOUT_SECONDS", 30),
        client_cache_size=_env_int(env, "CLIENT_CACHE_SIZE", 128),
        max_workers=_env_int(env, "EVENT_WORKERS", 8),
        comment_max_size=_env_int(env, "COMMENT_MAX_SIZE", GITHUB_COMMENT_MAX_SIZE),
        commit_status_url_template_path=env.get(
            "CUSTOM_COMMIT_STATUS_URL_TEMPLATE_PATH"
        )
        or None,
        templates_path=env.get("TEMPLATES_PATH") or None,
        bot_identity=env.get("BOT_IDENTITY") or None,
    )
