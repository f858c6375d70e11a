from __future__ import annotations

import urllib.parse
from typing import Optional

GITHUB_PUBLIC_BASE_URL = "https://github.com"
GITHUB_PUBLIC_API_URL = "https://api.github.com"


def _normalize_host(host: Optional[str]) -> Optional[str]:
    if not host:
        return None
    host = host.strip().rstrip("/")
    if not host:
        return None
    if not host.startswith("http"):
        host = f"https://{host}"
    return host


def github_api_base_url(host: Optional[str]) -> str:
    """REST API base URL; GitHub Enterprise Server serves it under /api/v3."""
    normalized = _normalize_host(host)
    if not normalized or normalized == GITHUB_PUBLIC_BASE_URL:
        return GITHUB_PUBLIC_API_URL
    return f"{normalized}/api/v3"


def github_slug_from_url(url: str) -> Optional[str]:
    """Extract owner/repo slug from common GitHub HTTPS or SSH URLs."""
    if url.startswith("git@"):
        _, _, path = url.partition(":")
        return path.removesuffix(".git") or None

    parsed = urllib.parse.urlparse(url)
    if parsed.netloc and parsed.path.strip("/"):
        return parsed.path.strip("/").removesuffix(".git")

    return None
