from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined

logger = logging.getLogger(__name__)

DRY_RUN_TEMPLATE = "dry-run-pr-comment.md.j2"
AUTO_MERGE_TEMPLATE = "auto-merge-comment.md.j2"


@lru_cache(maxsize=None)
def _environment(templates_path: str | None) -> Environment:
    # TEMPLATES_PATH lets operators override the bundled comment templates.
    loader = (
        FileSystemLoader(templates_path)
        if templates_path
        else PackageLoader("gitops_promoter", "templates")
    )
    return Environment(
        loader=loader,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )


def render_template(name: str, templates_path: str | None = None, **context: Any) -> str:
    path = templates_path or os.environ.get("TEMPLATES_PATH") or None
    return _environment(path).get_template(name).render(**context)
