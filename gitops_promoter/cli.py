import argparse
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .bump_version import bump_version
from .client_cache import ClientRegistry
from .git_urls import github_slug_from_url
from .github_gateway import RepoGateway
from .logging_config import configure_logging
from .server import serve
from .settings import load_settings
from .webhook import EventDispatcher

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gitops-promoter",
        description="Promote GitOps changes between environment directories via PRs.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_cmd = sub.add_parser("serve", help="Run the webhook server")
    serve_cmd.add_argument("--host", default=os.environ.get("LISTEN_HOST", "0.0.0.0"))
    serve_cmd.add_argument("--port", type=int, default=int(os.environ.get("LISTEN_PORT", "8080")))

    event_cmd = sub.add_parser("event", help="Handle a single event read from a file")
    event_cmd.add_argument("-t", "--type", required=True, help="GitHub event type, e.g. pull_request")
    event_cmd.add_argument("-f", "--file", required=True, help="Path to the event payload JSON")

    bump_cmd = sub.add_parser("bump-overwrite", help="Overwrite a file on the default branch through a PR")
    bump_cmd.add_argument(
        "-t",
        "--target-repo",
        default=os.environ.get("TARGET_REPO", ""),
        help="Target repository slug (org/repo) or URL, defaults to TARGET_REPO",
    )
    bump_cmd.add_argument(
        "-f",
        "--target-file",
        default=os.environ.get("TARGET_FILE", ""),
        help="Target file path from the repo root, defaults to TARGET_FILE",
    )
    bump_cmd.add_argument("-c", "--file", required=True, help="File holding the new content")
    bump_cmd.add_argument("-g", "--github-host", default="", help="GitHub Enterprise Server hostname")
    bump_cmd.add_argument(
        "-p",
        "--triggering-repo",
        default=os.environ.get("GITHUB_REPOSITORY", ""),
        help="Repository triggering the bump, defaults to GITHUB_REPOSITORY",
    )
    bump_cmd.add_argument(
        "-s",
        "--triggering-repo-sha",
        default=os.environ.get("GITHUB_SHA", ""),
        help="Commit SHA of the triggering repository, defaults to GITHUB_SHA",
    )
    bump_cmd.add_argument(
        "-a",
        "--triggering-actor",
        default=os.environ.get("GITHUB_ACTOR", ""),
        help="User who triggered the bump, defaults to GITHUB_ACTOR",
    )
    bump_cmd.add_argument("--auto-merge", action="store_true", help="Merge the PR once opened")
    return parser.parse_args(argv)


def _run_bump(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.github_host:
        settings = dataclasses.replace(settings, github_host=args.github_host)

    slug = args.target_repo
    if "://" in slug or slug.startswith("git@"):
        slug = github_slug_from_url(slug) or ""
    if "/" not in slug or not args.target_file:
        logger.error("[bump] a target repo (org/repo) and a target file are required")
        return 2

    owner = slug.split("/", 1)[0]
    clients = ClientRegistry(settings).main(owner)
    gateway = RepoGateway(clients.api.get_repo(slug), bot_login=clients.bot_login)
    bump_version(
        gateway,
        file_path=args.target_file,
        new_content=Path(args.file).read_text(encoding="utf-8"),
        triggering_repo=args.triggering_repo,
        triggering_sha=args.triggering_repo_sha,
        triggering_actor=args.triggering_actor,
        auto_merge=args.auto_merge,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level, force=True)

    if args.command == "bump-overwrite":
        sys.exit(_run_bump(args))

    dispatcher = EventDispatcher(load_settings())
    if args.command == "serve":
        serve(dispatcher, args.host, args.port)
    elif args.command == "event":
        try:
            dispatcher.process_event_file(args.type, args.file)
        finally:
            dispatcher.shutdown()


if __name__ == "__main__":
    main()
