"""
Webhook intake and event dispatch.

Validation and parsing happen on the caller's thread so the HTTP response
reflects them; the event itself is handled on a worker thread. Each worker task
is a supervised boundary: whatever goes wrong is logged there and never reaches
the server.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Mapping, Optional

from gitops_promoter.client_cache import ClientRegistry
from gitops_promoter.delivery_controller import DeliveryController
from gitops_promoter.deadline import Deadline, run_with_deadline
from gitops_promoter.errors import DeadlineExceededError, PayloadError, SignatureError
from gitops_promoter.events import (
    IssueCommentEvent,
    PullRequestEvent,
    WebhookEvent,
    parse_event,
)
from gitops_promoter.github_gateway import RepoGateway
from gitops_promoter.promotion_plan import ConfigPromotionPlanner, PromotionPlanner
from gitops_promoter.settings import Settings
from gitops_promoter.workflows.comment_event.handler import handle_comment_event
from gitops_promoter.workflows.pr_event.state import PrEventDeps
from gitops_promoter.workflows.pr_event.workflow import handle_pr_event

logger = logging.getLogger(__name__)

EVENT_HEADER = "x-github-event"
SIGNATURE_256_HEADER = "x-hub-signature-256"
SIGNATURE_HEADER = "x-hub-signature"

VALIDATION_FAILED = "validation_failed"
PARSING_FAILED = "parsing_failed"
SUCCESSFUL = "successful"


def validate_signature(secret: str, headers: Mapping[str, str], body: bytes) -> None:
    """
    Check the GitHub HMAC signature of `body`.

    `headers` keys must be lower-case. The SHA-256 header is preferred; the
    legacy SHA-1 header is accepted when it is the only one present. An empty
    secret disables the check.
    """
    if not secret:
        return
    if SIGNATURE_256_HEADER in headers:
        algorithm, signature = "sha256", headers[SIGNATURE_256_HEADER]
    elif SIGNATURE_HEADER in headers:
        algorithm, signature = "sha1", headers[SIGNATURE_HEADER]
    else:
        raise SignatureError("missing signature header")

    prefix = f"{algorithm}="
    if not signature.startswith(prefix):
        raise SignatureError(f"signature is not a {algorithm} signature")
    expected = hmac.new(secret.encode("utf-8"), body, getattr(hashlib, algorithm)).hexdigest()
    if not hmac.compare_digest(expected, signature[len(prefix) :]):
        raise SignatureError("payload signature does not match")


class EventDispatcher:
    def __init__(
        self,
        settings: Settings,
        *,
        registry: Optional[ClientRegistry] = None,
        planner: Optional[PromotionPlanner] = None,
        delivery: Optional[DeliveryController] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or ClientRegistry(settings)
        self.planner = planner or ConfigPromotionPlanner()
        self.delivery = delivery
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.max_workers, thread_name_prefix="event"
        )
        self.hits: Counter = Counter()

    def receive_webhook(
        self, headers: Mapping[str, str], body: bytes
    ) -> Optional[Future]:
        """
        Validate and parse a webhook delivery, then queue it.

        Raises SignatureError or PayloadError for deliveries that must be
        rejected. Returns the queued task, or None for event types that are not
        handled.
        """
        lowered = {k.lower(): v for k, v in headers.items()}
        try:
            validate_signature(self.settings.webhook_secret, lowered, body)
        except SignatureError as exc:
            logger.error("[webhook] rejected delivery: %s", exc)
            self.hits[VALIDATION_FAILED] += 1
            raise

        event_type = lowered.get(EVENT_HEADER, "")
        try:
            event = parse_event(event_type, body)
        except PayloadError as exc:
            logger.error("[webhook] %s", exc)
            self.hits[PARSING_FAILED] += 1
            raise
        self.hits[SUCCESSFUL] += 1

        if event is None:
            logger.debug("[webhook] ignoring %s event", event_type or "untyped")
            return None
        return self.executor.submit(self.handle_event, event)

    def process_event_file(self, event_type: str, path: str | Path) -> None:
        """Replay a stored event through the same path as a webhook, synchronously."""
        logger.info("[event] processing %s event from %s", event_type, path)
        body = Path(path).read_bytes()
        try:
            event = parse_event(event_type, body)
        except PayloadError as exc:
            logger.error("[event] %s", exc)
            self.hits[PARSING_FAILED] += 1
            return
        if event is None:
            logger.info("[event] %s events are not handled", event_type)
            return
        self.handle_event(event)

    def handle_event(self, event: WebhookEvent) -> None:
        try:
            if isinstance(event, PullRequestEvent):
                self._handle_pr_event(event)
            elif isinstance(event, IssueCommentEvent):
                self._handle_comment_event(event)
        except Exception:
            logger.exception(
                "[event] unhandled failure for %s", event.repository.full_name
            )

    def _gateway(self, event: WebhookEvent) -> RepoGateway:
        clients = self.registry.main(event.repository.owner.login)
        repo = clients.api.get_repo(event.repository.full_name)
        return RepoGateway(repo, bot_login=clients.bot_login)

    def _handle_pr_event(self, event: PullRequestEvent) -> None:
        owner = event.repository.owner.login
        full_name = event.repository.full_name
        gateway = self._gateway(event)
        status = RepoGateway(self.registry.main(owner).status.get_repo(full_name, lazy=True))

        approver = None
        approver_clients = self.registry.approver(owner)
        if approver_clients is not None:
            approver = RepoGateway(
                approver_clients.api.get_repo(full_name, lazy=True),
                bot_login=approver_clients.bot_login,
            )

        deps = PrEventDeps(
            gateway=gateway,
            planner=self.planner,
            settings=self.settings,
            delivery=self.delivery,
            approver=approver,
        )
        handle_pr_event(event, deps, status=status)

    def _handle_comment_event(self, event: IssueCommentEvent) -> None:
        gateway = self._gateway(event)
        deadline = Deadline(self.settings.event_timeout_seconds)
        try:
            run_with_deadline(
                lambda: asyncio.to_thread(handle_comment_event, event, gateway, self.delivery),
                deadline,
            )
        except DeadlineExceededError:
            logger.error(
                "[comment] %s#%s timed out after %ss",
                event.repository.full_name,
                event.issue.number,
                self.settings.event_timeout_seconds,
            )

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
