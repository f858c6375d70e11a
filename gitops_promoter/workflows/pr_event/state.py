from dataclasses import dataclass, field
from typing import Dict, List, Optional

from gitops_promoter.chain_metadata import PromotionChainMetadata
from gitops_promoter.deadline import Deadline
from gitops_promoter.delivery_controller import AppDiffResult, DeliveryController
from gitops_promoter.events import PrEventKind, PullRequestEvent
from gitops_promoter.github_gateway import CreatedPullRequest, RepoGateway
from gitops_promoter.promotion_plan import PromotionInstance, PromotionPlanner
from gitops_promoter.repo_config import RepoConfig
from gitops_promoter.settings import Settings


@dataclass
class PrEventDeps:
    """
    Collaborators for one PR event.

    `gateway` talks to the repository with the main identity. `approver` is only
    needed when the repo config asks for promotion PRs to be auto-approved, and
    `delivery` only when diff comments or branch syncing are enabled.
    """

    gateway: RepoGateway
    planner: PromotionPlanner
    settings: Settings
    delivery: Optional[DeliveryController] = None
    approver: Optional[RepoGateway] = None


@dataclass
class PrEventState:
    event: PullRequestEvent
    kind: PrEventKind
    metadata: PromotionChainMetadata
    default_branch: str = ""
    config: Optional[RepoConfig] = None
    plan: Dict[str, PromotionInstance] = field(default_factory=dict)
    # Plan keys not yet turned into promotion PRs, in processing order.
    pending_promotions: List[str] = field(default_factory=list)
    created_prs: List[CreatedPullRequest] = field(default_factory=list)
    changed_components: List[str] = field(default_factory=list)
    diff_results: List[AppDiffResult] = field(default_factory=list)
    comments_posted: int = 0
    deadline: Optional[Deadline] = None

    @property
    def pr_number(self) -> int:
        return self.event.pull_request.number

    @property
    def head_ref(self) -> str:
        return self.event.pull_request.head.ref

    @property
    def repo_url(self) -> str:
        return self.event.repository.html_url
