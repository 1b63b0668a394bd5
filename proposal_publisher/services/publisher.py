"""
Publishes proposals to the docs repository.

For each proposal: assign a number from the upstream listing, create branch
prop/{id} on the fork, commit the rendered page, and open a pull request to
upstream. An existing pull request from that branch (open, closed or
merged), or an existing branch, means a previous run already started this
proposal, and nothing else is done.
"""
import re
from datetime import date
from typing import Callable, Optional

from proposal_publisher.config.numbering_settings import NumberingConfig
from proposal_publisher.config.settings import Settings
from proposal_publisher.data_models.schemas import Proposal, PublishResult, PublishStatus, PullRequest
from proposal_publisher.exceptions import (
    GitHubAPIError,
    NumberingError,
    PartialPublishError,
    RefConflictError,
)
from proposal_publisher.services.formatter import render
from proposal_publisher.services.github_client import GitHubClient
from proposal_publisher.services.numbering import current_term, next_number
from proposal_publisher.utils.logger import logger

PR_BODY = "This is an automated pull request to add a new DAO proposal to the ENS docs."
PR_TITLE_RE = re.compile(r"^Add EP (\S+)$")


class Publisher:
    """Branch, commit and pull request sequence for one proposal at a time."""

    def __init__(
        self,
        github: GitHubClient,
        settings: Settings,
        numbering: NumberingConfig,
        today: Callable[[], date] = date.today,
    ):
        self.github = github
        self.settings = settings
        self.numbering = numbering
        self.today = today

    async def assign_number(self) -> str:
        """
        Number the next proposal of the current term.

        Raises:
            NumberingError: If the upstream listing cannot be read
        """
        today = self.today()
        term = current_term(today, self.numbering.reference_year, self.numbering.reference_term)

        try:
            entries = await self.github.list_directory(
                self.settings.upstream_owner,
                self.settings.upstream_repo,
                self.settings.proposals_path,
            )
        except GitHubAPIError as e:
            raise NumberingError(f"Could not list proposals directory: {e.message}") from e

        return next_number(term, [entry.name for entry in entries], self.numbering.corrections_by_term(today))

    async def create_branch(self, branch: str) -> bool:
        """Create a branch on the fork. Returns False if it already exists."""
        sha = await self.github.get_ref_sha(
            self.settings.github_repo_owner,
            self.settings.github_repo_name,
            f"heads/{self.settings.base_branch}",
        )
        try:
            await self.github.create_ref(
                self.settings.github_repo_owner,
                self.settings.github_repo_name,
                f"refs/heads/{branch}",
                sha,
            )
        except RefConflictError as e:
            logger.warning(f"[Publisher] {e.message}, skipping")
            return False
        return True

    def head_label(self, branch: str) -> str:
        return f"{self.settings.github_repo_owner}:{branch}"

    async def find_existing_pull(self, branch: str) -> Optional[PullRequest]:
        """Pull request already opened upstream from this branch, merged or not."""
        pr = await self.github.find_pull_request(
            self.settings.upstream_owner,
            self.settings.upstream_repo,
            head=self.head_label(branch),
        )
        if pr:
            logger.warning(f"[Publisher] {branch} already has PR {pr.html_url}, skipping")
        return pr

    def file_path(self, number: str) -> str:
        return f"{self.settings.proposals_path}/{number}.mdx"

    async def publish(self, proposal: Proposal) -> PublishResult:
        """
        Publish a proposal as a pull request.

        Args:
            proposal: Proposal to publish

        Returns:
            PublishResult, with status ALREADY_STARTED if a pull request or
            branch for the proposal already existed

        Raises:
            NumberingError: If no number could be assigned
            GitHubAPIError: If existing pull requests could not be listed or
                the branch could not be created
            RenderError: If the document could not be rendered
            PartialPublishError: If the commit or pull request failed after
                the branch was created
        """
        branch = proposal.branch_name

        # The branch is usually deleted once its pull request is merged
        existing = await self.find_existing_pull(branch)
        if existing:
            match = PR_TITLE_RE.match(existing.title or "")
            return PublishResult(
                proposal_id=proposal.id,
                status=PublishStatus.ALREADY_STARTED,
                number=match.group(1) if match else None,
                branch=branch,
                pr_url=existing.html_url,
            )

        number = await self.assign_number()
        logger.info(f"[Publisher] Proposal {proposal.id} assigned EP {number}")

        if not await self.create_branch(branch):
            return PublishResult(
                proposal_id=proposal.id,
                status=PublishStatus.ALREADY_STARTED,
                number=number,
                branch=branch,
            )

        content = render(proposal, number)
        path = self.file_path(number)

        try:
            await self.github.create_file(
                self.settings.github_repo_owner,
                self.settings.github_repo_name,
                path=path,
                branch=branch,
                content=content,
                message=f"Add EP {number}",
            )
        except GitHubAPIError as e:
            raise PartialPublishError("commit", branch, number, e) from e

        try:
            pr = await self.github.create_pull_request(
                self.settings.upstream_owner,
                self.settings.upstream_repo,
                head=self.head_label(branch),
                base=self.settings.base_branch,
                title=f"Add EP {number}",
                body=PR_BODY,
            )
        except GitHubAPIError as e:
            raise PartialPublishError("pull_request", branch, number, e) from e

        logger.info(f"[Publisher] Created PR {pr.html_url}")
        return PublishResult(
            proposal_id=proposal.id,
            status=PublishStatus.PUBLISHED,
            number=number,
            branch=branch,
            path=path,
            pr_url=pr.html_url,
        )
