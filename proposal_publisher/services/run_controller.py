"""
One scheduled check: fetch candidates, drop the ones already seen, then
notify, publish and mark each remaining proposal in turn.

Ticks never overlap: run_forever awaits each check before sleeping. A failure
while publishing one proposal is logged and the run moves on; that proposal is
not marked seen and comes back on the next tick.

With baseline_on_empty, the first tick against an empty seen store records
every fetched proposal without publishing. Feeds return the latest proposals,
not only new ones, so a first deployment would otherwise open pull requests
for proposals already in the docs.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import httpx

from proposal_publisher.config.numbering_settings import NumberingConfig, load_numbering_config
from proposal_publisher.config.settings import Settings
from proposal_publisher.data_models.schemas import Proposal, PublishStatus, RunSummary
from proposal_publisher.exceptions import PublisherError, SeenStoreError
from proposal_publisher.services.github_client import GitHubClient
from proposal_publisher.services.notifier import TelegramNotifier
from proposal_publisher.services.proposal_source import ProposalSource, build_source
from proposal_publisher.services.publisher import Publisher
from proposal_publisher.services.seen_store import SeenStore, get_seen_store
from proposal_publisher.utils.logger import logger


class RunController:
    """Runs the fetch -> filter -> notify/publish -> mark-seen sequence."""

    def __init__(
        self,
        source: ProposalSource,
        seen_store: SeenStore,
        notifier: TelegramNotifier,
        publisher: Publisher,
        max_per_run: int = 5,
        baseline_on_empty: bool = False,
    ):
        self.source = source
        self.seen_store = seen_store
        self.notifier = notifier
        self.publisher = publisher
        self.max_per_run = max_per_run
        self.baseline_on_empty = baseline_on_empty
        self._lock = asyncio.Lock()

    async def _unseen(self, candidates: List[Proposal], summary: RunSummary) -> List[Proposal]:
        fresh = []
        for proposal in candidates:
            try:
                if await self.seen_store.exists(proposal.id):
                    continue
            except SeenStoreError as e:
                summary.failed[proposal.id] = e.message
                continue
            # Feeds can repeat a proposal within one fetch
            if any(p.id == proposal.id for p in fresh):
                continue
            fresh.append(proposal)
        return fresh

    async def check(self) -> RunSummary:
        """
        Run one check. Concurrent callers wait for the running check to finish.

        Returns:
            RunSummary of what was published, skipped, failed or deferred

        Raises:
            SourceUnavailableError: If the proposal feed cannot be read.
                No seen markers are written in that case.
            SeenStoreError: If the seen store cannot be checked for a baseline
        """
        async with self._lock:
            return await self._check()

    async def _check(self) -> RunSummary:
        summary = RunSummary()
        candidates = await self.source.fetch_recent()
        summary.fetched = len(candidates)

        if self.baseline_on_empty and await self.seen_store.is_empty():
            await self._baseline(candidates, summary)
            return summary

        fresh = await self._unseen(candidates, summary)
        if not fresh:
            logger.info("[RunController] No new proposals")
            return summary

        batch, deferred = fresh[:self.max_per_run], fresh[self.max_per_run:]
        summary.deferred = [p.id for p in deferred]
        if deferred:
            logger.warning(f"[RunController] {len(deferred)} proposals deferred to the next run")

        logger.info(f"[RunController] Processing {len(batch)} new proposals")
        for proposal in batch:
            await self._process(proposal, summary)
        return summary

    async def _baseline(self, candidates: List[Proposal], summary: RunSummary) -> None:
        for proposal in candidates:
            if proposal.id in summary.baselined:
                continue
            await self.seen_store.record(proposal.id)
            summary.baselined.append(proposal.id)
        logger.warning(
            f"[RunController] Seen store was empty, recorded {len(summary.baselined)} "
            "existing proposals as a baseline without publishing"
        )

    async def _process(self, proposal: Proposal, summary: RunSummary) -> None:
        await self.notifier.notify_new_proposal(proposal)

        try:
            result = await self.publisher.publish(proposal)
        except PublisherError as e:
            logger.error(f"[RunController] Proposal {proposal.id} failed: {e.message}", exc_info=True)
            summary.failed[proposal.id] = e.message
            return

        if result.status == PublishStatus.ALREADY_STARTED:
            summary.already_started.append(proposal.id)
        else:
            summary.published.append(result)

        try:
            await self.seen_store.record(proposal.id)
        except SeenStoreError as e:
            # The next tick retries and stops at the existing branch
            summary.failed[proposal.id] = e.message


async def run_forever(
    controller: RunController,
    interval_seconds: float,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Check every interval_seconds until stop_event is set."""
    stop_event = stop_event or asyncio.Event()
    logger.info(f"[RunController] Polling every {interval_seconds}s")

    while not stop_event.is_set():
        try:
            summary = await controller.check()
            logger.info(
                f"[RunController] Run finished: {len(summary.published)} published, "
                f"{len(summary.failed)} failed, {len(summary.deferred)} deferred"
            )
        except PublisherError as e:
            logger.error(f"[RunController] Run aborted: {e.message}")

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass


@asynccontextmanager
async def create_controller(
    settings: Settings,
    numbering: Optional[NumberingConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[RunController]:
    """Wire a RunController from settings and close its HTTP clients on exit."""
    numbering = numbering or load_numbering_config()
    seen_store = get_seen_store(settings)

    async with httpx.AsyncClient(timeout=30.0, transport=transport) as http_client:
        async with GitHubClient(
            settings.github_token,
            base_url=settings.github_api_url,
            transport=transport,
        ) as github:
            yield RunController(
                source=build_source(settings, http_client),
                seen_store=seen_store,
                notifier=TelegramNotifier(http_client, settings.telegram_bot_token, settings.telegram_chat_id),
                publisher=Publisher(github, settings, numbering),
                max_per_run=settings.max_proposals_per_run,
                baseline_on_empty=settings.baseline_on_empty,
            )
