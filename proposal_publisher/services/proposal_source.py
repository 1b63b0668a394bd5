"""
Governance feeds that yield candidate proposals.

Snapshot carries the DAO's social (off-chain) votes, Tally its executable
(on-chain governor) proposals. Both are GraphQL APIs queried for the most
recent proposals; deduplication against already-published ones happens in
the run controller.
"""
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from proposal_publisher.config.settings import Settings
from proposal_publisher.data_models.schemas import Proposal, ProposalKind
from proposal_publisher.exceptions import SourceUnavailableError
from proposal_publisher.utils.logger import logger

HEADING_RE = re.compile(r"^#{1,6}[ \t]+(.+?)[ \t#]*$", re.MULTILINE)

SNAPSHOT_PROPOSALS_QUERY = """
query Proposals($space: String!, $first: Int!) {
  proposals(
    first: $first
    where: { space: $space }
    orderBy: "created"
    orderDirection: desc
  ) {
    id
    title
    body
    author
    created
  }
}
"""

TALLY_PROPOSALS_QUERY = """
query Proposals($input: ProposalsInput!) {
  proposals(input: $input) {
    nodes {
      ... on Proposal {
        id
        onchainId
        createdAt
        metadata {
          title
          description
        }
        proposer {
          address
          name
          ens
        }
      }
    }
  }
}
"""


def first_heading(markdown: str) -> Optional[str]:
    """Text of the first ATX heading in a Markdown document."""
    match = HEADING_RE.search(markdown or "")
    return match.group(1).strip() if match else None


class ProposalSource(ABC):
    """A feed of recent governance proposals."""

    name: str = "source"

    @abstractmethod
    async def fetch_recent(self) -> List[Proposal]:
        """Fetch recent proposals.

        Raises:
            SourceUnavailableError: If the feed cannot be read
        """
        raise NotImplementedError("Subclasses must implement fetch_recent")


class GraphQLSource(ProposalSource):
    """Shared POST-a-query plumbing for GraphQL feeds."""

    def __init__(self, url: str, client: httpx.AsyncClient, limit: int = 10):
        self.url = url
        self.client = client
        self.limit = limit

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.post(
                self.url,
                json={"query": query, "variables": variables},
                headers=self._headers(),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(f"HTTP {e.response.status_code}", source=self.name) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SourceUnavailableError(str(e), source=self.name) from e

        if payload.get("errors"):
            message = payload["errors"][0].get("message", "GraphQL error")
            raise SourceUnavailableError(message, source=self.name)

        return payload.get("data") or {}


class SnapshotSource(GraphQLSource):
    """Social proposals from a Snapshot space."""

    name = "snapshot"

    def __init__(self, url: str, client: httpx.AsyncClient, space: str, limit: int = 10):
        super().__init__(url, client, limit)
        self.space = space

    async def fetch_recent(self) -> List[Proposal]:
        data = await self._query(SNAPSHOT_PROPOSALS_QUERY, {"space": self.space, "first": self.limit})
        proposals = []
        for item in data.get("proposals") or []:
            title = (item.get("title") or "").strip() or None
            body = item.get("body") or ""
            proposals.append(Proposal(
                id=item["id"],
                kind=ProposalKind.SOCIAL,
                author=item.get("author") or "unknown",
                title=title,
                # Snapshot keeps the title out of the body
                body=f"# {title}\n\n{body}" if title else body,
                created_at=datetime.fromtimestamp(item["created"], tz=timezone.utc) if item.get("created") else None,
            ))
        logger.info(f"[Snapshot] Fetched {len(proposals)} proposals from {self.space}")
        return proposals


class TallySource(GraphQLSource):
    """Executable proposals from a Tally-indexed governor."""

    name = "tally"

    def __init__(self, url: str, client: httpx.AsyncClient, api_key: str, governor_id: str, limit: int = 10):
        super().__init__(url, client, limit)
        self.api_key = api_key
        self.governor_id = governor_id

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["Api-Key"] = self.api_key
        return headers

    async def fetch_recent(self) -> List[Proposal]:
        variables = {
            "input": {
                "filters": {"governorId": self.governor_id},
                "sort": {"sortBy": "id", "isDescending": True},
                "page": {"limit": self.limit},
            }
        }
        data = await self._query(TALLY_PROPOSALS_QUERY, variables)
        nodes = (data.get("proposals") or {}).get("nodes") or []

        proposals = []
        for node in nodes:
            metadata = node.get("metadata") or {}
            proposer = node.get("proposer") or {}
            description = metadata.get("description") or ""
            proposals.append(Proposal(
                # Agora and Tally links use the on-chain id
                id=node.get("onchainId") or node["id"],
                kind=ProposalKind.EXECUTABLE,
                author=proposer.get("ens") or proposer.get("name") or proposer.get("address") or "unknown",
                title=first_heading(description) or metadata.get("title") or None,
                body=description,
                created_at=node.get("createdAt"),
            ))
        logger.info(f"[Tally] Fetched {len(proposals)} proposals for {self.governor_id}")
        return proposals


class CompositeSource(ProposalSource):
    """Merges several feeds, oldest proposal first."""

    name = "composite"

    def __init__(self, sources: Sequence[ProposalSource]):
        self.sources = list(sources)

    async def fetch_recent(self) -> List[Proposal]:
        proposals: List[Proposal] = []
        for source in self.sources:
            proposals.extend(await source.fetch_recent())

        # Numbers are handed out in processing order, so process by creation time
        proposals.sort(key=_created_key)
        return proposals


def _created_key(proposal: Proposal) -> datetime:
    if proposal.created_at is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if proposal.created_at.tzinfo is None:
        return proposal.created_at.replace(tzinfo=timezone.utc)
    return proposal.created_at


def build_source(settings: Settings, client: httpx.AsyncClient) -> ProposalSource:
    """Build the configured feeds. Tally is skipped without an API key."""
    sources: List[ProposalSource] = [
        SnapshotSource(
            settings.snapshot_api_url,
            client,
            space=settings.snapshot_space,
            limit=settings.proposal_fetch_limit,
        )
    ]
    if settings.tally_api_key:
        sources.append(TallySource(
            settings.tally_api_url,
            client,
            api_key=settings.tally_api_key,
            governor_id=settings.tally_governor_id,
            limit=settings.proposal_fetch_limit,
        ))
    else:
        logger.warning("[Tally] TALLY_API_KEY not set, executable proposals will not be picked up")
    return CompositeSource(sources)
