"""
Pydantic schemas for proposals, publication results and GitHub payloads.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ProposalKind(str, Enum):
    """Category of governance action. Selects the metadata template."""
    SOCIAL = "social"
    EXECUTABLE = "executable"


class Proposal(BaseModel):
    """A governance proposal as delivered by a proposal source."""
    id: str = Field(..., description="Stable identifier from the governance feed")
    kind: ProposalKind = Field(..., description="Proposal category")
    author: str = Field(..., description="Display handle credited in the document")
    title: Optional[str] = Field(None, description="Title, when the feed provides one")
    body: str = Field(..., description="Raw Markdown body")
    created_at: Optional[datetime] = Field(None, description="Creation time on the feed")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # On-chain proposal ids arrive as large integers
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def branch_name(self) -> str:
        return f"prop/{self.id}"


class PublishStatus(str, Enum):
    """Outcome of a publish call."""
    PUBLISHED = "published"
    ALREADY_STARTED = "already_started"


class PublishResult(BaseModel):
    """Result of publishing one proposal."""
    proposal_id: str
    status: PublishStatus
    number: Optional[str] = None
    branch: str
    path: Optional[str] = None
    pr_url: Optional[str] = None


class RunSummary(BaseModel):
    """What one scheduled check did."""
    fetched: int = 0
    published: List[PublishResult] = Field(default_factory=list)
    already_started: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    deferred: List[str] = Field(default_factory=list)
    baselined: List[str] = Field(default_factory=list)


# ==================
# GitHub API Schemas
# ==================

class ContentEntry(BaseModel):
    """One entry of a repository directory listing."""
    name: str
    path: str
    type: str = "file"
    sha: Optional[str] = None


class PullRequest(BaseModel):
    """Subset of the pull request returned by GitHub."""
    number: int
    html_url: str
    title: Optional[str] = None
