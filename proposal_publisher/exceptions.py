"""
Custom exceptions for the proposal publisher.

Every failure raised while publishing a proposal derives from PublisherError,
so the run controller can isolate it to that one proposal and move on.
"""
from typing import Any, Dict, Optional


class PublisherError(Exception):
    """Base exception for all publisher errors."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses and run summaries."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.code,
            "error_message": self.message,
            "retryable": self.retryable,
        }


# ============================================
# Run-level errors
# ============================================

class ConfigurationError(PublisherError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message, code=500, retryable=False)


class SourceUnavailableError(PublisherError):
    """A governance feed could not be read. Aborts the whole run."""

    def __init__(self, message: str = "Proposal source unavailable", source: str = ""):
        self.source = source
        full_message = f"{source}: {message}" if source else message
        super().__init__(full_message, code=502, retryable=True)


class SeenStoreError(PublisherError):
    """The seen-set store could not be read or written."""

    def __init__(self, message: str = "Seen store unavailable"):
        super().__init__(message, code=503, retryable=True)


# ============================================
# GitHub errors
# ============================================

class GitHubAPIError(PublisherError):
    """The GitHub REST API returned an error or could not be reached."""

    def __init__(self, message: str, status_code: int, response: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.response = response
        super().__init__(f"GitHub API Error {status_code}: {message}", code=502, retryable=True)


class RefConflictError(GitHubAPIError):
    """The git ref being created already exists."""

    def __init__(self, ref: str, response: Optional[Dict[str, Any]] = None):
        self.ref = ref
        super().__init__(f"Reference already exists: {ref}", 422, response)


# ============================================
# Per-proposal errors
# ============================================

class NumberingError(PublisherError):
    """The proposal number could not be assigned."""

    def __init__(self, message: str = "Could not assign proposal number"):
        super().__init__(message, code=502, retryable=True)


class RenderError(PublisherError):
    """The proposal document could not be rendered."""

    def __init__(self, message: str = "Could not render proposal", proposal_id: str = ""):
        self.proposal_id = proposal_id
        full_message = f"Proposal '{proposal_id}': {message}" if proposal_id else message
        # Rendering is deterministic, so a retry fails the same way
        super().__init__(full_message, code=422, retryable=False)


class PartialPublishError(PublisherError):
    """A branch was created but a later publication step failed.

    The branch is left in place. A later run will see the existing branch and
    skip the proposal, so this needs manual cleanup.
    """

    def __init__(self, stage: str, branch: str, number: str, cause: Exception):
        self.stage = stage
        self.branch = branch
        self.number = number
        self.cause = cause
        message = (
            f"EP {number}: {stage} step failed after branch '{branch}' was created "
            f"(branch left in place, manual cleanup required): {cause}"
        )
        super().__init__(message, code=502, retryable=False)
