"""
Async HTTP client for the GitHub REST API.

Covers the handful of endpoints the publisher needs: directory listings,
refs, file contents and pull requests.
"""
from typing import Any, Dict, List, Optional

import httpx

from proposal_publisher.data_models.schemas import ContentEntry, PullRequest
from proposal_publisher.exceptions import GitHubAPIError, NumberingError, RefConflictError
from proposal_publisher.utils.logger import logger


class GitHubClient:
    """
    Client for the GitHub REST API.

    Provides token authentication, response handling and async context
    manager support.
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the GitHub client.

        Args:
            token: GitHub token with contents and pull request scope
            base_url: API base URL (default https://api.github.com)
            timeout: Request timeout in seconds (default 30.0)
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._get_headers(token),
            timeout=timeout,
            transport=transport,
        )

    def _get_headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _handle_response(self, response: httpx.Response) -> Any:
        """
        Handle API response and raise errors if needed.

        Args:
            response: HTTP response

        Returns:
            Parsed JSON response

        Raises:
            GitHubAPIError: If the API returns an error
        """
        if response.status_code == 204:
            return {"success": True}

        try:
            data = response.json()
        except ValueError:
            data = {"message": "Failed to parse response", "raw": response.text}

        if response.status_code >= 400:
            error_msg = "Unknown error"
            if isinstance(data, dict) and "message" in data:
                error_msg = data["message"]
            raise GitHubAPIError(error_msg, response.status_code, data if isinstance(data, dict) else None)

        return data

    def _unexpected_payload(self, what: str, data: Any, error: Exception) -> GitHubAPIError:
        logger.error(f"[GitHub] Unexpected {what} payload: {error}")
        return GitHubAPIError(
            f"Unexpected {what} payload: {error}",
            502,
            data if isinstance(data, dict) else None,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[GitHub] {method} {url} failed: {e}")
            raise GitHubAPIError(f"Request failed: {e}", 503) from e
        return self._handle_response(response)

    async def list_directory(self, owner: str, repo: str, path: str) -> List[ContentEntry]:
        """
        List a directory in a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            path: Directory path inside the repository

        Returns:
            Directory entries

        Raises:
            NumberingError: If the path is not a directory
            GitHubAPIError: If the API returns an error
        """
        data = await self._request("GET", f"/repos/{owner}/{repo}/contents/{path}")

        # A file path returns a single object instead of a list
        if not isinstance(data, list):
            raise NumberingError(f"Proposals directory not found at {owner}/{repo}/{path}")

        try:
            return [ContentEntry(**entry) for entry in data]
        except (TypeError, ValueError) as e:
            raise self._unexpected_payload("directory listing", data, e) from e

    async def get_ref_sha(self, owner: str, repo: str, ref: str) -> str:
        """Return the commit sha a ref (e.g. "heads/master") points at."""
        data = await self._request("GET", f"/repos/{owner}/{repo}/git/ref/{ref}")
        try:
            return data["object"]["sha"]
        except (KeyError, TypeError) as e:
            raise self._unexpected_payload("ref", data, e) from e

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> Dict[str, Any]:
        """
        Create a git ref.

        Args:
            owner: Repository owner
            repo: Repository name
            ref: Fully qualified ref, e.g. "refs/heads/prop/42"
            sha: Commit sha the ref points at

        Returns:
            Created ref object

        Raises:
            RefConflictError: If the ref already exists
            GitHubAPIError: For any other API error
        """
        try:
            return await self._request(
                "POST",
                f"/repos/{owner}/{repo}/git/refs",
                json={"ref": ref, "sha": sha},
            )
        except GitHubAPIError as e:
            if e.status_code == 422 and "already exists" in str(e):
                raise RefConflictError(ref, e.response) from e
            raise

    async def create_file(
        self,
        owner: str,
        repo: str,
        path: str,
        branch: str,
        content: str,
        message: str,
    ) -> Dict[str, Any]:
        """
        Create a file on a branch.

        Args:
            owner: Repository owner
            repo: Repository name
            path: File path inside the repository
            branch: Branch to commit to
            content: Base64 encoded file content
            message: Commit message

        Returns:
            Content and commit objects returned by GitHub
        """
        return await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/contents/{path}",
            json={"message": message, "content": content, "branch": branch},
        )

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> PullRequest:
        """
        Open a pull request.

        Args:
            owner: Owner of the repository receiving the pull request
            repo: Name of the repository receiving the pull request
            head: Source branch, "owner:branch" when coming from a fork
            base: Target branch
            title: Pull request title
            body: Pull request description

        Returns:
            Created pull request
        """
        data = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={
                "title": title,
                "body": body,
                "head": head,
                "base": base,
                "maintainer_can_modify": True,
            },
        )
        try:
            return PullRequest(**data)
        except (TypeError, ValueError) as e:
            raise self._unexpected_payload("pull request", data, e) from e

    async def find_pull_request(self, owner: str, repo: str, head: str) -> Optional[PullRequest]:
        """
        Find a pull request opened from a head branch, in any state.

        Merged pull requests keep their head label after the branch is
        deleted, so this still finds proposals whose branch is gone.

        Args:
            owner: Owner of the repository receiving the pull request
            repo: Name of the repository receiving the pull request
            head: Source branch as "owner:branch"

        Returns:
            The most recent matching pull request, or None
        """
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"state": "all", "head": head, "per_page": 1},
        )
        if not data:
            return None
        try:
            return PullRequest(**data[0])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise self._unexpected_payload("pull request list", data, e) from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
