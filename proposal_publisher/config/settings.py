import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from proposal_publisher.exceptions import ConfigurationError

load_dotenv()  # Load environment variables from .env file


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.environ.get(name) or default).lower() in ("true", "1", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")


class Settings(BaseModel):
    """Runtime configuration, read from the environment by from_env()."""

    # --------------------------------------------------
    # GitHub: the fork branches and files are written to
    # --------------------------------------------------
    github_token: str
    github_repo_owner: str
    github_repo_name: str
    github_api_url: str = "https://api.github.com"

    # --------------------------------------------------
    # GitHub: the upstream docs repo pull requests target
    # --------------------------------------------------
    upstream_owner: str = "ensdomains"
    upstream_repo: str = "docs"
    base_branch: str = "master"
    proposals_path: str = "src/pages/dao/proposals"
    is_dev: bool = False

    # --------------------------------------------------
    # Proposal sources
    # --------------------------------------------------
    snapshot_space: str = "ens.eth"
    snapshot_api_url: str = "https://hub.snapshot.org/graphql"
    tally_api_key: Optional[str] = None
    tally_governor_id: str = "eip155:1:0x323A76393544d5ecca80cd6ef2A560C6a395b7E3"
    tally_api_url: str = "https://api.tally.xyz/query"
    proposal_fetch_limit: int = 10

    # --------------------------------------------------
    # Telegram notifications
    # --------------------------------------------------
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    # --------------------------------------------------
    # Run control
    # --------------------------------------------------
    poll_interval_seconds: int = 300
    max_proposals_per_run: int = 5
    poll_on_startup: bool = False
    check_token: Optional[str] = None
    baseline_on_empty: bool = True

    # --------------------------------------------------
    # Seen-set store
    # --------------------------------------------------
    # Defaults to "memory" in dev mode, "postgresql" otherwise
    seen_store: Optional[str] = None
    database_host: Optional[str] = None
    database_port: str = "5432"
    database_name: Optional[str] = None
    database_user: Optional[str] = None
    database_password: Optional[str] = None

    def model_post_init(self, __context) -> None:
        if self.seen_store is None:
            self.seen_store = "memory" if self.is_dev else "postgresql"
        if self.is_dev:
            # Open PRs against our own fork in dev mode
            self.upstream_owner = self.github_repo_owner
            self.upstream_repo = self.github_repo_name

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If GitHub credentials or repo are missing
        """
        token = os.environ.get("GITHUB_TOKEN")
        owner = os.environ.get("GITHUB_REPO_OWNER")
        repo = os.environ.get("GITHUB_REPO_NAME")
        if not token or not owner or not repo:
            raise ConfigurationError("Missing GitHub config")

        optional = {
            "github_api_url": os.environ.get("GITHUB_API_URL"),
            "upstream_owner": os.environ.get("GITHUB_UPSTREAM_OWNER"),
            "upstream_repo": os.environ.get("GITHUB_UPSTREAM_REPO"),
            "base_branch": os.environ.get("GITHUB_BASE_BRANCH"),
            "proposals_path": os.environ.get("PROPOSALS_PATH"),
            "snapshot_space": os.environ.get("SNAPSHOT_SPACE"),
            "snapshot_api_url": os.environ.get("SNAPSHOT_API_URL"),
            "tally_governor_id": os.environ.get("TALLY_GOVERNOR_ID"),
            "tally_api_url": os.environ.get("TALLY_API_URL"),
            "database_port": os.environ.get("DATABASE_PORT"),
        }

        return cls(
            github_token=token,
            github_repo_owner=owner,
            github_repo_name=repo,
            is_dev=_env_flag("IS_DEV"),
            tally_api_key=os.environ.get("TALLY_API_KEY") or None,
            proposal_fetch_limit=_env_int("PROPOSAL_FETCH_LIMIT", 10),
            telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN") or None,
            telegram_chat_id=os.environ.get("TELEGRAM_CHAT_ID") or None,
            poll_interval_seconds=_env_int("POLL_INTERVAL_SECONDS", 300),
            max_proposals_per_run=_env_int("MAX_PROPOSALS_PER_RUN", 5),
            poll_on_startup=_env_flag("POLL_ON_STARTUP"),
            check_token=os.environ.get("CHECK_TOKEN") or None,
            baseline_on_empty=_env_flag("BASELINE_ON_EMPTY", "true"),
            seen_store=(os.environ.get("SEEN_STORE") or "").lower() or None,
            database_host=os.environ.get("DATABASE_HOST"),
            database_name=os.environ.get("DATABASE_NAME"),
            database_user=os.environ.get("DATABASE_USER"),
            database_password=os.environ.get("DATABASE_PASSWORD"),
            **{key: value for key, value in optional.items() if value},
        )
