"""
Telegram alerts for newly detected proposals.

Sending is best effort: failures are logged and never stop publication.
"""
from html import escape
from typing import Optional

import httpx

from proposal_publisher.data_models.schemas import Proposal, ProposalKind
from proposal_publisher.services.formatter import voting_links
from proposal_publisher.utils.logger import logger

TELEGRAM_API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096

KIND_LABELS = {
    ProposalKind.SOCIAL: "Social proposal",
    ProposalKind.EXECUTABLE: "Executable proposal",
}


def format_alert(proposal: Proposal) -> str:
    """HTML message announcing a new proposal."""
    title = escape(proposal.title or "Untitled proposal")
    links = " | ".join(
        f'<a href="{escape(url)}">{escape(label)}</a>'
        for label, url in voting_links(proposal.kind, proposal.id)
    )
    return (
        f"<b>New {KIND_LABELS[proposal.kind]}</b>\n\n"
        f"{title}\n"
        f"by {escape(proposal.author)}\n\n"
        f"{links}"
    )


class TelegramNotifier:
    """Posts messages to one Telegram chat through the Bot API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        bot_token: Optional[str],
        chat_id: Optional[str],
        api_base: str = TELEGRAM_API_BASE,
    ):
        self.client = client
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def send(self, text: str, disable_notification: bool = False) -> bool:
        """Send a message. Returns True on success."""
        if not self.is_configured:
            logger.debug("[Telegram] Not configured, message dropped")
            return False

        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": text[:MAX_MESSAGE_LENGTH],
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
            "disable_notification": disable_notification,
        }
        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"[Telegram] Error sending message: {e}")
            return False

        if response.is_success:
            logger.debug("[Telegram] Message sent")
            return True
        logger.warning(f"[Telegram] API error: {response.status_code} {response.text[:100]}")
        return False

    async def notify_new_proposal(self, proposal: Proposal) -> bool:
        return await self.send(format_alert(proposal))
