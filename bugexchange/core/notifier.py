"""
Bug Exchange - Submission Notifier

Tells users about submission events. Delivery is best-effort: it runs after
the data transaction has committed, is bounded by NOTIFY_TIMEOUT_SECONDS, and
never raises into the caller.

Transport is a JSON POST to NOTIFY_WEBHOOK_URL (mail relay, chat bridge, ...).
Without a webhook configured, messages are only logged.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional

import aiohttp

from bugexchange.config import settings
from bugexchange.core.reputation import reputation_for_bounty

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """A rendered message for one recipient."""
    recipient: str
    subject: str
    body: str
    event: str

    def to_dict(self) -> dict:
        return asdict(self)


class Notifier:
    """Sends submission lifecycle notifications."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        app_url: Optional[str] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else settings.NOTIFY_WEBHOOK_URL
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.NOTIFY_TIMEOUT_SECONDS
        self.app_url = app_url or settings.APP_URL

    # ------------------------------------------------------------------
    # Message builders
    # ------------------------------------------------------------------

    async def submission_approved(self, recipient: Optional[str], bug_title: str,
                                  bounty_amount, recipient_name: str) -> bool:
        points = reputation_for_bounty(bounty_amount)
        amount = Decimal(str(bounty_amount))
        body = (
            f"Hello {recipient_name}!\n\n"
            f'Your solution for "{bug_title}" has been approved.\n'
            f"You earned {amount:,.2f} and {points} reputation points.\n\n"
            f"Dashboard: {self.app_url}/dashboard"
        )
        return await self.deliver(Notification(
            recipient=recipient or "",
            subject="Your submission has been approved!",
            body=body,
            event="submission_approved",
        ))

    async def submission_rejected(self, recipient: Optional[str], bug_title: str,
                                  recipient_name: str) -> bool:
        body = (
            f"Hello {recipient_name}!\n\n"
            f'Thank you for your submission for "{bug_title}". '
            "Unfortunately, your solution was not approved this time.\n\n"
            f"Browse more bugs: {self.app_url}/bugs"
        )
        return await self.deliver(Notification(
            recipient=recipient or "",
            subject=f"Submission update for: {bug_title}",
            body=body,
            event="submission_rejected",
        ))

    async def submission_received(self, recipient: Optional[str], bug_title: str,
                                  submitter_name: str, bug_id: str) -> bool:
        body = (
            f"{submitter_name} has submitted a solution for your bug:\n\n"
            f"{bug_title}\n\n"
            f"Review it: {self.app_url}/bugs/{bug_id}"
        )
        return await self.deliver(Notification(
            recipient=recipient or "",
            subject=f"New submission for: {bug_title}",
            body=body,
            event="submission_received",
        ))

    async def comment_posted(self, recipient: Optional[str], subject: str,
                             message: str, bug_id: Optional[str]) -> bool:
        link = f"{self.app_url}/bugs/{bug_id}" if bug_id else f"{self.app_url}/dashboard"
        return await self.deliver(Notification(
            recipient=recipient or "",
            subject=subject,
            body=f"{message}\n\nView it: {link}",
            event="comment_posted",
        ))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def deliver(self, notification: Notification) -> bool:
        """Send a notification. Returns False on any failure; never raises."""
        if not notification.recipient:
            logger.warning(f"Notification '{notification.event}' skipped: recipient has no contact address")
            return False
        try:
            return await asyncio.wait_for(self._send(notification), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Notification '{notification.event}' to {notification.recipient} "
                f"timed out after {self.timeout_seconds}s"
            )
        except Exception as e:
            logger.warning(f"Notification '{notification.event}' to {notification.recipient} failed: {e}")
        return False

    async def _send(self, notification: Notification) -> bool:
        if not self.webhook_url:
            logger.info(f"[notify] {notification.event} -> {notification.recipient}: {notification.subject}")
            return True

        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.webhook_url,
                json=notification.to_dict(),
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                if resp.status >= 400:
                    logger.warning(f"Notifier webhook returned {resp.status} for '{notification.event}'")
                    return False
                return True


async def notify_quietly(send) -> bool:
    """Await a notifier call made after commit; any failure is logged and dropped."""
    try:
        return bool(await send)
    except Exception as e:
        logger.warning(f"Notification dropped: {e}")
        return False
