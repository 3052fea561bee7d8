"""
Admin Notification Service

Pushes a short Telegram message to every configured admin when a new
deposit request, withdrawal request or support ticket needs review.
Notification failures are logged and reported as False; they never undo
or block the business operation that triggered them.
"""

import logging
from typing import Any, Dict, List, Optional

from telegram import Bot
from telegram.error import TelegramError

from config import Config
from utils.helpers import format_currency

logger = logging.getLogger(__name__)


class AdminNotificationService:
    """Telegram fan-out to the admin chat ids"""

    def __init__(self, bot: Optional[Bot] = None, admin_ids: Optional[List[int]] = None, enabled: Optional[bool] = None):
        self.admin_ids = list(Config.ADMIN_IDS if admin_ids is None else admin_ids)
        self.enabled = Config.ADMIN_NOTIFICATIONS_ENABLED if enabled is None else enabled
        self.bot = bot
        if self.enabled and self.bot is None:
            self.bot = Bot(token=Config.BOT_TOKEN)

        if not self.enabled:
            logger.info("Admin notifications disabled via configuration")

    async def _broadcast(self, text: str, event: str) -> bool:
        if not self.enabled or self.bot is None or not self.admin_ids:
            logger.debug(f"Admin notification skipped ({event}): disabled")
            return False

        delivered = 0
        for admin_id in self.admin_ids:
            try:
                await self.bot.send_message(chat_id=admin_id, text=text)
                delivered += 1
            except TelegramError as e:
                logger.error(f"❌ TELEGRAM_ERROR: event={event} admin={admin_id} error={e}")

        logger.info(f"✅ ADMIN_NOTIFIED: event={event} delivered={delivered}/{len(self.admin_ids)}")
        return delivered > 0

    async def notify_new_deposit_request(self, request: Dict[str, Any]) -> bool:
        text = (
            f"💰 New deposit request #{request['id']}\n"
            f"User: {request['user_id']}\n"
            f"Paid: {format_currency(request.get('amount_paid'))}\n"
            f"To credit: {format_currency(request.get('amount'))}\n"
            f"Method: {request.get('payment_method') or 'n/a'} ({request.get('country') or 'n/a'})"
        )
        return await self._broadcast(text, "deposit_request")

    async def notify_new_withdraw_request(self, request: Dict[str, Any]) -> bool:
        text = (
            f"🏧 New withdrawal request #{request['id']}\n"
            f"User: {request['user_id']}\n"
            f"Amount: {format_currency(request.get('amount'))}\n"
            f"After fee: {format_currency(request.get('amount_after_fee'))}\n"
            f"Phone: {request.get('phone_number')}"
        )
        return await self._broadcast(text, "withdraw_request")

    async def notify_new_support_ticket(self, ticket: Dict[str, Any]) -> bool:
        text = (
            f"🎫 New support ticket {ticket['ticket_code']}\n"
            f"Priority: {ticket.get('priority')} | Category: {ticket.get('category')}\n"
            f"Subject: {ticket.get('subject')}"
        )
        return await self._broadcast(text, "support_ticket")
