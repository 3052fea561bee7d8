"""
Telegram fan-out to admins for new wallet requests and tickets
"""

from unittest.mock import AsyncMock

import pytest
from telegram.error import TelegramError

from services.admin_notifications import AdminNotificationService

DEPOSIT = {
    "id": 7,
    "user_id": "user-1",
    "amount": "950.00",
    "amount_paid": "1000",
    "payment_method": "instapay",
    "country": "Egypt",
}


class TestAdminNotifications:
    """Notifications never raise into the caller"""

    @pytest.mark.asyncio
    async def test_deposit_sent_to_every_admin(self, notifier, mock_bot):
        assert await notifier.notify_new_deposit_request(DEPOSIT) is True
        assert mock_bot.send_message.await_count == 2
        chat_ids = [call.kwargs["chat_id"] for call in mock_bot.send_message.await_args_list]
        assert chat_ids == [1001, 1002]
        text = mock_bot.send_message.await_args.kwargs["text"]
        assert "#7" in text
        assert "950" in text

    @pytest.mark.asyncio
    async def test_withdraw_and_ticket_messages(self, notifier, mock_bot):
        await notifier.notify_new_withdraw_request(
            {"id": 3, "user_id": "user-2", "amount": "200", "amount_after_fee": "190", "phone_number": "+201012345678"}
        )
        await notifier.notify_new_support_ticket(
            {"ticket_code": "ST-2024-1234ABCD", "priority": "high", "category": "order", "subject": "Help"}
        )
        texts = [call.kwargs["text"] for call in mock_bot.send_message.await_args_list]
        assert "withdrawal request #3" in texts[0]
        assert "ST-2024-1234ABCD" in texts[-1]

    @pytest.mark.asyncio
    async def test_disabled_sends_nothing(self, mock_bot):
        service = AdminNotificationService(bot=mock_bot, admin_ids=[1], enabled=False)
        assert await service.notify_new_deposit_request(DEPOSIT) is False
        mock_bot.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_telegram_errors_are_contained(self, mock_bot):
        mock_bot.send_message = AsyncMock(side_effect=[TelegramError("blocked"), None])
        service = AdminNotificationService(bot=mock_bot, admin_ids=[1, 2], enabled=True)
        assert await service.notify_new_deposit_request(DEPOSIT) is True

    @pytest.mark.asyncio
    async def test_all_failures_report_false(self, mock_bot):
        mock_bot.send_message = AsyncMock(side_effect=TelegramError("down"))
        service = AdminNotificationService(bot=mock_bot, admin_ids=[1], enabled=True)
        assert await service.notify_new_deposit_request(DEPOSIT) is False
