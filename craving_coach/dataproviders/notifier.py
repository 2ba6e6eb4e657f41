"""Telegram delivery of scheduled nudges."""

from __future__ import annotations

import logging

from aiogram import Bot
from aiogram.enums import ParseMode

from craving_coach.core.entities.decision import NotificationRequest
from craving_coach.core.interfaces.notifier import AbstractNotifier
from craving_coach.utils import hub

logger = logging.getLogger(__name__)


class TelegramNotifier(AbstractNotifier):
    """Sends a nudge as a chat message with action buttons.

    Low-priority nudges are sent without sound.
    """

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def deliver(self, user_id: int, request: NotificationRequest) -> None:
        await self._bot.send_message(
            chat_id=user_id,
            text=hub.build_nudge_text(request),
            reply_markup=hub.build_nudge_keyboard(request),
            parse_mode=ParseMode.HTML,
            disable_notification=request.priority.silent,
        )
        logger.info(
            "Delivered %s nudge %s to user %s", request.priority.value, request.request_id, user_id
        )
