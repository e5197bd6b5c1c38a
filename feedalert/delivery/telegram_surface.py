"""
Telegram Notification Surface
=============================

Shows alerts as messages in one Telegram chat. Each alert key maps to the
message that displayed it, so showing a key again edits that message in
place instead of posting a new one.
"""

import html
from collections import OrderedDict
from typing import List, Optional, Tuple

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

from .notification_policy import AlertAction, BlinkPattern
from ..utils.exceptions import NotificationError
from ..utils.logging import get_logger_for_component

MAX_MESSAGE_LENGTH = 4096  # Telegram limit
MAX_CAPTION_LENGTH = 1024
MAX_TRACKED_ALERTS = 256


def format_alert(title: str, body: str, limit: int) -> str:
    """HTML message text with a bold title, truncated to ``limit``."""
    header = f"<b>{html.escape(title[:limit // 4])}</b>" if title else ""

    def compose(text: str) -> str:
        escaped = html.escape(text)
        if header and escaped:
            return f"{header}\n{escaped}"
        return header or escaped

    message = compose(body)
    while len(message) > limit and body:
        body = body[:-(len(message) - limit + 1)]
        message = compose(body + "…")
    return message


def action_keyboard(actions: List[AlertAction]) -> Optional[InlineKeyboardMarkup]:
    if not actions:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(action.label, url=action.url) for action in actions]]
    )


class TelegramNotificationSurface:
    """NotificationSurface backed by a Telegram bot."""

    def __init__(self, bot: Bot, chat_id: str, max_tracked: int = MAX_TRACKED_ALERTS):
        """Initialize Telegram surface.

        Args:
            bot: Telegram bot instance
            chat_id: Chat receiving the alerts
            max_tracked: Alert keys remembered for editing; the least
                recently shown key is forgotten first
        """
        self.bot = bot
        self.chat_id = chat_id
        self.max_tracked = max_tracked
        # alert key -> (message id, message has a photo), least recent first
        self.messages: "OrderedDict[int, Tuple[int, bool]]" = OrderedDict()
        self.logger = get_logger_for_component("telegram_surface")

    @classmethod
    def from_settings(cls, settings) -> "TelegramNotificationSurface":
        return cls(Bot(token=settings.telegram.bot_token), settings.telegram.chat_id)

    async def show(
        self,
        key: int,
        title: str,
        body: str,
        actions: List[AlertAction],
        sound: Optional[str] = None,
        blink: Optional[BlinkPattern] = None,
        image: Optional[bytes] = None,
        high_priority: bool = False,
    ) -> None:
        """Send or edit the message for ``key``.

        Alerts without sound that are not high priority are sent silently.
        Blink patterns have no Telegram equivalent and are ignored.

        Raises:
            NotificationError: If Telegram rejects the message
        """
        markup = action_keyboard(actions)
        silent = sound is None and not high_priority

        try:
            if key in self.messages:
                self.messages.move_to_end(key)
                await self._edit(key, title, body, markup)
            else:
                await self._send(key, title, body, markup, image, silent)

        except TelegramError as e:
            raise NotificationError(f"Telegram rejected alert {key}: {e}", key=key) from e

    async def _send(
        self,
        key: int,
        title: str,
        body: str,
        markup: Optional[InlineKeyboardMarkup],
        image: Optional[bytes],
        silent: bool,
    ) -> None:
        if image:
            message = await self.bot.send_photo(
                chat_id=self.chat_id,
                photo=image,
                caption=format_alert(title, body, MAX_CAPTION_LENGTH),
                parse_mode=ParseMode.HTML,
                reply_markup=markup,
                disable_notification=silent,
            )
        else:
            message = await self.bot.send_message(
                chat_id=self.chat_id,
                text=format_alert(title, body, MAX_MESSAGE_LENGTH),
                parse_mode=ParseMode.HTML,
                reply_markup=markup,
                disable_notification=silent,
                disable_web_page_preview=True,
            )

        self.messages[key] = (message.message_id, bool(image))
        while len(self.messages) > self.max_tracked:
            forgotten, _ = self.messages.popitem(last=False)
            self.logger.debug(f"Forgetting message of alert {forgotten}")
        self.logger.debug(f"Sent alert {key} as message {message.message_id}")

    async def _edit(
        self, key: int, title: str, body: str, markup: Optional[InlineKeyboardMarkup]
    ) -> None:
        message_id, has_photo = self.messages[key]
        try:
            if has_photo:
                await self.bot.edit_message_caption(
                    chat_id=self.chat_id,
                    message_id=message_id,
                    caption=format_alert(title, body, MAX_CAPTION_LENGTH),
                    parse_mode=ParseMode.HTML,
                    reply_markup=markup,
                )
            else:
                await self.bot.edit_message_text(
                    text=format_alert(title, body, MAX_MESSAGE_LENGTH),
                    chat_id=self.chat_id,
                    message_id=message_id,
                    parse_mode=ParseMode.HTML,
                    reply_markup=markup,
                    disable_web_page_preview=True,
                )
        except BadRequest as e:
            if "not modified" in str(e).lower():
                self.logger.debug(f"Alert {key} unchanged")
                return
            raise

        self.logger.debug(f"Edited alert {key} (message {message_id})")
