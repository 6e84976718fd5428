#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import asyncio
import logging

from telegram import Update
from telegram.ext import ApplicationBuilder, ContextTypes, MessageHandler, filters
from telegram.request import HTTPXRequest

from archbot_config import (
    BOT_TOKEN,
    COMMAND_CHAT_ID,
    RELAYED_SENDER_PATTERN,
    STORAGE_DIR,
    ensure_runtime_dirs,
)
from archbot_tools import ExternalTools
from archbot_utils import with_tg_time
from src.archive_bot.chat.dispatcher import CommandDispatcher, relayed_sender_check

logging.basicConfig(
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

DISPATCHER_KEY = "_dispatcher"
IS_AUTHORIZED = relayed_sender_check(RELAYED_SENDER_PATTERN)


def sender_identity(message) -> str:
    """Name used for reply prefixes, per-user limits and relay detection.

    Anonymous admins and linked channels arrive as Telegram's relay bots, whose
    usernames are what the relayed-sender pattern matches.
    """
    user = getattr(message, "from_user", None)
    if user is not None:
        return (getattr(user, "username", None) or getattr(user, "full_name", None) or str(user.id)).strip()
    chat = getattr(message, "sender_chat", None)
    if chat is not None:
        return (getattr(chat, "username", None) or getattr(chat, "title", None) or str(chat.id)).strip()
    return "unknown"


def is_command_chat(chat_id: int) -> bool:
    return not COMMAND_CHAT_ID or chat_id == COMMAND_CHAT_ID


async def command_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    msg = update.effective_message
    if not msg or not msg.text or not update.effective_chat:
        return
    if not is_command_chat(update.effective_chat.id):
        return

    dispatcher: CommandDispatcher = context.application.bot_data[DISPATCHER_KEY]
    sender = sender_identity(msg)
    replies = await asyncio.to_thread(
        dispatcher.dispatch,
        msg.text,
        sender,
        IS_AUTHORIZED,
    )
    for reply in replies:
        await msg.reply_text(with_tg_time(reply.text), disable_web_page_preview=True)


async def on_error(update, context):
    logger.exception("Unhandled Telegram error: %s", context.error)


def main():
    if not BOT_TOKEN:
        raise SystemExit("YT_BOT_TOKEN is empty. Set it: export YT_BOT_TOKEN='...'\n")

    ensure_runtime_dirs()
    print(f"Archive root: {STORAGE_DIR}; command chat: {COMMAND_CHAT_ID or 'any'}")

    request = HTTPXRequest(
        connect_timeout=30.0,
        read_timeout=120.0,
        write_timeout=120.0,
        pool_timeout=30.0,
    )

    # Updates are handled one at a time so each command fully finishes before the next.
    app = (
        ApplicationBuilder()
        .token(BOT_TOKEN)
        .request(request)
        .concurrent_updates(False)
        .build()
    )
    app.bot_data[DISPATCHER_KEY] = CommandDispatcher(ExternalTools())

    app.add_handler(MessageHandler(filters.TEXT & filters.Regex(r"^!"), command_handler))
    app.add_error_handler(on_error)

    print("Bot running...")
    app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
