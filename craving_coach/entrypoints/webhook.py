"""Webhook entrypoint for the craving coach bot.

Launches an aiohttp web server on PORT that hands Telegram webhooks to
the aiogram dispatcher configured in :mod:`bot_main`.
"""
from __future__ import annotations

import logging
import os

from aiohttp import web
from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application

from craving_coach.entrypoints import bot_main  # re-use configured bot, dispatcher & scheduler

logger = logging.getLogger(__name__)

BASE_URL = os.getenv("BASE_URL")  # e.g. https://my-bot.example.com
if not BASE_URL:
    raise RuntimeError("BASE_URL env variable not set")

WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "ccbotsecret")
WEBHOOK_PATH = "/webhook"


async def on_startup(app: web.Application) -> None:
    await bot_main.bot.set_webhook(f"{BASE_URL}{WEBHOOK_PATH}", secret_token=WEBHOOK_SECRET)
    # start the periodic coach cycle
    if not bot_main.scheduler.running:
        bot_main.schedule_jobs()
        bot_main.scheduler.start()
    logger.info("Webhook set and scheduler started")


async def on_cleanup(app: web.Application) -> None:
    await bot_main.bot.delete_webhook()
    if bot_main.scheduler.running:
        bot_main.scheduler.shutdown(wait=False)


def create_app() -> web.Application:
    app = web.Application()
    SimpleRequestHandler(
        dispatcher=bot_main.dp, bot=bot_main.bot, secret_token=WEBHOOK_SECRET
    ).register(app, path=WEBHOOK_PATH)
    setup_application(app, bot_main.dp, bot=bot_main.bot)
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8080))
    web.run_app(create_app(), host="0.0.0.0", port=port)
