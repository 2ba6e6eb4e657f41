"""Entry point for the craving coach Telegram bot.

Usage:
    export BOT_TOKEN="<your_token>"
    python -m craving_coach.entrypoints.bot_main
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import os

from aiogram import Bot, Dispatcher, F
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import CallbackQuery, Message
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from craving_coach import settings
from craving_coach.core.coaching.patterns import high_risk_insights
from craving_coach.core.errors import CannotUndo, CoachError, PersistenceError, ProfileNotFound
from craving_coach.core.usecases import (
    analyze_behavior as analyze_behavior_uc,
    init_profile as init_profile_uc,
    manage_tags as manage_tags_uc,
    register_smoking_event as register_smoke_uc,
    run_coach_cycle as run_coach_cycle_uc,
    undo_last_event as undo_uc,
)
from craving_coach.dataproviders.db import init_engine
from craving_coach.dataproviders.notifier import TelegramNotifier
from craving_coach.entrypoints.coaches import build_registry
from craving_coach.utils import hub
from craving_coach.utils.clock import start_of_day

# ---------------------------------------------------------------------------
# Configure logging & DB
# ---------------------------------------------------------------------------
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
logger = logging.getLogger(__name__)

# Create DB tables and run simple migrations
init_engine()

registry = build_registry()

# Scheduler setup
scheduler = AsyncIOScheduler(timezone=settings.TIMEZONE)

# ---------------------------------------------------------------------------
# Bot & Dispatcher
# ---------------------------------------------------------------------------
BOT_TOKEN = os.getenv("BOT_TOKEN")
if not BOT_TOKEN:
    raise RuntimeError("BOT_TOKEN env variable not set.")

bot = Bot(token=BOT_TOKEN, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
storage = MemoryStorage()
dp = Dispatcher(storage=storage)

notifier = TelegramNotifier(bot)

# ---------------------------------------------------------------------------
# Coach cycle job
# ---------------------------------------------------------------------------


async def run_coach_cycles() -> None:
    """Evaluate every user once; one user's failure never stops the rest."""
    for profile in registry.profile_repo.list_all():
        try:
            await run_coach_cycle_uc.execute(registry.engine(profile.user_id), notifier)
        except CoachError as exc:
            logger.error("Coach cycle for user %s failed: %s", profile.user_id, exc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _today_text(user_id: int) -> str:
    profile = registry.profile_repo.get(user_id)
    now = registry.clock()
    today_events = registry.event_repo.list_by_user(
        user_id, since=start_of_day(now)
    )
    target = profile.today_target(today=now.date()) if profile else 0
    return hub.build_today_text(len(today_events), target)


def _parse_int(raw: str) -> int:
    return int(raw.strip())


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


@dp.message(CommandStart())
async def cmd_start(message: Message, command: CommandObject) -> None:
    """Create or update the profile: /start <daily_average> [YYYY-MM-DD]."""
    user_id = message.from_user.id
    args = (command.args or "").split()
    if not args:
        if registry.profile_repo.get(user_id):
            await message.answer(_today_text(user_id))
        else:
            await message.answer(
                "👋 Hi! Tell me how many cigarettes you smoke a day, and optionally your quit date.\n"
                "Example: /start 15 2026-12-31"
            )
        return

    try:
        daily_average = float(args[0].replace(",", "."))
        quit_date = dt.date.fromisoformat(args[1]) if len(args) > 1 else None
        init_profile_uc.execute(
            user_id,
            daily_average,
            registry.profile_repo,
            quit_date=quit_date,
            today=registry.clock().date(),
        )
    except ValueError as exc:
        await message.reply(f"Could not set up your plan: {exc}")
        return

    await message.answer("✅ Plan saved. Log each cigarette with /smoke [tags].\n" + _today_text(user_id))


@dp.message(Command("smoke"))
async def cmd_smoke(message: Message, command: CommandObject) -> None:
    user_id = message.from_user.id
    try:
        register_smoke_uc.execute(
            user_id,
            registry.profile_repo,
            registry.event_repo,
            registry.tag_repo,
            tag_names=(command.args or "").split(),
            now=registry.clock(),
        )
    except ProfileNotFound:
        await message.reply("Set up your plan first with /start.")
        return
    await message.answer("🚬 Logged. /undo within 10 minutes if that was a mistake.\n" + _today_text(user_id))


@dp.message(Command("undo"))
async def cmd_undo(message: Message) -> None:
    try:
        undo_uc.execute(message.from_user.id, registry.event_repo, now=registry.clock())
    except CannotUndo as exc:
        await message.reply(str(exc))
        return
    await message.answer("↩️ Removed.\n" + _today_text(message.from_user.id))


@dp.message(Command("retag"))
async def cmd_retag(message: Message, command: CommandObject) -> None:
    """Replace the tags of the last logged cigarette."""
    user_id = message.from_user.id
    last = registry.event_repo.get_last(user_id)
    if last is None or last.id is None:
        await message.reply("Nothing logged yet.")
        return
    tags = manage_tags_uc.assign_tags(
        user_id, last.id, (command.args or "").split(), registry.event_repo, registry.tag_repo
    )
    await message.answer(hub.build_tags_text(tags))


@dp.message(Command("tags"))
async def cmd_tags(message: Message) -> None:
    await message.answer(hub.build_tags_text(registry.tag_repo.list_by_user(message.from_user.id)))


@dp.message(Command("deltag"))
async def cmd_deltag(message: Message, command: CommandObject) -> None:
    name = (command.args or "").strip()
    if not name:
        await message.reply("Usage: /deltag <name>")
        return
    if manage_tags_uc.delete_tag(message.from_user.id, name, registry.tag_repo):
        await message.answer(f"🏷 Tag {name!r} removed. Your logged cigarettes are kept.")
    else:
        await message.reply(f"No tag named {name!r}.")


@dp.message(Command("insights"))
async def cmd_insights(message: Message) -> None:
    insights = analyze_behavior_uc.execute(registry.engine(message.from_user.id))
    await message.answer(hub.build_insights_text(insights, urgent=high_risk_insights(insights)))


@dp.message(Command("summary"))
async def cmd_summary(message: Message) -> None:
    engine = registry.engine(message.from_user.id)
    try:
        pattern = engine.behavior_summary()
        last_check = engine.last_snapshot()
    except PersistenceError as exc:
        logger.warning("Summary for user %s failed: %s", message.from_user.id, exc)
        await message.answer("Could not load your history right now, try again later.")
        return
    await message.answer(hub.build_summary_text(pattern, last_check))


# ---------------------------------------------------------------------------
# Scheduler configuration
# ---------------------------------------------------------------------------


@dp.message(Command("quiet"))
async def cmd_quiet(message: Message, command: CommandObject) -> None:
    parts = (command.args or "").split()
    try:
        if len(parts) != 2:
            raise ValueError("Usage: /quiet <start hour> <end hour>")
        start, end = _parse_int(parts[0]), _parse_int(parts[1])
        registry.engine(message.from_user.id).set_quiet_hours(start, end)
    except ValueError as exc:
        await message.reply(str(exc))
        return
    await message.answer(f"🌙 Quiet hours: {start:02d}:00 to {end:02d}:00")


@dp.message(Command("limit"))
async def cmd_limit(message: Message, command: CommandObject) -> None:
    try:
        n = _parse_int(command.args or "")
        registry.engine(message.from_user.id).set_max_per_day(n)
    except ValueError as exc:
        await message.reply(f"Usage: /limit <nudges per day> ({exc})")
        return
    await message.answer(f"At most {n} nudges a day.")


@dp.message(Command("interval"))
async def cmd_interval(message: Message, command: CommandObject) -> None:
    try:
        minutes = _parse_int(command.args or "")
        registry.engine(message.from_user.id).set_minimum_interval(minutes * 60)
    except ValueError as exc:
        await message.reply(f"Usage: /interval <minutes> ({exc})")
        return
    await message.answer(f"At least {minutes} minutes between nudges.")


# ---------------------------------------------------------------------------
# Self-reported signals
# ---------------------------------------------------------------------------


@dp.message(Command("sleep"))
async def cmd_sleep(message: Message, command: CommandObject) -> None:
    """/sleep bad | /sleep good"""
    answer = (command.args or "").strip().lower()
    if answer not in ("bad", "poor", "good"):
        await message.reply("Usage: /sleep good or /sleep bad")
        return
    registry.signals(message.from_user.id).report_sleep(registry.clock(), poor=answer != "good")
    await message.answer("😴 Noted.")


@dp.message(Command("nrt"))
async def cmd_nrt(message: Message) -> None:
    registry.signals(message.from_user.id).report_nrt(registry.clock())
    await message.answer("🩹 Noted.")


@dp.message(Command("mindful"))
async def cmd_mindful(message: Message) -> None:
    registry.signals(message.from_user.id).report_mindful_session(registry.clock())
    await message.answer("🧘 Nice work.")


@dp.message(Command("steps"))
async def cmd_steps(message: Message, command: CommandObject) -> None:
    try:
        steps = _parse_int(command.args or "")
        registry.signals(message.from_user.id).report_steps(registry.clock(), steps)
    except ValueError:
        await message.reply("Usage: /steps <count>")
        return
    await message.answer("👟 Noted.")


# ---------------------------------------------------------------------------
# Nudge actions
# ---------------------------------------------------------------------------


@dp.callback_query(F.data.startswith(hub.CALLBACK_PREFIX))
async def handle_action(callback: CallbackQuery) -> None:
    action = hub.parse_action(callback.data)
    if action is None:
        await callback.answer()
        return
    logger.info("User %s chose %s", callback.from_user.id, action.value)
    await callback.answer(hub.ACTION_REPLIES[action], show_alert=True)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def schedule_jobs() -> None:
    scheduler.add_job(
        run_coach_cycles,
        "interval",
        minutes=settings.EVALUATION_INTERVAL_MINUTES,
        id="coach_cycles",
        replace_existing=True,
    )


async def _runner() -> None:
    """Async runner: start scheduler and polling concurrently."""
    # Scheduler must be started inside running loop
    scheduler.start()
    await dp.start_polling(bot)


def main() -> None:
    logger.info("Starting craving coach bot...")
    schedule_jobs()
    asyncio.run(_runner())


if __name__ == "__main__":
    main()
