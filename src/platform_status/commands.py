from __future__ import annotations

from typing import MutableMapping

import structlog
from telegram import Bot, Update
from telegram.ext import ContextTypes

from .config import BotSettings
from .formatter import format_station_board
from .poller import ControllerState, Listener, PollingController
from .providers import AllSourcesFailed, StationStatusFetcher, is_valid_station_code, normalize_station_code

logger = structlog.get_logger()

INVALID_CODE_MESSAGE = "Please enter a valid station code, e.g. /watch NDLS"


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send greeting and usage basics."""

    message = (
        "👋 Hi! Send /status followed by a station code to see its platform board, e.g.\n"
        "/status NDLS\n\n"
        "Use /watch <code> to get the board refreshed automatically."
    )
    await update.message.reply_text(message)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    interval = int(_settings(context).refresh_interval)
    message = (
        "Usage:\n"
        "  /status [station code]\n"
        "  /watch [station code]\n"
        "  /refresh\n"
        "  /unwatch\n\n"
        f"Watched stations are refreshed every {interval} seconds.\n"
        "Examples:\n"
        "  /status MMCT\n"
        "  /watch HWH"
    )
    await update.message.reply_text(message)


async def status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show a one-off platform board for a station."""

    code = _requested_code(context)
    if not is_valid_station_code(code):
        await update.message.reply_text(INVALID_CODE_MESSAGE)
        return

    try:
        station = await _fetcher(context).fetch(code)
    except AllSourcesFailed as exc:
        await update.message.reply_text(
            "All data sources failed while fetching the platform board:\n" + "\n".join(exc.messages)
        )
        return

    await update.message.reply_text(format_station_board(station))


async def watch(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Follow a station; the board is pushed on every refresh."""

    code = _requested_code(context)
    if not is_valid_station_code(code):
        await update.message.reply_text(INVALID_CODE_MESSAGE)
        return

    chat_id = update.effective_chat.id
    watchers = _watchers(context)
    controller = watchers.get(chat_id)
    if controller is None:
        controller = PollingController(
            _fetcher(context),
            interval=_settings(context).refresh_interval,
            listener=chat_listener(context.bot, chat_id),
        )
        watchers[chat_id] = controller

    logger.info("watch_started", chat_id=chat_id, station=normalize_station_code(code))
    await controller.search(code)


async def refresh(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    controller = _watchers(context).get(update.effective_chat.id)
    if controller is None:
        await update.message.reply_text("You are not watching a station. Try /watch NDLS")
        return
    await controller.refresh()


async def unwatch(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    controller = _watchers(context).pop(update.effective_chat.id, None)
    if controller is None:
        await update.message.reply_text("You are not watching a station.")
        return

    await controller.aclose()
    await update.message.reply_text(f"Stopped watching {controller.station_code}.")


def chat_listener(bot: Bot, chat_id: int) -> Listener:
    """Build a controller listener that posts each update to a chat."""

    async def _send(controller: PollingController) -> None:
        if controller.state is ControllerState.ERROR:
            text = f"Couldn't refresh {controller.station_code}: {controller.error}"
            if controller.snapshot is not None:
                text += "\nThe last board is still current."
        elif controller.snapshot is not None:
            text = format_station_board(controller.snapshot)
        else:
            return
        await bot.send_message(chat_id=chat_id, text=text)

    return _send


def _requested_code(context: ContextTypes.DEFAULT_TYPE) -> str:
    if context.args:
        return " ".join(context.args)
    return _settings(context).default_station_code


def _settings(context: ContextTypes.DEFAULT_TYPE) -> BotSettings:
    return context.application.bot_data["settings"]


def _fetcher(context: ContextTypes.DEFAULT_TYPE) -> StationStatusFetcher:
    return context.application.bot_data["fetcher"]


def _watchers(context: ContextTypes.DEFAULT_TYPE) -> MutableMapping[int, PollingController]:
    return context.application.bot_data["watchers"]
