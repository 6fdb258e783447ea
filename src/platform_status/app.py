from __future__ import annotations

from telegram.ext import Application, ApplicationBuilder, CommandHandler

from .commands import help_command, refresh, start, status, unwatch, watch
from .config import BotSettings
from .poller import PollingController
from .providers import RemoteSource, StationStatusFetcher, resolve_sources


def build_application(settings: BotSettings) -> Application:
    """Configure the Telegram application with command handlers."""

    sources = resolve_sources(settings.platform_api)
    fetcher = StationStatusFetcher(sources)
    watchers: dict[int, PollingController] = {}

    async def _close_resources(application: Application) -> None:  # pragma: no cover - lifecycle
        for controller in list(watchers.values()):
            await controller.aclose()
        watchers.clear()
        for source in sources:
            if isinstance(source, RemoteSource):
                await source.client.close()

    application = (
        ApplicationBuilder()
        .token(settings.telegram_token)
        .post_shutdown(_close_resources)
        .build()
    )

    application.bot_data["settings"] = settings
    application.bot_data["fetcher"] = fetcher
    application.bot_data["watchers"] = watchers

    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("status", status))
    application.add_handler(CommandHandler("watch", watch))
    application.add_handler(CommandHandler("refresh", refresh))
    application.add_handler(CommandHandler("unwatch", unwatch))

    return application
