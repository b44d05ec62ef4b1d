"""Launcher for the GMAT question bot service."""

import asyncio
import signal
import sys
from typing import Optional

from gmat_bot.adapters.content import GmatDatabaseProvider
from gmat_bot.adapters.publish import GitHubReleasePublisher
from gmat_bot.adapters.render import WkhtmlRenderer
from gmat_bot.adapters.zalo import ZaloClient
from gmat_bot.config import AppConfig
from gmat_bot.domain.errors import AuthError
from gmat_bot.domain.pipeline import QuestionPipeline
from gmat_bot.domain.service import ServiceLoop, ServiceStats


def _log(msg: str):
    print(msg, file=sys.stderr)


def build_service(config: AppConfig) -> ServiceLoop:
    """Wire adapters into a ServiceLoop according to `config`."""
    pipeline = QuestionPipeline(
        provider=GmatDatabaseProvider(base_url=config.gmat_database_url),
        renderer=WkhtmlRenderer(
            binary=config.render.wkhtmltoimage_path,
            timeout=config.render.timeout_seconds,
        ),
        publisher=GitHubReleasePublisher(
            token=config.github.token,
            repository=config.github.repository,
            api_base=config.github.api_base,
        ),
    )
    return ServiceLoop(
        ZaloClient(bot_token=config.zalo.bot_token, api_base=config.zalo.api_base),
        pipeline,
        duration=config.service.duration_seconds,
        poll_timeout=config.service.poll_timeout_seconds,
        cursor=config.service.resume_cursor,
        backoff_base=config.service.backoff_base_seconds,
        backoff_cap=config.service.backoff_cap_seconds,
        caption=config.caption,
    )


def _install_signal_handlers(service: ServiceLoop):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, service, sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass


def _on_signal(service: ServiceLoop, sig):
    _log(f"Received {signal.Signals(sig).name}, stopping after the current poll...")
    service.stop()


async def run_service(config: AppConfig) -> Optional[ServiceStats]:
    """Run the bot until its deadline. Returns None if auth failed."""
    service = build_service(config)
    _install_signal_handlers(service)
    _log("Bot is listening. Send a question type (e.g. PS) to get a GMAT question.")
    try:
        return await service.run()
    except AuthError as e:
        _log(f"Zalo rejected the bot token: {e}")
        return None


def main() -> int:
    config = AppConfig.from_env()
    missing = config.missing_settings()
    if missing:
        _log(f"Missing required settings: {', '.join(missing)}")
        _log("Set them in the environment or in a .env file.")
        return 1

    _log(
        f"Starting GMAT bot service for {config.service.duration_hours:g}h "
        f"(assets -> {config.github.repository})"
    )
    stats = asyncio.run(run_service(config))
    if stats is None:
        return 1
    _log(f"Bot service completed: {stats.summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
