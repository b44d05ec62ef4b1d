"""GMAT Bot — answers Zalo chat messages with rendered GMAT questions."""

from gmat_bot.config import CONFIG, AppConfig, __version__
from gmat_bot.domain import Category, QuestionPipeline, ServiceLoop, interpret
from gmat_bot.adapters.zalo import ZaloClient
from gmat_bot.adapters.content import GmatDatabaseProvider
from gmat_bot.adapters.render import WkhtmlRenderer
from gmat_bot.adapters.publish import GitHubReleasePublisher

__all__ = [
    "CONFIG",
    "AppConfig",
    "__version__",
    "Category",
    "QuestionPipeline",
    "ServiceLoop",
    "interpret",
    "ZaloClient",
    "GmatDatabaseProvider",
    "WkhtmlRenderer",
    "GitHubReleasePublisher",
]
