"""Domain layer — pure Python, no framework dependencies."""

from gmat_bot.domain.models import (
    Category,
    ContentItem,
    PhotoReply,
    PublishedAsset,
    QUESTION_CATEGORIES,
    TextReply,
)
from gmat_bot.domain.errors import (
    AuthError,
    BotError,
    ContentFetchError,
    NotFound,
    PipelineError,
    PlatformError,
    ProtocolError,
    PublishError,
    RenderError,
    TransientError,
)
from gmat_bot.domain.commands import CATEGORY_ALIASES, HELP_TEXT, interpret
from gmat_bot.domain.question_html import build_question_html
from gmat_bot.domain.pipeline import QuestionPipeline, build_caption
from gmat_bot.domain.service import ServiceLoop, ServiceStats

__all__ = [
    "Category",
    "ContentItem",
    "PhotoReply",
    "PublishedAsset",
    "QUESTION_CATEGORIES",
    "TextReply",
    "AuthError",
    "BotError",
    "ContentFetchError",
    "NotFound",
    "PipelineError",
    "PlatformError",
    "ProtocolError",
    "PublishError",
    "RenderError",
    "TransientError",
    "CATEGORY_ALIASES",
    "HELP_TEXT",
    "interpret",
    "build_question_html",
    "QuestionPipeline",
    "build_caption",
    "ServiceLoop",
    "ServiceStats",
]
