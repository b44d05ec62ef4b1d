"""Error taxonomy shared by ports, adapters and the service loop."""


class BotError(Exception):
    """Base class for every error the bot raises on purpose."""


# -- Messaging platform --


class PlatformError(BotError):
    """Raised by the messaging client."""


class TransientError(PlatformError):
    """Network failure, rate limit or 5xx. Retried at the poll boundary."""


class AuthError(PlatformError):
    """Credentials rejected (401/403). Fatal when raised by poll."""


class ProtocolError(PlatformError):
    """Upstream answered with something we cannot parse."""


# -- Per-message pipeline --


class PipelineError(BotError):
    """Raised while producing a question image. Never retried."""


class NotFound(PipelineError):
    """The requested category currently has no items."""


class ContentFetchError(PipelineError):
    """The question corpus could not be read."""


class RenderError(PipelineError):
    """The HTML renderer is unavailable, failed or timed out."""


class PublishError(PipelineError):
    """The rendered image could not be uploaded."""
