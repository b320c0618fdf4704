class WebhookError(Exception):
    """Base class for failures in the webhook ingestion pipeline."""


class MalformedPayload(WebhookError):
    """Body is not a JSON object, or an unrecoverable identifier is missing."""


class ProviderError(WebhookError):
    """The conversation provider API returned an error or was unreachable."""
