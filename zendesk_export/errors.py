# zendesk_export/errors.py
"""
Exception hierarchy for the exporter.

HTTP failures are classified by the client so callers can decide, per
item, whether to retry, skip-and-log, or abort the run.
"""

from typing import Optional


class ZendeskExportError(Exception):
    """Base class for everything raised by this package."""


class ConfigError(ZendeskExportError):
    pass


class HttpError(ZendeskExportError):
    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class RateLimitExhaustedError(HttpError):
    """Server kept answering 429 past the configured retry budget."""


class TransientError(HttpError):
    """Worth retrying the same request a bounded number of times."""


class TransientServerError(TransientError):
    pass


class NetworkError(TransientError):
    pass


class ResourceGoneError(HttpError):
    """404/410: the item was removed upstream."""


class FatalHttpError(HttpError):
    """Any status we do not know how to interpret."""


class AttachmentError(ZendeskExportError):
    def __init__(self, attachment_id, reason: str):
        super().__init__(f"attachment {attachment_id}: {reason}")
        self.attachment_id = attachment_id
        self.reason = reason
