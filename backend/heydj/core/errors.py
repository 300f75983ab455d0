"""Service-layer exceptions.

Services raise these (all are ``ValueError`` subclasses, so older callers that
catch ``ValueError`` keep working); routers translate them to HTTP responses.
"""


class NotFoundError(ValueError):
    """Requested record does not exist or is not visible to the caller"""


class ForbiddenError(ValueError):
    """Caller is not allowed to perform the operation"""


class LimitReachedError(ValueError):
    """A quota or throttle was exceeded"""


class EventClosedError(ValueError):
    """The event is no longer accepting requests or votes"""


class WebhookSignatureError(ValueError):
    """Stripe webhook payload or signature could not be verified"""


_STATUS_CODES = (
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (LimitReachedError, 429),
    (EventClosedError, 410),
    (WebhookSignatureError, 400),
)


def http_status_for(exc: ValueError) -> int:
    """HTTP status for a service error; plain validation errors are 400"""
    for error_class, status_code in _STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 400
