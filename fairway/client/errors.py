"""
Fairway client: exceptions surfaced to the customer and staff front ends

Every error carries a human-readable message; `retryable` tells the caller
whether repeating the same user action can succeed.
"""


class FairwayError(Exception):
    retryable = False

    def __init__(self, message: str, *, retryable: bool | None = None):
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)


class ApiError(FairwayError):
    """Non-2xx response or transport failure talking to the Fairway API."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        # No status means the request never got an answer
        retryable = status_code is None or status_code >= 500 or status_code == 409
        super().__init__(message, retryable=retryable)


# ── Checkout ──────────────────────────────────────────────────────────────────

class EmptyCartError(FairwayError):
    pass


class HoleSelectionRequired(FairwayError):
    """Location permission was denied: ask the customer to pick their hole."""
    pass


class HoleSelectionError(FairwayError):
    pass


class CheckoutError(FairwayError):
    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


# ── Dashboard ─────────────────────────────────────────────────────────────────

class TransitionFailed(FairwayError):
    retryable = True


# ── Thank-you lookup ──────────────────────────────────────────────────────────

class MissingSessionId(FairwayError):
    pass


class OrderNotFound(FairwayError):
    pass
