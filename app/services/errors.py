"""Domain errors raised by services and translated to HTTP responses in main.py."""


class NotFoundError(LookupError):
    """Referenced entity does not exist (404)."""


class BadRequestError(ValueError):
    """Invalid state transition or business-rule violation (400)."""


class PaymentProviderError(RuntimeError):
    """A payment provider call failed or returned an unusable response (502)."""
