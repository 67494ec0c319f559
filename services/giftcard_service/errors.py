"""Typed errors raised by the gift card engine.

Every error carries a stable ``code``, an HTTP status hint and a structured
``context`` (amounts, limits, status) so callers never have to re-query.
"""

from libs.common.error_handler import ServiceError


class GiftCardError(ServiceError):
    code = "gift_card_error"
    status_code = 400


class GiftCardValidationError(GiftCardError):
    code = "validation_error"
    status_code = 422


class GiftCardNotFoundError(GiftCardError):
    code = "gift_card_not_found"
    status_code = 404


class UnauthorizedRedemptionError(GiftCardError):
    code = "unauthorized"
    status_code = 403


class GiftCardNotActiveError(GiftCardError):
    code = "gift_card_not_active"
    status_code = 409


class ImmutableStateError(GiftCardError):
    """The card is in a terminal state and cannot be changed."""

    code = "immutable_state"
    status_code = 409


class GiftCardExpiredError(GiftCardError):
    code = "gift_card_expired"
    status_code = 410


class InsufficientFundsError(GiftCardError):
    code = "insufficient_funds"
    status_code = 400


class MonthlyLimitExceededError(GiftCardError):
    code = "monthly_limit_exceeded"
    status_code = 400


class AlreadyAwardedError(GiftCardError):
    code = "already_awarded"
    status_code = 409


class CodeGenerationExhaustedError(GiftCardError):
    code = "code_generation_exhausted"
    status_code = 503


class LockContendedError(GiftCardError):
    """A per-key lock could not be acquired in time. Callers may retry."""

    code = "contended"
    status_code = 423
