"""
Error types for the token core.

Every rejection carries a stable ``code`` so the dispatch layer can map it to
its own error surface without string matching. All token errors are terminal
for the requested operation: they are raised at the gate that detects them
and are never retried or swallowed inside the core.
"""

from __future__ import annotations

from typing import Any, List, Optional


class DiceNftError(Exception):
    """Base class for all errors raised by this package."""
    code = "error"


# =============================================================================
# TOKEN OPERATION ERRORS
# =============================================================================

class TokenError(DiceNftError):
    """An operation on a token was rejected."""
    code = "token_error"

    def __init__(self, message: str, action: str = "", token_id: str = ""):
        self.message = message
        self.action = action
        self.token_id = token_id
        super().__init__(message)


class TokenLocked(TokenError):
    """The token is collateralised and the action is not a release action."""
    code = "token_locked"


class Unauthorized(TokenError):
    """The requester is not allowed to perform the action."""
    code = "unauthorized"


class InvalidTransition(TokenError):
    """The collateral lifecycle does not permit the action in its current state."""
    code = "invalid_transition"


class NotYetRedeemable(TokenError):
    """Redeem was attempted before the collateral expiration elapsed."""
    code = "not_yet_redeemable"


class InsufficientPayment(TokenError):
    """An offered or repaid amount does not cover the agreed amount."""
    code = "insufficient_payment"


class InvalidPermission(TokenError):
    """A permission grant or revocation is malformed."""
    code = "invalid_permission"


# =============================================================================
# DOCUMENT ERRORS
# =============================================================================

class DecodeError(DiceNftError):
    """A wire document could not be decoded into a value."""
    code = "decode_error"

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class SchemaValidationError(DiceNftError):
    """A wire document failed JSON Schema validation."""
    code = "schema_invalid"

    def __init__(self, schema: str, errors: List[str]):
        self.schema = schema
        self.errors = errors
        first: Optional[str] = errors[0] if errors else None
        super().__init__(f"invalid {schema} document: {first}")


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigError(DiceNftError):
    """Configuration error."""
    code = "config_error"


class ConfigValidationError(ConfigError):
    """Configuration validation error."""
    code = "config_invalid"
