"""
Ledger Engine - Error Taxonomy.

============================================================
PURPOSE
============================================================
Error classification for ledger operations.

ERROR KINDS:
1. NotFound          - Referenced record does not exist
2. InvalidState      - Record exists but forbids the transition
3. InsufficientFunds - Debit exceeds available balance
4. PriceTooLow       - Payment below the required floor
5. Mismatch          - Supplied foreign key is not the real owner
6. Unauthorized      - Caller lacks the required relationship
7. Conflict          - Uniqueness violation reported by the store
8. Validation        - Malformed amount or identifier

None of these are retried automatically and none are fatal to
the process. Unexpected store failures are NOT wrapped here;
they propagate unchanged.

============================================================
"""

from enum import Enum
from typing import Optional, Dict, Any
from dataclasses import dataclass


# ============================================================
# ERROR KINDS
# ============================================================

class ErrorKind(Enum):
    """Tag reported to API callers."""

    NOT_FOUND = "NotFound"
    INVALID_STATE = "InvalidState"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    PRICE_TOO_LOW = "PriceTooLow"
    MISMATCH = "Mismatch"
    UNAUTHORIZED = "Unauthorized"
    CONFLICT = "Conflict"
    VALIDATION = "Validation"


# ============================================================
# ERROR CODE REGISTRY
# ============================================================

@dataclass(frozen=True)
class ErrorCodeInfo:
    """Information about an error code."""

    code: str
    kind: ErrorKind
    description: str
    http_status: int


ERROR_CODES: Dict[str, ErrorCodeInfo] = {
    # ========== NOT FOUND ==========
    "NF_ACCOUNT": ErrorCodeInfo("NF_ACCOUNT", ErrorKind.NOT_FOUND, "Account not found", 404),
    "NF_TRADE": ErrorCodeInfo("NF_TRADE", ErrorKind.NOT_FOUND, "Trade not found", 404),
    "NF_TRADER": ErrorCodeInfo("NF_TRADER", ErrorKind.NOT_FOUND, "Trader not found", 404),
    "NF_SIGNAL": ErrorCodeInfo("NF_SIGNAL", ErrorKind.NOT_FOUND, "Signal not found", 404),
    "NF_SUBSCRIPTION": ErrorCodeInfo("NF_SUBSCRIPTION", ErrorKind.NOT_FOUND, "Subscription not found", 404),
    "NF_WALLET": ErrorCodeInfo("NF_WALLET", ErrorKind.NOT_FOUND, "Wallet not found", 404),

    # ========== INVALID STATE ==========
    "ST_TRADE_CLOSED": ErrorCodeInfo("ST_TRADE_CLOSED", ErrorKind.INVALID_STATE, "Trade is already closed", 409),
    "ST_TRADE_CANCELLED": ErrorCodeInfo("ST_TRADE_CANCELLED", ErrorKind.INVALID_STATE, "Trade is cancelled", 409),
    "ST_TRADE_PENDING": ErrorCodeInfo("ST_TRADE_PENDING", ErrorKind.INVALID_STATE, "Trade has not been executed", 409),
    "ST_SIGNAL_INACTIVE": ErrorCodeInfo("ST_SIGNAL_INACTIVE", ErrorKind.INVALID_STATE, "Signal no longer active", 409),
    "ST_SUBSCRIPTION_ENDED": ErrorCodeInfo("ST_SUBSCRIPTION_ENDED", ErrorKind.INVALID_STATE, "Subscription is not active", 409),
    "ST_INVALID_TRANSITION": ErrorCodeInfo("ST_INVALID_TRANSITION", ErrorKind.INVALID_STATE, "Transition not allowed", 409),

    # ========== FUNDS ==========
    "FN_INSUFFICIENT_BALANCE": ErrorCodeInfo(
        "FN_INSUFFICIENT_BALANCE", ErrorKind.INSUFFICIENT_FUNDS, "Insufficient virtual balance", 422,
    ),
    "FN_PRICE_BELOW_FLOOR": ErrorCodeInfo(
        "FN_PRICE_BELOW_FLOOR", ErrorKind.PRICE_TOO_LOW, "Price paid is below the subscription price", 422,
    ),

    # ========== RELATIONSHIPS ==========
    "RL_TRADER_MISMATCH": ErrorCodeInfo(
        "RL_TRADER_MISMATCH", ErrorKind.MISMATCH, "Trader ID does not match signal trader", 400,
    ),
    "RL_NO_ACTIVE_SUBSCRIPTION": ErrorCodeInfo(
        "RL_NO_ACTIVE_SUBSCRIPTION", ErrorKind.UNAUTHORIZED, "No active subscription", 403,
    ),

    # ========== CONFLICT ==========
    "CF_DUPLICATE_ACCOUNT": ErrorCodeInfo("CF_DUPLICATE_ACCOUNT", ErrorKind.CONFLICT, "Email or username taken", 409),
    "CF_DUPLICATE_TRADER": ErrorCodeInfo("CF_DUPLICATE_TRADER", ErrorKind.CONFLICT, "Account already has a trader profile", 409),
    "CF_DUPLICATE_RECORD": ErrorCodeInfo("CF_DUPLICATE_RECORD", ErrorKind.CONFLICT, "Duplicate record", 409),
    "CF_REFERENCE_REUSED": ErrorCodeInfo("CF_REFERENCE_REUSED", ErrorKind.CONFLICT, "Funding reference reused", 409),

    # ========== VALIDATION ==========
    "VAL_NOT_POSITIVE": ErrorCodeInfo("VAL_NOT_POSITIVE", ErrorKind.VALIDATION, "Amount must be positive", 400),
    "VAL_PRECISION": ErrorCodeInfo("VAL_PRECISION", ErrorKind.VALIDATION, "Too many decimal places", 400),
    "VAL_NOT_DECIMAL": ErrorCodeInfo("VAL_NOT_DECIMAL", ErrorKind.VALIDATION, "Value is not an exact decimal", 400),
    "VAL_NOTIONAL_ZERO": ErrorCodeInfo("VAL_NOTIONAL_ZERO", ErrorKind.VALIDATION, "Trade value rounds to zero", 400),
    "VAL_BAD_VALUE": ErrorCodeInfo("VAL_BAD_VALUE", ErrorKind.VALIDATION, "Invalid value", 400),
}


def get_error_info(code: str) -> ErrorCodeInfo:
    """
    Get error info for a code.

    Unknown codes are reported as validation failures so a typo
    in a code never turns a rejection into a 500.
    """
    return ERROR_CODES.get(code, ErrorCodeInfo(
        code=code,
        kind=ErrorKind.VALIDATION,
        description=f"Unknown error: {code}",
        http_status=400,
    ))


# ============================================================
# EXCEPTIONS
# ============================================================

class LedgerError(Exception):
    """
    Base exception for rejected ledger operations.

    Carries:
    - code: registry key (see ERROR_CODES)
    - kind: tag reported to callers
    - context: identifiers and amounts for logs and responses
    """

    default_code = "VAL_BAD_VALUE"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context = context or {}

    @property
    def info(self) -> ErrorCodeInfo:
        return get_error_info(self.code)

    @property
    def kind(self) -> ErrorKind:
        return self.info.kind

    @property
    def http_status(self) -> int:
        return self.info.http_status

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses and logs."""
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class NotFoundError(LedgerError):
    """Referenced record does not exist."""

    default_code = "NF_ACCOUNT"

    def __init__(self, entity: str, entity_id: Any, code: Optional[str] = None):
        super().__init__(
            f"{entity} {entity_id} not found",
            code=code or f"NF_{entity.upper()}",
            context={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(LedgerError):
    """Record is not in a state that permits the transition."""

    default_code = "ST_INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        code: Optional[str] = None,
        **context: Any,
    ):
        if current_state is not None:
            context["current_state"] = current_state
        super().__init__(message, code=code, context=context)
        self.current_state = current_state


class InsufficientFundsError(LedgerError):
    """Debit exceeds the available balance."""

    default_code = "FN_INSUFFICIENT_BALANCE"

    def __init__(self, account_id: int, required: Any, available: Any = None):
        context = {"account_id": account_id, "required": required}
        if available is not None:
            context["available"] = available
        super().__init__(
            f"Insufficient virtual balance. Required: {required}, Available: {available}",
            context=context,
        )
        self.required = required
        self.available = available


class PriceTooLowError(LedgerError):
    """Payment is below the required floor."""

    default_code = "FN_PRICE_BELOW_FLOOR"

    def __init__(self, price_paid: Any, minimum: Any):
        super().__init__(
            f"Price paid {price_paid} is less than trader subscription price {minimum}",
            context={"price_paid": price_paid, "minimum": minimum},
        )
        self.price_paid = price_paid
        self.minimum = minimum


class MismatchError(LedgerError):
    """Supplied foreign key does not match the related record's owner."""

    default_code = "RL_TRADER_MISMATCH"


class UnauthorizedError(LedgerError):
    """Caller lacks the relationship required for the action."""

    default_code = "RL_NO_ACTIVE_SUBSCRIPTION"


class ConflictError(LedgerError):
    """Uniqueness violation surfaced by the store."""

    default_code = "CF_DUPLICATE_RECORD"


class ValidationError(LedgerError):
    """Malformed input amount or identifier."""

    default_code = "VAL_BAD_VALUE"

    def __init__(self, message: str, field: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message, code=code, context={"field": field} if field else None)
        self.field = field


__all__ = [
    "ErrorKind",
    "ErrorCodeInfo",
    "ERROR_CODES",
    "get_error_info",
    "LedgerError",
    "NotFoundError",
    "InvalidStateError",
    "InsufficientFundsError",
    "PriceTooLowError",
    "MismatchError",
    "UnauthorizedError",
    "ConflictError",
    "ValidationError",
]
