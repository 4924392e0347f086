"""Marketplace ledger error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    PAYMENT = 0x03
    STATE = 0x04
    TRANSFER = 0x05
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0x0000

    # Validation
    INVALID_FORMAT = 0x0100
    INVALID_PRICE = 0x0101
    INVALID_FEE = 0x0102
    INVALID_ADDRESS = 0x0103
    INVALID_PAYLOAD = 0x0104
    NON_PAYABLE = 0x0105
    NONCE_TOO_LOW = 0x0110
    NONCE_TOO_HIGH = 0x0111

    # Authorization
    UNAUTHORIZED = 0x0200

    # Payment
    INSUFFICIENT_PAYMENT = 0x0300
    NO_BALANCE_TO_WITHDRAW = 0x0301
    INSUFFICIENT_BALANCE = 0x0302
    OVERFLOW = 0x0303

    # State
    ACCOUNT_NOT_FOUND = 0x0400
    LISTING_NOT_FOUND = 0x0401
    LISTING_ALREADY_EXISTS = 0x0402
    LISTING_ALREADY_SOLD = 0x0403
    ENFORCED_PAUSE = 0x0404
    EXPECTED_PAUSE = 0x0405
    AGENT_ALREADY_REGISTERED = 0x0406
    AGENT_NOT_ACTIVE = 0x0407

    # Transfer
    TRANSFER_FAILED = 0x0500
    REENTRANT_CALL = 0x0501

    # Internal
    INTERNAL_ERROR = 0xFF00
    NOT_IMPLEMENTED = 0xFF01
    UNKNOWN = 0xFFFF

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class SpecError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__", "__suppress_context__"))
_frozen_setattr = SpecError.__setattr__


def _spec_error_setattr(self: SpecError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


SpecError.__setattr__ = _spec_error_setattr  # type: ignore[method-assign]
