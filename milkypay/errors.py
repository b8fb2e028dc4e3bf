from __future__ import annotations


class EscrowError(ValueError):
    code: str = "EscrowError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(EscrowError):
    code = "ValidationError"


class AuthorizationError(EscrowError):
    code = "AuthorizationError"


class DuplicateIdentifier(EscrowError):
    code = "DuplicateIdentifier"


class NotFound(EscrowError):
    code = "NotFound"


class AlreadyResolved(EscrowError):
    code = "AlreadyResolved"


class InvalidPreimage(EscrowError):
    code = "InvalidPreimage"


class NotYetExpired(EscrowError):
    code = "NotYetExpired"


class WrongSender(EscrowError):
    code = "WrongSender"


class TransferError(EscrowError):
    code = "TransferError"


class ClaimLocked(EscrowError):
    code = "ClaimLocked"
