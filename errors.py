"""
Error taxonomy for the ledger API.

Each error carries the HTTP status it maps to; main.py turns them into
{"message": ...} responses.
"""


class LedgerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    status_code = 400


class InvalidAmount(ValidationError):
    def __init__(self, message: str = "Invalid amount"):
        super().__init__(message)


class InvalidMethod(ValidationError):
    def __init__(self, message: str = "Invalid method"):
        super().__init__(message)


class InvalidName(ValidationError):
    def __init__(self, message: str = "Game name is required"):
        super().__init__(message)


class NotFoundError(LedgerError):
    status_code = 404


class AuthError(LedgerError):
    status_code = 401


class ForbiddenError(LedgerError):
    status_code = 403


class StorageError(LedgerError):
    status_code = 500
