"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  The service layer raises domain-specific errors (like InsufficientFundsError)
  without importing HTTP concepts. The handler layer then translates these
  into proper HTTP responses, so operators can tell "cannot do this"
  (insufficient funds, already processed) apart from "something broke"
  (storage failure).

Exception hierarchy:
    BackOfficeError (base)
    ├── InsufficientFundsError   — withdraw/freeze/settle would go negative
    ├── NotFoundError            — referenced record missing or wrong type
    │   ├── UserNotFoundError
    │   ├── AccountNotFoundError
    │   ├── RequestNotFoundError — deposit/withdrawal request
    │   ├── TransactionNotFoundError
    │   ├── BetNotFoundError
    │   └── SessionNotFoundError
    ├── AlreadyProcessedError    — record already left its pending state
    ├── InvalidTransitionError   — target status not allowed from current one
    ├── SessionClosedError       — bet placed on a completed/cancelled session
    ├── BankDetailsRequiredError — withdrawal without a destination account
    ├── DuplicateError           — email, username or session code taken
    ├── InvalidCredentialsError
    └── StorageFailureError      — the unit of work could not commit
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class BackOfficeError(Exception):
    """Base exception for all back-office domain errors."""

    status_code = 400
    error_type = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InsufficientFundsError(BackOfficeError):
    """
    Raised when a ledger mutation would drive a balance negative.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested_cents: The amount the caller tried to move.
        available_cents: The balance the check ran against (available, or
            frozen for unfreeze/settle).
    """

    status_code = 422  # The request was valid but business rules reject it
    error_type = "insufficient_funds"

    def __init__(
        self,
        account_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.account_id = account_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient funds: requested {requested_cents}, "
            f"available {available_cents}"
        )


class NotFoundError(BackOfficeError):
    status_code = 404
    error_type = "not_found"


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class RequestNotFoundError(NotFoundError):
    """Missing record, or a record of the other request type."""

    def __init__(self, txn_type: str, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        label = "Deposit" if txn_type == "deposit" else "Withdrawal"
        super().__init__(f"{label} request {transaction_id} not found")


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class BetNotFoundError(NotFoundError):
    def __init__(self, bet_id: uuid.UUID):
        self.bet_id = bet_id
        super().__init__(f"Bet {bet_id} not found")


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: uuid.UUID):
        self.session_id = session_id
        super().__init__(f"Trading session {session_id} not found")


class AlreadyProcessedError(BackOfficeError):
    """The double-submission guard: the record is no longer pending."""

    error_type = "already_processed"

    def __init__(self, transaction_id: uuid.UUID, status: str | None = None):
        self.transaction_id = transaction_id
        self.status = status
        suffix = f" (status: {status})" if status else ""
        super().__init__(f"Transaction {transaction_id} has already been processed{suffix}")


class InvalidTransitionError(BackOfficeError):
    error_type = "invalid_transition"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from '{current}' to '{target}'")


class SessionClosedError(BackOfficeError):
    error_type = "session_closed"

    def __init__(self, session_id: uuid.UUID, status: str):
        self.session_id = session_id
        super().__init__(f"Trading session {session_id} is {status} and accepts no bets")


class BankDetailsRequiredError(BackOfficeError):
    error_type = "bank_details_required"

    def __init__(self):
        super().__init__("Add bank details to the account before requesting a withdrawal")


class DuplicateError(BackOfficeError):
    status_code = 409  # Conflict — the resource already exists
    error_type = "duplicate"


class DuplicateEmailError(DuplicateError):
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class DuplicateUsernameError(DuplicateError):
    error_type = "duplicate_username"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username {username} is already taken")


class DuplicateSessionError(DuplicateError):
    error_type = "duplicate_session"

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"A trading session with code {code} already exists")


class InvalidCredentialsError(BackOfficeError):
    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


class StorageFailureError(BackOfficeError):
    """
    The unit of work could not commit (contention, connectivity, constraint).

    Nothing from the unit was applied. Callers must not retry financial
    mutations automatically.
    """

    status_code = 500
    error_type = "storage_failure"

    def __init__(self, detail: str = "The operation could not be committed"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Every domain exception maps to its status_code and the response body
    {"detail": ..., "error_type": ...}. Insufficient funds carries the
    requested/available amounts so the UI can show them.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "requested_cents": exc.requested_cents,
                "available_cents": exc.available_cents,
            },
        )

    @app.exception_handler(StorageFailureError)
    async def storage_failure_handler(
        request: Request, exc: StorageFailureError
    ) -> JSONResponse:
        # The underlying cause was logged where the unit of work failed
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(BackOfficeError)
    async def back_office_error_handler(
        request: Request, exc: BackOfficeError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Request bodies are validated exhaustively before any mutation runs;
        # unknown or missing fields are a client error, not a business rule.
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "detail": "Request validation failed",
                "error_type": "validation_error",
                "errors": errors,
            },
        )
