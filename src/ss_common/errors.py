"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Participant / balance
  3xxx: Valuation
  4xxx: Trading
  5xxx: Holding
  6xxx: Coordination
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Admin service token required", 403)


# --- 2xxx: Participant ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: object, available: object) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: cost ${required}, balance ${available}",
            422,
        )


class ParticipantNotFoundError(AppError):
    def __init__(self, identity: str) -> None:
        super().__init__(2002, f"Participant not found: {identity}", 404)


class InvalidAdminUpdateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2003, f"Invalid update: {detail}", 422)


# --- 3xxx: Valuation ---

class ValuationNotFoundError(AppError):
    def __init__(self, identity: str) -> None:
        super().__init__(3001, f"This user does not have a stock yet: {identity}", 404)


# --- 4xxx: Trading ---

class PriceBoundExceededError(AppError):
    def __init__(self, current: object, bound: object) -> None:
        super().__init__(
            4001,
            f"Price spike detected: current ${current}, max ${bound}",
            409,
        )


class SelfTradeError(AppError):
    def __init__(self) -> None:
        super().__init__(4003, "You cannot trade your own stock", 422)


class NotMajorityShareholderError(AppError):
    def __init__(self, symbol: str) -> None:
        super().__init__(4004, f"You are not the Majority Shareholder of {symbol}", 403)


# --- 5xxx: Holding ---

class InsufficientHoldingError(AppError):
    def __init__(self, requested: int, owned: int) -> None:
        super().__init__(
            5001,
            f"You do not have enough shares: requested {requested}, owned {owned}",
            422,
        )


# --- 6xxx: Coordination ---

class SlotLostError(AppError):
    """Raised when a heartbeat finds the cluster slot owned by someone else."""

    def __init__(self, slot_id: int) -> None:
        super().__init__(6001, f"Cluster slot {slot_id} is no longer owned by this process", 503)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ServiceUnavailableError(AppError):
    def __init__(self) -> None:
        super().__init__(9003, "Service temporarily unavailable, try again", 503)
