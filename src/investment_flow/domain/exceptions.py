"""Domain exceptions for the investment flow.

These exceptions are framework-agnostic and represent a reverted call: bad
input, an unauthorized caller, a violated precondition or a failing
collaborator. The ledger runtime rolls back every state change made by a call
that raises one of them. The API layer's middleware translates them into
HTTP responses.
"""


class InvestmentFlowError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "INVESTMENT_FLOW_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Lifecycle Errors ---


class AlreadyInitializedError(InvestmentFlowError):
    """Raised when initialize() is called a second time."""

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"Contract already initialized: {address}",
            code="ALREADY_INITIALIZED",
        )


class NotInitializedError(InvestmentFlowError):
    """Raised when a contract is used before initialize()."""

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"Contract not initialized: {address}",
            code="NOT_INITIALIZED",
        )


class ContractNotFoundError(InvestmentFlowError):
    """Raised when an address does not hold a deployed contract."""

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"No contract deployed at: {address}",
            code="CONTRACT_NOT_FOUND",
        )
        self.address = address


# --- State Machine Errors ---


class InvalidStateTransitionError(InvestmentFlowError):
    """Raised when an attempted escrow transition is not allowed.

    Example: ACTIVE -> EXECUTED (must go through APPROVED first).
    """

    def __init__(self, current_state: str, attempted_state: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {current_state} -> {attempted_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_state = attempted_state


# --- Caller Errors ---


class UnauthorizedError(InvestmentFlowError):
    """Raised when the caller lacks the capability required for an action."""

    def __init__(self, caller: str, action: str) -> None:
        super().__init__(
            message=f"Caller {caller} is not authorized to {action}",
            code="UNAUTHORIZED",
        )
        self.caller = caller
        self.action = action


class AuthenticationError(InvestmentFlowError):
    """Raised when an API caller presents no credentials or credentials that fail verification."""

    def __init__(self, message: str, code: str = "UNAUTHENTICATED") -> None:
        super().__init__(message=message, code=code)


class PreconditionError(InvestmentFlowError):
    """Raised when a call's precondition does not hold."""

    def __init__(self, message: str, code: str = "PRECONDITION_FAILED") -> None:
        super().__init__(message=message, code=code)


class InvalidAmountError(PreconditionError):
    """Raised for zero, negative or mismatched amounts."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="INVALID_AMOUNT")


class InvalidAddressError(PreconditionError):
    """Raised when an address argument is malformed or the zero address."""

    def __init__(self, address: str) -> None:
        super().__init__(message=f"Invalid address: {address!r}", code="INVALID_ADDRESS")


class DeadlinePassedError(PreconditionError):
    """Raised when an operation arrives after its deadline."""

    def __init__(self, what: str, deadline: int, now: int) -> None:
        super().__init__(
            message=f"{what} deadline passed at {deadline} (now {now})",
            code="DEADLINE_PASSED",
        )
        self.deadline = deadline
        self.now = now


class RefundNotAvailableError(PreconditionError):
    """Raised when refund() is called while can_refund() is false."""

    def __init__(self, status: str) -> None:
        super().__init__(
            message=f"Refund not available in status {status}",
            code="REFUND_NOT_AVAILABLE",
        )


class SaleNotActiveError(PreconditionError):
    """Raised when a purchase arrives while the sale is not ACTIVE."""

    def __init__(self, status: str) -> None:
        super().__init__(message=f"Sale is not active: {status}", code="SALE_NOT_ACTIVE")


class SalePausedError(PreconditionError):
    """Raised when a purchase arrives while the sale is paused."""

    def __init__(self) -> None:
        super().__init__(message="Sale is paused", code="SALE_PAUSED")


class NotWhitelistedError(PreconditionError):
    """Raised when a user or payment currency is not whitelisted."""

    def __init__(self, kind: str, address: str) -> None:
        super().__init__(
            message=f"{kind} not whitelisted: {address}",
            code="NOT_WHITELISTED",
        )


class PurchaseLimitError(PreconditionError):
    """Raised when a purchase would break min/max per address or the hardcap."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="PURCHASE_LIMIT")


class FeeExceedsPaymentError(PreconditionError):
    """Raised when the platform fee would consume an entire escrow payment."""

    def __init__(self, payment: int, fee: int) -> None:
        super().__init__(
            message=f"Fee {fee} leaves nothing of payment {payment}",
            code="FEE_EXCEEDS_PAYMENT",
        )


class BatchTooLargeError(PreconditionError):
    """Raised when an administrative batch exceeds the configured cap."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            message=f"Batch of {size} exceeds limit of {limit}",
            code="BATCH_TOO_LARGE",
        )


class LockupActiveError(PreconditionError):
    """Raised when unlock() is called before the global unlock condition holds."""

    def __init__(self) -> None:
        super().__init__(message="Tokens are still locked", code="LOCKUP_ACTIVE")


class NothingToUnlockError(PreconditionError):
    """Raised when the caller has no locked balance."""

    def __init__(self, account: str) -> None:
        super().__init__(
            message=f"No locked balance for {account}",
            code="NOTHING_TO_UNLOCK",
        )


class NothingToClaimError(PreconditionError):
    """Raised when claim_back() finds no recorded payment for the currency."""

    def __init__(self, account: str, currency: str) -> None:
        super().__init__(
            message=f"No refundable payment for {account} in {currency}",
            code="NOTHING_TO_CLAIM",
        )


class EscrowNotActiveError(PreconditionError):
    """Raised when an escrow operation needs an ACTIVE escrow."""

    def __init__(self, status: str) -> None:
        super().__init__(message=f"Escrow is not active: {status}", code="ESCROW_NOT_ACTIVE")


class EscrowAlreadyFundedError(PreconditionError):
    """Raised when a second deposit is attempted."""

    def __init__(self, escrow: str) -> None:
        super().__init__(message=f"Escrow already funded: {escrow}", code="ESCROW_ALREADY_FUNDED")


class EscrowNotFundedError(PreconditionError):
    """Raised when an admin decision is attempted before any deposit."""

    def __init__(self, escrow: str) -> None:
        super().__init__(message=f"Escrow has no deposit: {escrow}", code="ESCROW_NOT_FUNDED")


class EscrowAlreadyOpenError(PreconditionError):
    """Raised when an investor already has an open escrow for the same sale and currency."""

    def __init__(self, escrow: str) -> None:
        super().__init__(
            message=f"An open escrow already exists: {escrow}",
            code="ESCROW_ALREADY_OPEN",
        )


# --- Collaborator Errors ---


class CollaboratorError(InvestmentFlowError):
    """Base for failures raised by token or native-asset transfers."""


class InsufficientBalanceError(CollaboratorError):
    """Raised when an account cannot cover a transfer."""

    def __init__(self, account: str, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient balance for {account}: required {required}, "
            f"available {available}",
            code="INSUFFICIENT_BALANCE",
        )
        self.required = required
        self.available = available


class InsufficientAllowanceError(CollaboratorError):
    """Raised when transfer_from exceeds the approved allowance."""

    def __init__(self, owner: str, spender: str, required: int, available: int) -> None:
        super().__init__(
            message=f"Allowance of {spender} over {owner} is {available}, need {required}",
            code="INSUFFICIENT_ALLOWANCE",
        )


class MintingNotAllowedError(CollaboratorError):
    """Raised when a sale must mint tokens but does not hold the minter role."""

    def __init__(self, token: str, minter: str) -> None:
        super().__init__(
            message=f"{minter} lacks the minter role on {token}",
            code="MINTING_NOT_ALLOWED",
        )


class ReentrancyError(InvestmentFlowError):
    """Raised when a guarded function is re-entered during its own execution."""

    def __init__(self, address: str, function: str) -> None:
        super().__init__(
            message=f"Reentrant call to {function} on {address}",
            code="REENTRANT_CALL",
        )
