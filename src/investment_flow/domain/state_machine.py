"""Investment Escrow State Machine Guard.

Uses python-statemachine to enforce legal state transitions at the domain level.
No matter which admin action or time-based path runs, an illegal transition
(e.g., ACTIVE -> EXECUTED) will raise TransitionNotAllowed.

The machine is instantiated from the escrow's stored status and validates a
transition before the escrow's storage is updated.

Transition table:
    ACTIVE              -> APPROVED            (approve)
    ACTIVE              -> PARTIALLY_APPROVED  (partially_approve)
    ACTIVE              -> REJECTED            (reject)
    ACTIVE              -> EXPIRED             (expire)
    APPROVED            -> EXECUTED            (execute_purchase)
    PARTIALLY_APPROVED  -> EXECUTED            (execute_purchase)
    REJECTED            -> REFUNDED            (refund)
    any but EXECUTED/REFUNDED -> REFUNDED      (emergency_withdraw)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from investment_flow.domain.enums import EscrowStatus


class EscrowStateMachine(StateMachine):
    """State machine that guards investment escrow lifecycle transitions.

    Usage:
        sm = EscrowStateMachine(current_status="ACTIVE")
        sm.approve()   # transitions to APPROVED
        sm.status      # "APPROVED"
    """

    # --- States ---
    ACTIVE = State("Active", value=EscrowStatus.ACTIVE.value, initial=True)
    APPROVED = State("Approved", value=EscrowStatus.APPROVED.value)
    PARTIALLY_APPROVED = State("Partially approved", value=EscrowStatus.PARTIALLY_APPROVED.value)
    REJECTED = State("Rejected", value=EscrowStatus.REJECTED.value)
    EXPIRED = State("Expired", value=EscrowStatus.EXPIRED.value)
    EXECUTED = State("Executed", value=EscrowStatus.EXECUTED.value, final=True)
    REFUNDED = State("Refunded", value=EscrowStatus.REFUNDED.value, final=True)

    # --- Events / Transitions ---

    # Admin decisions
    approve = ACTIVE.to(APPROVED)
    partially_approve = ACTIVE.to(PARTIALLY_APPROVED)
    reject = ACTIVE.to(REJECTED)

    # Purchase forwarded into the sale
    execute_purchase = APPROVED.to(EXECUTED) | PARTIALLY_APPROVED.to(EXECUTED)

    # Time-based and refund paths
    expire = ACTIVE.to(EXPIRED)
    refund = REJECTED.to(REFUNDED)

    # Escape hatch
    emergency_withdraw = (
        ACTIVE.to(REFUNDED)
        | APPROVED.to(REFUNDED)
        | PARTIALLY_APPROVED.to(REFUNDED)
        | REJECTED.to(REFUNDED)
        | EXPIRED.to(REFUNDED)
    )

    EVENT_NAMES = (
        "approve",
        "partially_approve",
        "reject",
        "execute_purchase",
        "expire",
        "refund",
        "emergency_withdraw",
    )

    def __init__(self, current_status: str = EscrowStatus.ACTIVE.value) -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current EscrowStatus value (e.g., "ACTIVE").
                           Must match one of the State value strings exactly.
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=str(current_status))

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches EscrowStatus enum)."""
        return str(self.current_state.value)

    @property
    def in_final_state(self) -> bool:
        return bool(self.current_state.final)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        allowed = []
        for name in self.EVENT_NAMES:
            probe = EscrowStateMachine(current_status=self.status)
            try:
                getattr(probe, name)()
            except TransitionNotAllowed:
                continue
            allowed.append(name)
        return allowed


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate a state transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns the
    resulting status string.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = EscrowStateMachine(current_status=current_status)

    if event_name not in EscrowStateMachine.EVENT_NAMES:
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    getattr(sm, event_name)()
    return sm.status
