"""
Typed Exception Hierarchy for the Construction Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejected operation must tell the caller *what kind* of rejection it
was, without the caller parsing message text. Each class therefore carries:

  1. A TYPE (catch by class, not by message)
  2. A CODE class attribute (machine-readable, stable across releases)
  3. Structured DATA as instance attributes (actor, phase, amounts, ids)

Example:
    try:
        machine.make_payment("supplier", 1200, actor=admin)
    except InsufficientBudgetError as e:
        log.warning("short by %s", e.requested - e.available)
        api_response(code=e.code, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ConstructionKernelError:

    ConstructionKernelError (base)
    |
    +-- AccessError
    |   +-- UnauthorizedError
    |
    +-- LifecycleError
    |   +-- NotInitializedError
    |   +-- AlreadyInitializedError
    |   +-- WrongPhaseError
    |   +-- InvalidTransitionError
    |
    +-- BudgetError
    |   +-- AlreadyApprovedError
    |   +-- InsufficientBudgetError
    |
    +-- MilestoneError
    |   +-- AlreadyCompletedError
    |
    +-- SubcontractorError
    |   +-- NotPendingError
    |
    +-- DisputeError
    |   +-- InvalidDisputeIdError
    |   +-- AlreadyResolvedError
    |
    +-- PaymentError
    |   +-- ReentrantCallError
    |   +-- DirectPaymentRejectedError
    |   +-- TransferFailedError
    |
    +-- InputError
        +-- InvalidAmountError
        +-- InvalidIdentityError
        +-- InvalidArgumentError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                     | When Raised
----------------|--------------------------|--------------------------------------
Access          | UNAUTHORIZED             | Actor fails the operation's access rule
----------------|--------------------------|--------------------------------------
Lifecycle       | NOT_INITIALIZED          | Operation before initialize()
                | ALREADY_INITIALIZED      | Second initialize()
                | WRONG_PHASE              | Operation outside its required phase
                | INVALID_TRANSITION       | Phase change to equal or earlier phase
----------------|--------------------------|--------------------------------------
Budget          | ALREADY_APPROVED         | Budget approved a second time
                | INSUFFICIENT_BUDGET      | Payment larger than remaining budget
----------------|--------------------------|--------------------------------------
Milestone       | ALREADY_COMPLETED        | Milestone completed a second time
----------------|--------------------------|--------------------------------------
Subcontractor   | NOT_PENDING              | Approving an identity never proposed
----------------|--------------------------|--------------------------------------
Dispute         | INVALID_ID               | Dispute id outside the ledger
                | ALREADY_RESOLVED         | Dispute resolved a second time
----------------|--------------------------|--------------------------------------
Payment         | REENTRANT_CALL           | make_payment entered while in flight
                | DIRECT_PAYMENT_REJECTED  | Unsolicited value sent to the project
                | TRANSFER_FAILED          | Value transport could not move funds
----------------|--------------------------|--------------------------------------
Input           | INVALID_AMOUNT           | Amount is not a non-negative int
                | INVALID_IDENTITY         | Identity is not a non-empty string
                | INVALID_ARGUMENT         | Unknown phase or milestone value

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Every failure is all-or-nothing: when one of these is raised the project
   state is exactly what it was before the call. Nothing needs undoing.

2. Nothing is retried automatically. The caller decides whether to resubmit
   with corrected arguments.

3. Catch the category when the reaction is the same:

    except LifecycleError as e:
        return {"error": e.code}

===============================================================================
"""


class ConstructionKernelError(Exception):
    """
    Base exception for all construction kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CONSTRUCTION_KERNEL_ERROR"


# Access control


class AccessError(ConstructionKernelError):
    """Base exception for access-control rejections."""

    code: str = "ACCESS_ERROR"


class UnauthorizedError(AccessError):
    """Actor does not satisfy the operation's access rule."""

    code: str = "UNAUTHORIZED"

    def __init__(self, operation: str, actor: str, rule: str):
        self.operation = operation
        self.actor = actor
        self.rule = rule
        super().__init__(
            f"Actor '{actor}' is not authorized for {operation} (requires {rule})"
        )


# Lifecycle


class LifecycleError(ConstructionKernelError):
    """Base exception for initialization and phase errors."""

    code: str = "LIFECYCLE_ERROR"


class NotInitializedError(LifecycleError):
    """Operation attempted before the project was initialized."""

    code: str = "NOT_INITIALIZED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Project is not initialized; cannot {operation}")


class AlreadyInitializedError(LifecycleError):
    """initialize() called on an initialized project."""

    code: str = "ALREADY_INITIALIZED"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} is already initialized")


class WrongPhaseError(LifecycleError):
    """Operation is only allowed in a different phase."""

    code: str = "WRONG_PHASE"

    def __init__(self, operation: str, required_phase: str, current_phase: str):
        self.operation = operation
        self.required_phase = required_phase
        self.current_phase = current_phase
        super().__init__(
            f"{operation} requires phase {required_phase}, "
            f"project is in {current_phase}"
        )


class InvalidTransitionError(LifecycleError):
    """Phase change does not move strictly forward."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, current_phase: str, requested_phase: str):
        self.current_phase = current_phase
        self.requested_phase = requested_phase
        super().__init__(
            f"Cannot move from phase {current_phase} to {requested_phase}"
        )


# Budget


class BudgetError(ConstructionKernelError):
    """Base exception for budget custody errors."""

    code: str = "BUDGET_ERROR"


class AlreadyApprovedError(BudgetError):
    """Budget was already approved."""

    code: str = "ALREADY_APPROVED"

    def __init__(self, approved_budget: int):
        self.approved_budget = approved_budget
        super().__init__(f"Budget already approved at {approved_budget}")


class InsufficientBudgetError(BudgetError):
    """Payment amount exceeds the remaining budget."""

    code: str = "INSUFFICIENT_BUDGET"

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Payment of {requested} exceeds remaining budget {available}"
        )


# Milestones


class MilestoneError(ConstructionKernelError):
    """Base exception for milestone errors."""

    code: str = "MILESTONE_ERROR"


class AlreadyCompletedError(MilestoneError):
    """Milestone was already completed."""

    code: str = "ALREADY_COMPLETED"

    def __init__(self, milestone: str):
        self.milestone = milestone
        super().__init__(f"Milestone {milestone} is already completed")


# Subcontractors


class SubcontractorError(ConstructionKernelError):
    """Base exception for subcontractor registry errors."""

    code: str = "SUBCONTRACTOR_ERROR"


class NotPendingError(SubcontractorError):
    """Identity was never proposed as a subcontractor."""

    code: str = "NOT_PENDING"

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"Subcontractor '{identity}' is not pending approval")


# Disputes


class DisputeError(ConstructionKernelError):
    """Base exception for dispute ledger errors."""

    code: str = "DISPUTE_ERROR"


class InvalidDisputeIdError(DisputeError):
    """Dispute id does not exist in the ledger."""

    code: str = "INVALID_ID"

    def __init__(self, dispute_id: int, dispute_count: int):
        self.dispute_id = dispute_id
        self.dispute_count = dispute_count
        super().__init__(
            f"Dispute id {dispute_id} is out of range "
            f"(ledger holds {dispute_count})"
        )


class AlreadyResolvedError(DisputeError):
    """Dispute was already resolved."""

    code: str = "ALREADY_RESOLVED"

    def __init__(self, dispute_id: int):
        self.dispute_id = dispute_id
        super().__init__(f"Dispute {dispute_id} is already resolved")


# Payments


class PaymentError(ConstructionKernelError):
    """Base exception for value movement errors."""

    code: str = "PAYMENT_ERROR"


class ReentrantCallError(PaymentError):
    """make_payment entered while another payment is still executing."""

    code: str = "REENTRANT_CALL"

    def __init__(self, operation: str, actor: str):
        self.operation = operation
        self.actor = actor
        super().__init__(
            f"Re-entrant call to {operation} by '{actor}' rejected: "
            f"payment already in progress"
        )


class DirectPaymentRejectedError(PaymentError):
    """Unsolicited value sent to the project custody account."""

    code: str = "DIRECT_PAYMENT_REJECTED"

    def __init__(self, sender: str, amount: int):
        self.sender = sender
        self.amount = amount
        super().__init__(
            f"Direct payment of {amount} from '{sender}' rejected"
        )


class TransferFailedError(PaymentError):
    """Value transport could not complete a transfer."""

    code: str = "TRANSFER_FAILED"

    def __init__(self, source: str, destination: str, amount: int, reason: str):
        self.source = source
        self.destination = destination
        self.amount = amount
        self.reason = reason
        super().__init__(
            f"Transfer of {amount} from '{source}' to '{destination}' "
            f"failed: {reason}"
        )


# Input validation


class InputError(ConstructionKernelError):
    """Base exception for malformed operation arguments."""

    code: str = "INPUT_ERROR"


class InvalidAmountError(InputError):
    """Amount is not a non-negative integer."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid {field}: {value!r} (expected a non-negative integer)"
        )


class InvalidIdentityError(InputError):
    """Identity is not a non-empty string."""

    code: str = "INVALID_IDENTITY"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid {field}: {value!r} (expected a non-empty identity)"
        )


class InvalidArgumentError(InputError):
    """Argument is not one of the accepted values (unknown phase or milestone)."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, field: str, value: object, accepted: tuple[str, ...]):
        self.field = field
        self.value = value
        self.accepted = accepted
        super().__init__(
            f"Invalid {field}: {value!r} (expected one of {', '.join(accepted)})"
        )
