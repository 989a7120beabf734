"""
Typed Exception Hierarchy for the Ledger Kernel.

Every error raised by the kernel is a typed exception carrying:
  1. A class-level ``code`` attribute (machine-readable, API-safe)
  2. Structured attributes describing what went wrong
  3. A user-facing message (``str(exc)``)

Callers catch by type, never by message:

    try:
        api.create_entry(header, lines, actor_id)
    except PeriodClosedError as e:
        notify_user(f"Period {e.period_name} is closed")
    except ValidationError as e:
        show_form_error(e.code, str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError                   user-correctable input problems
    |   +-- InvalidLineError
    |   +-- UnbalancedEntryError
    |   +-- VoidReasonRequiredError
    |   +-- AccountNotFoundError
    |   +-- InvalidAccountError
    |
    +-- StateError                        illegal lifecycle transition
    |   +-- EntryNotFoundError
    |   +-- ImmutableEntryError
    |   +-- EntryAlreadyApprovedError
    |   +-- EntryVoidedError
    |   +-- EntryAlreadyVoidedError
    |   +-- VoidNotAllowedError
    |   +-- EntryNotDeletableError
    |   +-- InvalidTransitionError
    |
    +-- PeriodError                       choose another period or date
    |   +-- PeriodNotFoundError
    |   +-- PeriodClosedError
    |   +-- PeriodInactiveError
    |   +-- DateOutOfRangeError
    |   +-- PeriodNotReadyError
    |   +-- PeriodOverlapError
    |   +-- UnapprovedEntriesError
    |
    +-- ConcurrencyError                  recoverable by retry
    |   +-- DuplicateEntryNumberError
    |   +-- AlreadyReopenedError
    |
    +-- StoreError                        persistence failure, cause attached
    |   +-- SequenceUnavailableError
    |
    +-- InternalInvariantError            a bug, never swallowed
        +-- OpeningEntryUnbalancedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_LINE                | Structural problem with entry lines
                | UNBALANCED_ENTRY            | |debits - credits| > 0.01
                | VOID_REASON_REQUIRED        | Void called with an empty reason
                | ACCOUNT_NOT_FOUND           | Account reference does not resolve
                | INVALID_ACCOUNT             | Account can't be used as given
----------------|-----------------------------|-----------------------------------------
State           | ENTRY_NOT_FOUND             | Entry ID doesn't exist
                | IMMUTABLE_ENTRY             | Edit of approved/posted/voided entry
                | ENTRY_ALREADY_APPROVED      | Approve of approved/posted entry
                | ENTRY_VOIDED                | Operation on a voided entry
                | ENTRY_ALREADY_VOIDED        | Void of a voided entry
                | VOID_NOT_ALLOWED            | Void of approved/posted entry
                | ENTRY_NOT_DELETABLE         | Delete outside draft/pending
                | INVALID_TRANSITION          | Any other illegal status change
----------------|-----------------------------|-----------------------------------------
Period          | PERIOD_NOT_FOUND            | Period ID doesn't exist
                | PERIOD_CLOSED               | Period (or its fiscal year) is closed
                | PERIOD_INACTIVE             | Monthly period is deactivated
                | DATE_OUT_OF_RANGE           | Entry date outside the period
                | PERIOD_NOT_READY            | Transition precondition failed
                | PERIOD_OVERLAP              | Fiscal period ranges overlap
                | UNAPPROVED_ENTRIES          | Close blocked by open entries
----------------|-----------------------------|-----------------------------------------
Concurrency     | DUPLICATE_ENTRY_NUMBER      | Entry number collision on insert
                | ALREADY_REOPENED            | Target already has opening balances
----------------|-----------------------------|-----------------------------------------
Store           | STORE_ERROR                 | Underlying database failure
                | SEQUENCE_UNAVAILABLE        | Entry number counter unusable
----------------|-----------------------------|-----------------------------------------
Internal        | INTERNAL_INVARIANT          | Kernel produced inconsistent data
                | OPENING_ENTRY_UNBALANCED    | Generated opening entry failed check

===============================================================================
PROPAGATION
===============================================================================

ValidationError, StateError and PeriodError are raised before any write.
ConcurrencyError and StoreError are raised from inside the unit of work; the
caller's ``session_scope()`` rolls back everything the operation wrote.
InternalInvariantError is logged at CRITICAL and always re-raised.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation errors


class ValidationError(LedgerKernelError):
    """Base exception for user-correctable entry validation problems."""

    code: str = "VALIDATION_ERROR"


class InvalidLineError(ValidationError):
    """Entry lines are structurally invalid (count, account, amount, sides)."""

    code: str = "INVALID_LINE"

    def __init__(self, reason: str, line_index: int | None = None):
        self.reason = reason
        self.line_index = line_index
        super().__init__(reason)


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits within tolerance."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, reason: str, total_debit: str, total_credit: str, difference: str):
        self.reason = reason
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.difference = difference
        super().__init__(reason)


class VoidReasonRequiredError(ValidationError):
    """Voiding requires a non-empty reason."""

    code: str = "VOID_REASON_REQUIRED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__("A reason is required to void an entry")


class AccountNotFoundError(ValidationError):
    """Account reference does not resolve to a known account."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        super().__init__(f"Account not found: {account_ref}")


class InvalidAccountError(ValidationError):
    """Account cannot be used the way it was requested."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_ref: str, reason: str):
        self.account_ref = account_ref
        self.reason = reason
        super().__init__(f"Invalid account {account_ref}: {reason}")


# Lifecycle state errors


class StateError(LedgerKernelError):
    """Base exception for illegal lifecycle transitions."""

    code: str = "STATE_ERROR"


class EntryNotFoundError(StateError):
    """Journal entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class ImmutableEntryError(StateError):
    """Approved, posted and voided entries cannot be edited."""

    code: str = "IMMUTABLE_ENTRY"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Journal entry {entry_id} is {status} and cannot be modified"
        )


class EntryAlreadyApprovedError(StateError):
    """Entry is already approved (or posted)."""

    code: str = "ENTRY_ALREADY_APPROVED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(f"Journal entry {entry_id} is already {status}")


class EntryVoidedError(StateError):
    """Entry is voided and accepts no further transitions."""

    code: str = "ENTRY_VOIDED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} is voided")


class EntryAlreadyVoidedError(StateError):
    """Entry has already been voided."""

    code: str = "ENTRY_ALREADY_VOIDED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} is already voided")


class VoidNotAllowedError(StateError):
    """Approved and posted entries must be reversed, not voided."""

    code: str = "VOID_NOT_ALLOWED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Journal entry {entry_id} is {status}; "
            f"record a reversing entry instead of voiding it"
        )


class EntryNotDeletableError(StateError):
    """Only draft and pending entries can be deleted."""

    code: str = "ENTRY_NOT_DELETABLE"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Journal entry {entry_id} is {status} and cannot be deleted"
        )


class InvalidTransitionError(StateError):
    """Requested status change is not part of the lifecycle."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entry_id: str, from_status: str, to_status: str):
        self.entry_id = entry_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Journal entry {entry_id} cannot move from {from_status} to {to_status}"
        )


# Period errors


class PeriodError(LedgerKernelError):
    """Base exception for period-related errors."""

    code: str = "PERIOD_ERROR"


class PeriodNotFoundError(PeriodError):
    """Period with given ID was not found."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: str, kind: str = "period"):
        self.period_id = period_id
        self.kind = kind
        super().__init__(f"{kind.capitalize()} not found: {period_id}")


class PeriodClosedError(PeriodError):
    """Entries cannot be created or edited in a closed period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_id: str, period_name: str, reason: str | None = None):
        self.period_id = period_id
        self.period_name = period_name
        self.reason = reason
        message = f"Period {period_name} is closed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PeriodInactiveError(PeriodError):
    """Monthly period is not active."""

    code: str = "PERIOD_INACTIVE"

    def __init__(self, period_id: str, period_name: str):
        self.period_id = period_id
        self.period_name = period_name
        super().__init__(f"Period {period_name} is not active")


class DateOutOfRangeError(PeriodError):
    """Entry date falls outside the period's date range."""

    code: str = "DATE_OUT_OF_RANGE"

    def __init__(self, entry_date: str, period_name: str, start_date: str, end_date: str):
        self.entry_date = entry_date
        self.period_name = period_name
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Date {entry_date} is outside period {period_name} "
            f"({start_date} to {end_date})"
        )


class PeriodNotReadyError(PeriodError):
    """A period transition precondition does not hold."""

    code: str = "PERIOD_NOT_READY"

    def __init__(self, reason: str, period_id: str | None = None):
        self.reason = reason
        self.period_id = period_id
        super().__init__(reason)


class PeriodOverlapError(PeriodError):
    """Fiscal period date range overlaps an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, name: str, existing_name: str):
        self.name = name
        self.existing_name = existing_name
        super().__init__(f"Period {name} overlaps existing period {existing_name}")


class UnapprovedEntriesError(PeriodError):
    """Period close is blocked by entries that are not yet approved."""

    code: str = "UNAPPROVED_ENTRIES"

    def __init__(self, period_id: str, period_name: str, count: int):
        self.period_id = period_id
        self.period_name = period_name
        self.count = count
        super().__init__(
            f"Period {period_name} has {count} unapproved entries; "
            f"approve, void or delete them before closing"
        )


# Concurrency errors


class ConcurrencyError(LedgerKernelError):
    """Base exception for conflicts between concurrent operations."""

    code: str = "CONCURRENCY_ERROR"


class DuplicateEntryNumberError(ConcurrencyError):
    """Another transaction persisted the same entry number."""

    code: str = "DUPLICATE_ENTRY_NUMBER"

    def __init__(self, entry_number: str):
        self.entry_number = entry_number
        super().__init__(f"Entry number {entry_number} is already in use")


class AlreadyReopenedError(ConcurrencyError):
    """Target period already carries an opening entry."""

    code: str = "ALREADY_REOPENED"

    def __init__(self, period_id: str, period_name: str, opening_entry_id: str | None = None):
        self.period_id = period_id
        self.period_name = period_name
        self.opening_entry_id = opening_entry_id
        super().__init__(f"Period {period_name} already has opening balances")


# Store errors


class StoreError(LedgerKernelError):
    """
    Underlying persistence failure.

    The operation was rolled back in full; the original exception is kept
    on ``cause`` (and as ``__cause__``) for logging.
    """

    code: str = "STORE_ERROR"

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {type(cause).__name__}" if cause is not None else ""
        super().__init__(f"Storage failure during {operation}{detail}")


class SequenceUnavailableError(StoreError):
    """Entry number counter cannot be used and fallback is disabled."""

    code: str = "SEQUENCE_UNAVAILABLE"

    def __init__(self, sequence_name: str, cause: BaseException | None = None):
        self.sequence_name = sequence_name
        super().__init__(f"allocation from sequence {sequence_name}", cause)


# Internal invariant errors


class InternalInvariantError(LedgerKernelError):
    """Kernel produced data violating its own invariants. Indicates a bug."""

    code: str = "INTERNAL_INVARIANT"


class OpeningEntryUnbalancedError(InternalInvariantError):
    """Generated opening entry failed the balance self-check."""

    code: str = "OPENING_ENTRY_UNBALANCED"

    def __init__(self, target_period_id: str, reason: str):
        self.target_period_id = target_period_id
        self.reason = reason
        super().__init__(
            f"Generated opening entry for period {target_period_id} "
            f"failed its balance check: {reason}"
        )
