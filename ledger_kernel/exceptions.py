"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the close/reopen workflow must react to failures precisely: a
validation failure is fixed by correcting documents, a concurrent state change
is retried, a closed period means choosing another date.  Parsing messages for
that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        close_service.close_period(period_id, actor_id).raise_for_failure()
    except ValidationFailureError as e:
        for issue in e.report.issues:
            show(issue.rule, issue.subject_id, issue.description)
    except ConcurrentStateChangeError:
        retry_after_reload()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- InvalidPostingError
    |   +-- AccountNotFoundError
    |   +-- AccountNotPostableError
    |
    +-- EntryError
    |   +-- EntryNotFoundError
    |   +-- AlreadyConfirmedError
    |   +-- InvalidEntryStateError
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodNotFoundError
    |   +-- PeriodOverlapError
    |   +-- FiscalYearNotFoundError
    |   +-- FiscalYearNotReadyError
    |   +-- ReasonRequiredError
    |   +-- InvalidStateTransitionError
    |       +-- PeriodAlreadyClosedError
    |       +-- CannotReopenFinalizedError
    |
    +-- ValidationFailureError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentStateChangeError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- PersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Posting         | UNBALANCED_ENTRY            | Debits != Credits
                | INVALID_POSTING             | Negative / both sides / no side set
                | ACCOUNT_NOT_FOUND           | Account id unknown for the company
                | ACCOUNT_NOT_POSTABLE        | Account inactive or not a leaf
----------------|-----------------------------|-----------------------------------------
Entry           | ENTRY_NOT_FOUND             | Ledger entry id unknown
                | ALREADY_CONFIRMED           | Confirming a confirmed entry
                | INVALID_ENTRY_STATE         | Edit/void outside the allowed state
----------------|-----------------------------|-----------------------------------------
Period          | PERIOD_CLOSED               | Writing into a non-open period
                | PERIOD_NOT_FOUND            | No period covers the date / id unknown
                | PERIOD_OVERLAP              | Fiscal year overlaps an existing one
                | FISCAL_YEAR_NOT_FOUND       | Fiscal year id unknown
                | FISCAL_YEAR_NOT_READY       | Closing a year with open periods
                | REASON_REQUIRED             | Reopen without a reason
                | INVALID_STATE_TRANSITION    | Transition not in the lifecycle table
                | PERIOD_ALREADY_CLOSED       | Closing a closed period
                | CANNOT_REOPEN_FINALIZED     | Reopening a closed_final period
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_FAILURE          | Closing checks failed (itemized report)
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_STATE_CHANGE     | Compare-and-set on period state lost
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_ERROR           | Storage failure in the write phase

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY code CLASS ATTRIBUTE (not instance)?
   Codes are static per exception type, usable without instantiation.

2. WHY SEPARATE ERROR CATEGORIES?
   Middleware handles categories differently:
   - PeriodError -> user-facing "try different date / period"
   - ConcurrencyError -> re-read and retry
   - ImmutabilityError -> security alert
   - PersistenceError -> operational alert, state unchanged

===============================================================================
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Ledger entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, entry_id: str | None = None):
        self.debits = debits
        self.credits = credits
        self.entry_id = entry_id
        super().__init__(f"Unbalanced entry: debits={debits}, credits={credits}")


class InvalidPostingError(PostingError):
    """A posting line is malformed."""

    code: str = "INVALID_POSTING"

    def __init__(self, line_seq: int | None, reason: str):
        self.line_seq = line_seq
        self.reason = reason
        if line_seq is None:
            super().__init__(f"Invalid postings: {reason}")
        else:
            super().__init__(f"Invalid posting at line {line_seq}: {reason}")


class AccountNotFoundError(PostingError):
    """Account with given ID was not found for the company."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountNotPostableError(PostingError):
    """Account cannot receive postings (inactive or not a leaf)."""

    code: str = "ACCOUNT_NOT_POSTABLE"

    def __init__(self, account_id: str, account_code: str, reason: str):
        self.account_id = account_id
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Account {account_code} cannot receive postings: {reason}")


# Entry-related exceptions


class EntryError(LedgerKernelError):
    """Base exception for ledger entry lifecycle errors."""

    code: str = "ENTRY_ERROR"


class EntryNotFoundError(EntryError):
    """Ledger entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


class AlreadyConfirmedError(EntryError):
    """Ledger entry has already been confirmed."""

    code: str = "ALREADY_CONFIRMED"

    def __init__(self, entry_id: str, entry_number: str):
        self.entry_id = entry_id
        self.entry_number = entry_number
        super().__init__(f"Ledger entry {entry_number} is already confirmed")


class InvalidEntryStateError(EntryError):
    """Operation is not allowed in the entry's current state."""

    code: str = "INVALID_ENTRY_STATE"

    def __init__(self, entry_id: str, current_status: str, operation: str):
        self.entry_id = entry_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} ledger entry {entry_id} in status '{current_status}'"
        )


# Period-related exceptions


class PeriodError(LedgerKernelError):
    """Base exception for fiscal period errors."""

    code: str = "PERIOD_ERROR"


class PeriodClosedError(PeriodError):
    """Attempted to write into a period that is not open."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_name: str, state: str, target_date: str | None = None):
        self.period_name = period_name
        self.state = state
        self.target_date = target_date
        if target_date:
            super().__init__(
                f"Date {target_date} falls in period {period_name}, which is {state}"
            )
        else:
            super().__init__(f"Period {period_name} is {state}")


class PeriodNotFoundError(PeriodError):
    """No period exists for the given id or date."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"No accounting period found for {reference}")


class PeriodOverlapError(PeriodError):
    """New fiscal year overlaps an existing one for the same company."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, new_range: str, existing_year: int):
        self.new_range = new_range
        self.existing_year = existing_year
        super().__init__(
            f"Fiscal year {new_range} overlaps existing fiscal year {existing_year}"
        )


class FiscalYearNotFoundError(PeriodError):
    """Fiscal year with given ID was not found."""

    code: str = "FISCAL_YEAR_NOT_FOUND"

    def __init__(self, fiscal_year_id: str):
        self.fiscal_year_id = fiscal_year_id
        super().__init__(f"Fiscal year not found: {fiscal_year_id}")


class FiscalYearNotReadyError(PeriodError):
    """Fiscal year still has periods that are not closed."""

    code: str = "FISCAL_YEAR_NOT_READY"

    def __init__(self, year: int, open_periods: list[str]):
        self.year = year
        self.open_periods = open_periods
        super().__init__(
            f"Fiscal year {year} has {len(open_periods)} open period(s): "
            f"{', '.join(open_periods)}"
        )


class ReasonRequiredError(PeriodError):
    """Reopening requires a non-blank reason."""

    code: str = "REASON_REQUIRED"

    def __init__(self, target_id: str):
        self.target_id = target_id
        super().__init__(f"A reason is required to reopen {target_id}")


class InvalidStateTransitionError(PeriodError):
    """Requested transition is not allowed from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, target_id: str, current_state: str, requested: str):
        self.target_id = target_id
        self.current_state = current_state
        self.requested = requested
        super().__init__(
            f"Cannot {requested} {target_id} from state '{current_state}'"
        )


class PeriodAlreadyClosedError(InvalidStateTransitionError):
    """Closing a period that is already closed."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, target_id: str, current_state: str):
        super().__init__(target_id, current_state, "close")


class CannotReopenFinalizedError(InvalidStateTransitionError):
    """Reopening a closed_final period is never allowed."""

    code: str = "CANNOT_REOPEN_FINALIZED"

    def __init__(self, target_id: str):
        super().__init__(target_id, "closed_final", "reopen")


# Validation


class ValidationFailureError(LedgerKernelError):
    """
    Closing validation failed.

    Carries the full itemized ValidationReport; callers fix the offending
    documents and retry.
    """

    code: str = "VALIDATION_FAILURE"

    def __init__(self, report):
        self.report = report
        self.period_id = str(report.period_id)
        self.issue_count = len(report.issues)
        super().__init__(
            f"Period {report.period_id} failed closing validation with "
            f"{len(report.issues)} issue(s)"
        )


# Concurrency


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentStateChangeError(ConcurrencyError):
    """
    Compare-and-set on the period state lost the race.

    Retryable: re-read the period state and decide again.
    """

    code: str = "CONCURRENT_STATE_CHANGE"

    def __init__(self, target_id: str, expected_state: str, expected_version: int):
        self.target_id = target_id
        self.expected_state = expected_state
        self.expected_version = expected_version
        super().__init__(
            f"{target_id} changed concurrently "
            f"(expected state '{expected_state}' at version {expected_version})"
        )


# Immutability


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Persistence


class PersistenceError(LedgerKernelError):
    """Storage failure during an atomic write phase; the transaction was rolled back."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, target_id: str, detail: str):
        self.operation = operation
        self.target_id = target_id
        self.detail = detail
        super().__init__(f"{operation} of {target_id} failed and was rolled back: {detail}")
