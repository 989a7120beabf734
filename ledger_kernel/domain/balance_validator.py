"""
Balance Validator -- structural and arithmetic checks for candidate entries.

Responsibility:
    Decides whether a list of candidate lines can become a journal entry.
    Pure: no I/O, no side effects, never raises for bad input.  Account
    hierarchy information is passed in as a mapping prepared by the caller.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by
    JournalService before any write and by ReopeningService as a self-check
    over the opening entry it generates.

Rules (evaluated in order; the first failure is reported):
    1. At least two lines.
    2. Every line names an account.
    3. Every line carries a positive amount on exactly one side.
    4. At least one debit line and at least one credit line.
    5. No line references a parent (group) account.  When an account
       mapping is supplied, unknown and inactive accounts fail here too.
    6. No account appears on more than one line.
    7. round2(sum of debits) and round2(sum of credits) differ by no more
       than BALANCE_TOLERANCE.  The message reports the signed difference.

    Each running sum is rounded on its own before the comparison.

Failure modes:
    None raised by validate_balance().  raise_for_check() converts a failed
    BalanceCheck into InvalidLineError (rules 1-6) or UnbalancedEntryError
    (rule 7).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ledger_kernel.domain.amounts import (
    BALANCE_TOLERANCE,
    ZERO,
    format_amount,
    sum_amounts,
)
from ledger_kernel.domain.dtos import AccountInfo, BalanceCheck, EntryLine, LineSide
from ledger_kernel.domain.line_input import (
    CandidateLine,
    LineInputError,
    account_ref_of,
    normalize_lines,
)
from ledger_kernel.exceptions import InvalidLineError, UnbalancedEntryError

RULE_LINE_COUNT = 1
RULE_ACCOUNT_PRESENT = 2
RULE_SINGLE_SIDED_AMOUNT = 3
RULE_BOTH_SIDES_PRESENT = 4
RULE_POSTABLE_ACCOUNT = 5
RULE_UNIQUE_ACCOUNT = 6
RULE_BALANCED = 7


def _fail(
    rule: int,
    message: str,
    line_index: int | None = None,
    total_debit=ZERO,
    total_credit=ZERO,
) -> BalanceCheck:
    return BalanceCheck(
        valid=False,
        message=message,
        total_debit=total_debit,
        total_credit=total_credit,
        failed_rule=rule,
        line_index=line_index,
    )


def _amount_problem(line: CandidateLine) -> str | None:
    if line.debit < 0 or line.credit < 0:
        return "has a negative amount"
    if line.debit > 0 and line.credit > 0:
        return "cannot have both a debit and a credit amount"
    if line.debit == 0 and line.credit == 0:
        return "must have a debit or a credit amount greater than zero"
    return None


def validate_balance(
    lines: Iterable[Any],
    accounts: Mapping[str, AccountInfo] | None = None,
) -> BalanceCheck:
    """
    Validate candidate lines for a journal entry.

    Args:
        lines: Candidate lines in any encoding accepted by
            ledger_kernel.domain.line_input.
        accounts: Optional mapping of account reference (as it appears on
            the lines) to AccountInfo.  Without it rule 5 is skipped and
            rule 6 compares raw references.

    Returns:
        BalanceCheck with totals; on success its ``lines`` are the tagged
        EntryLine records in input order.
    """
    raw_lines = list(lines)

    if len(raw_lines) < 2:
        return _fail(RULE_LINE_COUNT, "An entry requires at least two lines")

    # Read from the raw lines so an unreadable amount cannot mask rule 2
    for index, raw in enumerate(raw_lines):
        if not account_ref_of(raw):
            return _fail(RULE_ACCOUNT_PRESENT, f"Line {index + 1} has no account", index)

    try:
        candidates = normalize_lines(raw_lines)
    except LineInputError as exc:
        return _fail(RULE_SINGLE_SIDED_AMOUNT, str(exc), exc.line_index)

    total_debit = sum_amounts(line.debit for line in candidates)
    total_credit = sum_amounts(line.credit for line in candidates)

    def fail(rule: int, message: str, index: int | None = None) -> BalanceCheck:
        return _fail(rule, message, index, total_debit, total_credit)

    for index, line in enumerate(candidates):
        problem = _amount_problem(line)
        if problem:
            return fail(RULE_SINGLE_SIDED_AMOUNT, f"Line {index + 1} {problem}", index)

    if not any(line.debit > 0 for line in candidates):
        return fail(RULE_BOTH_SIDES_PRESENT, "An entry requires at least one debit line")
    if not any(line.credit > 0 for line in candidates):
        return fail(RULE_BOTH_SIDES_PRESENT, "An entry requires at least one credit line")

    if accounts is not None:
        for index, line in enumerate(candidates):
            info = accounts.get(line.account_ref)
            if info is None:
                return fail(
                    RULE_POSTABLE_ACCOUNT,
                    f"Line {index + 1} references unknown account {line.account_ref}",
                    index,
                )
            if info.is_parent:
                return fail(
                    RULE_POSTABLE_ACCOUNT,
                    f"Account {info.code} is a parent account and cannot receive entries",
                    index,
                )
            if not info.is_active:
                return fail(
                    RULE_POSTABLE_ACCOUNT,
                    f"Account {info.code} is inactive",
                    index,
                )

    seen: set[object] = set()
    for index, line in enumerate(candidates):
        if accounts is not None:
            info = accounts[line.account_ref]
            key, label = info.id, info.code
        else:
            key, label = line.account_ref, line.account_ref
        if key in seen:
            return fail(
                RULE_UNIQUE_ACCOUNT,
                f"Account {label} appears on more than one line",
                index,
            )
        seen.add(key)

    difference = total_debit - total_credit
    if abs(difference) > BALANCE_TOLERANCE:
        return fail(
            RULE_BALANCED,
            f"Entry is not balanced: debits {format_amount(total_debit)}, "
            f"credits {format_amount(total_credit)}, "
            f"difference {format_amount(difference)}",
        )

    tagged = tuple(
        EntryLine(
            account_ref=line.account_ref,
            side=LineSide.DEBIT if line.debit > 0 else LineSide.CREDIT,
            amount=line.debit if line.debit > 0 else line.credit,
            description=line.description,
        )
        for line in candidates
    )
    return BalanceCheck(
        valid=True,
        message="Entry is balanced",
        total_debit=total_debit,
        total_credit=total_credit,
        lines=tagged,
    )


def raise_for_check(check: BalanceCheck) -> BalanceCheck:
    """
    Return the check unchanged if valid, else raise its typed error.

    Raises:
        UnbalancedEntryError: Rule 7 failed.
        InvalidLineError: Any other rule failed.
    """
    if check.valid:
        return check
    if check.failed_rule == RULE_BALANCED:
        raise UnbalancedEntryError(
            check.message,
            total_debit=format_amount(check.total_debit),
            total_credit=format_amount(check.total_credit),
            difference=format_amount(check.difference),
        )
    raise InvalidLineError(check.message, line_index=check.line_index)
