from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, List

from errors import InvalidInput
from schemas import MAX_DURATION, LoanTotals, LoanValues

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation(value)
    if isinstance(value, float):
        # go through str so 0.1 stays 0.1
        return Decimal(str(value))
    return Decimal(value)


def _check_inputs(amount, interest_rate, duration, paid_amount):
    errors: List[dict] = []
    values = {}

    for field, raw in (
        ("amount", amount),
        ("interestRate", interest_rate),
        ("paidAmount", paid_amount),
    ):
        try:
            value = to_decimal(raw)
        except (InvalidOperation, TypeError, ValueError):
            errors.append({"field": field, "message": "must be a number"})
            continue
        if not value.is_finite():
            errors.append({"field": field, "message": "must be a finite number"})
            continue
        values[field] = value

    if "amount" in values and values["amount"] <= 0:
        errors.append({"field": "amount", "message": "must be greater than 0"})
    if "interestRate" in values and values["interestRate"] < 0:
        errors.append({"field": "interestRate", "message": "must not be negative"})
    if "paidAmount" in values and values["paidAmount"] < 0:
        errors.append({"field": "paidAmount", "message": "must not be negative"})

    if isinstance(duration, bool) or not isinstance(duration, int):
        errors.append({"field": "duration", "message": "must be a whole number of months"})
    elif duration <= 0:
        errors.append({"field": "duration", "message": "must be greater than 0"})
    elif duration > MAX_DURATION:
        errors.append({"field": "duration", "message": f"must be at most {MAX_DURATION} months"})

    if errors:
        raise InvalidInput("Invalid loan values", details=errors)
    return values["amount"], values["interestRate"], duration, values["paidAmount"]


def calculate_loan_values(amount, interest_rate, duration: int, paid_amount=0) -> LoanValues:
    """Derive interest, payable and remaining balance for a loan.

    Simple interest scaled by the number of months:
    ``amount * interest_rate * duration / 100``. The remaining amount is
    floored at zero; use :func:`calculate_overpayment` for the excess.
    """
    amount, interest_rate, duration, paid_amount = _check_inputs(
        amount, interest_rate, duration, paid_amount
    )

    total_interest = (amount * interest_rate * duration / Decimal(100)).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )
    total_payable = amount + total_interest
    remaining_amount = max(ZERO, total_payable - paid_amount)

    return LoanValues(
        total_interest=total_interest,
        total_payable=total_payable,
        remaining_amount=remaining_amount,
    )


def calculate_overpayment(total_payable, paid_amount) -> Decimal:
    return max(ZERO, to_decimal(paid_amount) - to_decimal(total_payable))


def summarize_loans(loans: Iterable) -> LoanTotals:
    totals = LoanTotals(
        total_loans=0,
        total_amount=ZERO,
        total_paid=ZERO,
        total_remaining=ZERO,
        total_interest=ZERO,
    )
    for loan in loans:
        totals.total_loans += 1
        totals.total_amount += loan.amount
        totals.total_paid += loan.paid_amount
        totals.total_remaining += loan.remaining_amount
        totals.total_interest += loan.total_interest
    return totals
