import logging
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from calculator import calculate_loan_values
from errors import Conflict, NotFound
from models import Loan, utcnow

logger = logging.getLogger(__name__)

# the only fields a caller may set; everything else on a Loan is derived
LOAN_INPUT_FIELDS = ("loan_name", "amount", "duration", "interest_rate", "paid_amount")


class LoanStore:
    """Loan persistence scoped by owner.

    Derived figures are recomputed through the calculator on every write, so
    ``total_payable == amount + total_interest`` and
    ``remaining_amount == max(0, total_payable - paid_amount)`` hold for every
    stored row.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(
        self, owner_id: int, name: str, amount, duration: int, rate, paid_amount=0
    ) -> Loan:
        values = calculate_loan_values(amount, rate, duration, paid_amount)
        now = utcnow()
        loan = Loan(
            loan_name=name,
            amount=amount,
            duration=duration,
            interest_rate=rate,
            paid_amount=paid_amount,
            total_interest=values.total_interest,
            total_payable=values.total_payable,
            remaining_amount=values.remaining_amount,
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(loan)
        self.db.commit()
        self.db.refresh(loan)
        logger.info("Created loan %s for owner %s", loan.id, owner_id)
        return loan

    def find_by_id(self, loan_id: int) -> Optional[Loan]:
        return self.db.query(Loan).filter(Loan.id == loan_id).first()

    def find_owned(self, loan_id: int, owner_id: int) -> Loan:
        loan = (
            self.db.query(Loan)
            .filter(Loan.id == loan_id, Loan.owner_id == owner_id)
            .first()
        )
        if not loan:
            raise NotFound("Loan not found")
        return loan

    def list_by_owner(self, owner_id: int) -> List[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.owner_id == owner_id)
            .order_by(Loan.created_at.desc(), Loan.id.desc())
            .all()
        )

    def update(self, loan_id: int, owner_id: int, fields: dict) -> Loan:
        loan = self.find_owned(loan_id, owner_id)

        merged = {name: getattr(loan, name) for name in LOAN_INPUT_FIELDS}
        for name, value in fields.items():
            if name not in LOAN_INPUT_FIELDS:
                logger.debug("Ignoring non-updatable field %s on loan %s", name, loan_id)
                continue
            if value is not None:
                merged[name] = value

        values = calculate_loan_values(
            merged["amount"], merged["interest_rate"], merged["duration"], merged["paid_amount"]
        )

        for name, value in merged.items():
            setattr(loan, name, value)
        loan.total_interest = values.total_interest
        loan.total_payable = values.total_payable
        loan.remaining_amount = values.remaining_amount
        loan.updated_at = utcnow()

        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning("Concurrent update detected on loan %s", loan_id)
            raise Conflict("Loan was modified by another request, reload and retry")
        self.db.refresh(loan)
        logger.info("Updated loan %s for owner %s", loan_id, owner_id)
        return loan

    def delete_by_id(self, loan_id: int, owner_id: int) -> None:
        deleted = (
            self.db.query(Loan)
            .filter(Loan.id == loan_id, Loan.owner_id == owner_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if not deleted:
            raise NotFound("Loan not found")
        logger.info("Deleted loan %s for owner %s", loan_id, owner_id)
