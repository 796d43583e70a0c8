from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from errors import Conflict, InvalidInput, NotFound
from models import Base, Loan, User
from store import LoanStore


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()
    yield session
    session.close()
    engine.dispose()


def make_users(session, *names):
    users = [
        User(name=name, email=f"{name.lower()}@example.com", password_hash="x")
        for name in names
    ]
    session.add_all(users)
    session.commit()
    return users


def test_insert(db):
    adam, = make_users(db, "Adam")
    store = LoanStore(db)

    loan = store.insert(adam.id, "Car", Decimal("1000"), 12, Decimal("5"))

    assert loan.id is not None
    assert loan.paid_amount == 0
    assert loan.total_interest == Decimal("600")
    assert loan.total_payable == Decimal("1600")
    assert loan.remaining_amount == Decimal("1600")
    assert loan.owner_id == adam.id
    assert loan.created_at is not None
    assert loan.updated_at == loan.created_at
    assert loan.version == 1


def test_insert_rejects_invalid_values(db):
    adam, = make_users(db, "Adam")
    store = LoanStore(db)

    with pytest.raises(InvalidInput):
        store.insert(adam.id, "Car", Decimal("-1"), 12, Decimal("5"))

    assert db.query(Loan).count() == 0


def test_find_by_id(db):
    adam, = make_users(db, "Adam")
    store = LoanStore(db)
    loan = store.insert(adam.id, "Car", 1000, 12, 5)

    assert store.find_by_id(loan.id).loan_name == "Car"
    assert store.find_by_id(9999) is None


def test_list_by_owner_newest_first(db):
    adam, bob = make_users(db, "Adam", "Bob")
    store = LoanStore(db)
    first = store.insert(adam.id, "First", 1000, 12, 5)
    second = store.insert(adam.id, "Second", 2000, 6, 3)
    store.insert(bob.id, "Other", 500, 1, 1)

    assert [loan.id for loan in store.list_by_owner(adam.id)] == [second.id, first.id]
    assert [loan.loan_name for loan in store.list_by_owner(bob.id)] == ["Other"]
    assert store.list_by_owner(9999) == []


def test_update_recomputes_derived_fields(db):
    adam, = make_users(db, "Adam")
    store = LoanStore(db)
    loan = store.insert(adam.id, "Car", 1000, 12, 5)
    created_at = loan.created_at

    loan = store.update(loan.id, adam.id, {"paid_amount": Decimal("1600")})
    assert loan.remaining_amount == 0
    assert loan.total_payable == Decimal("1600")
    assert loan.overpaid_amount == 0

    loan = store.update(loan.id, adam.id, {"paid_amount": Decimal("2000")})
    assert loan.remaining_amount == 0
    assert loan.overpaid_amount == Decimal("400")

    loan = store.update(loan.id, adam.id, {"interest_rate": Decimal("10"), "loan_name": None})
    assert loan.loan_name == "Car"
    assert loan.total_interest == Decimal("1200")
    assert loan.total_payable == Decimal("2200")
    assert loan.remaining_amount == Decimal("200")
    assert loan.created_at == created_at
    assert loan.updated_at >= created_at
    assert loan.version == 4


def test_update_ignores_derived_and_owner_fields(db):
    adam, bob = make_users(db, "Adam", "Bob")
    store = LoanStore(db)
    loan = store.insert(adam.id, "Car", 1000, 12, 5)

    loan = store.update(
        loan.id,
        adam.id,
        {"total_payable": 1, "remaining_amount": 2, "owner_id": bob.id, "duration": 24},
    )

    assert loan.owner_id == adam.id
    assert loan.total_interest == Decimal("1200")
    assert loan.total_payable == Decimal("2200")
    assert loan.remaining_amount == Decimal("2200")


def test_update_not_owned(db):
    adam, bob = make_users(db, "Adam", "Bob")
    store = LoanStore(db)
    loan = store.insert(adam.id, "Car", 1000, 12, 5)

    with pytest.raises(NotFound):
        store.update(loan.id, bob.id, {"paid_amount": 100})
    with pytest.raises(NotFound):
        store.update(9999, adam.id, {"paid_amount": 100})

    assert store.find_by_id(loan.id).paid_amount == 0


def test_update_invalid_values_leave_record_unchanged(db):
    adam, = make_users(db, "Adam")
    store = LoanStore(db)
    loan = store.insert(adam.id, "Car", 1000, 12, 5)

    with pytest.raises(InvalidInput):
        store.update(loan.id, adam.id, {"duration": 0})

    db.expire_all()
    assert store.find_by_id(loan.id).duration == 12


def test_delete_by_id(db):
    adam, bob = make_users(db, "Adam", "Bob")
    store = LoanStore(db)
    loan = store.insert(adam.id, "Car", 1000, 12, 5)

    with pytest.raises(NotFound):
        store.delete_by_id(loan.id, bob.id)
    assert store.find_by_id(loan.id) is not None

    store.delete_by_id(loan.id, adam.id)
    db.expire_all()
    assert store.find_by_id(loan.id) is None

    with pytest.raises(NotFound):
        store.delete_by_id(loan.id, adam.id)


def test_concurrent_update_conflict(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'loans.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    first, second = Session(), Session()

    adam, = make_users(first, "Adam")
    loan_id = LoanStore(first).insert(adam.id, "Car", 1000, 12, 5).id

    # both requests read the record before either writes
    stale = LoanStore(first)
    stale.find_by_id(loan_id).paid_amount
    LoanStore(second).update(loan_id, adam.id, {"paid_amount": 100})

    with pytest.raises(Conflict):
        stale.update(loan_id, adam.id, {"paid_amount": 200})

    first.expire_all()
    assert stale.find_by_id(loan_id).paid_amount == Decimal("100")

    first.close()
    second.close()
    engine.dispose()
