from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import declarative_base, relationship

from calculator import calculate_overpayment

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    loans = relationship("Loan", back_populates="owner", cascade="all, delete-orphan")
    tokens = relationship("AuthToken", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email}>"


class AuthToken(Base):
    __tablename__ = "auth_tokens"

    token = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="tokens")


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    loan_name = Column(String(200), nullable=False)
    amount = Column(Numeric(precision=12, scale=2), nullable=False)
    duration = Column(Integer, nullable=False)
    interest_rate = Column(Numeric(precision=8, scale=4), nullable=False)
    paid_amount = Column(Numeric(precision=12, scale=2), nullable=False, default=0)

    # derived, always written by LoanStore
    total_interest = Column(Numeric(precision=14, scale=2), nullable=False)
    total_payable = Column(Numeric(precision=14, scale=2), nullable=False)
    remaining_amount = Column(Numeric(precision=14, scale=2), nullable=False)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    owner = relationship("User", back_populates="loans")

    __mapper_args__ = {"version_id_col": version}

    @property
    def overpaid_amount(self):
        return calculate_overpayment(self.total_payable, self.paid_amount)

    def __repr__(self):
        return f"<Loan {self.id} {self.loan_name!r} (Amount: {self.amount})>"
