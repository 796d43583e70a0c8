from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Optional

from pydantic import (AfterValidator, AliasGenerator, BaseModel, ConfigDict,
                      EmailStr, Field, PlainSerializer, StringConstraints,
                      field_validator)
from pydantic.alias_generators import to_camel

# sized to the loans table columns
MAX_AMOUNT = Decimal("9999999999.99")
MAX_RATE = Decimal("9999.9999")
MAX_DURATION = 1200


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def round_decimal(value, places: int):
    """Round numeric input half-up to ``places``; anything else is left for pydantic to reject."""
    if isinstance(value, bool):
        return value
    try:
        if isinstance(value, float):
            value = Decimal(str(value))
        elif isinstance(value, (int, str)):
            value = Decimal(value)
        if isinstance(value, Decimal) and value.is_finite():
            return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        pass
    return value


# Decimals go out as JSON numbers, not strings
Money = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class RequestModel(BaseModel):
    """Accepts camelCase keys from clients (snake_case works too)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BaseUser(RequestModel):
    name: Name
    email: EmailStr


class UserCreate(BaseUser):
    password: str = Field(min_length=6)


class UserLogin(RequestModel):
    email: Name
    password: str = Field(min_length=1)


class UserOut(ResponseModel):
    id: int
    name: str
    email: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class LoanInput(RequestModel):
    @field_validator("amount", "paid_amount", mode="before", check_fields=False)
    @classmethod
    def round_money(cls, value):
        return round_decimal(value, 2)

    @field_validator("interest_rate", mode="before", check_fields=False)
    @classmethod
    def round_rate(cls, value):
        return round_decimal(value, 4)


class LoanCreate(LoanInput):
    loan_name: Name
    amount: Decimal = Field(gt=0, le=MAX_AMOUNT, description="Principal (positive)")
    duration: int = Field(gt=0, le=MAX_DURATION, description="Loan term in months")
    interest_rate: Decimal = Field(ge=0, le=MAX_RATE, description="Interest rate in percent")
    paid_amount: Decimal = Field(default=Decimal(0), ge=0, le=MAX_AMOUNT)


class LoanUpdate(LoanInput):
    loan_name: Optional[Name] = None
    amount: Optional[Decimal] = Field(default=None, gt=0, le=MAX_AMOUNT)
    duration: Optional[int] = Field(default=None, gt=0, le=MAX_DURATION)
    interest_rate: Optional[Decimal] = Field(default=None, ge=0, le=MAX_RATE)
    paid_amount: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)


class LoanOut(ResponseModel):
    id: int
    loan_name: str
    amount: Money
    duration: int
    interest_rate: Money
    paid_amount: Money
    total_interest: Money
    total_payable: Money
    remaining_amount: Money
    overpaid_amount: Money
    owner_id: int = Field(serialization_alias="createdBy")
    created_at: UtcDatetime
    updated_at: UtcDatetime


class LoanValues(BaseModel):
    total_interest: Decimal
    total_payable: Decimal
    remaining_amount: Decimal


class LoanTotals(ResponseModel):
    total_loans: int
    total_amount: Money
    total_paid: Money
    total_remaining: Money
    total_interest: Money
