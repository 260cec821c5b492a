from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_timezone(value: str) -> str:
    value = value.strip()
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {value}") from exc
    return value


class ApiModel(BaseModel):
    """Accepts camelCase keys from the browser as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterIn(ApiModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)
    country: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(..., min_length=3, max_length=3)
    timezone: str = Field(..., min_length=1, max_length=64)

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, value: str) -> str:
        return _check_timezone(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class LoginIn(ApiModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class UserSettingsIn(ApiModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(..., min_length=3, max_length=3)
    currency_symbol: str = Field(..., min_length=1, max_length=8)
    timezone: str = Field(..., min_length=1, max_length=64)
    country: str = Field(..., min_length=1, max_length=100)

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, value: str) -> str:
        return _check_timezone(value)


class CategoryIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Category name is required")
        return value


class CategoryOrderIn(ApiModel):
    category_id: int
    order: int = Field(..., ge=0)


class CategoryReorderIn(ApiModel):
    category_orders: list[CategoryOrderIn]


class ExpenseIn(ApiModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    category_id: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=200)
    # Date-only or ISO datetime, interpreted in the user's timezone.
    date: Optional[str] = None
