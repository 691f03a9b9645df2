"""
Money-aware Pydantic models using py-moneyed for accurate currency handling.

Entities hold ``moneyed.Money`` values; ``MoneyField`` is their plain-data
form for event payloads and other serialized output.
"""

from moneyed import Money
from pydantic import BaseModel, ConfigDict, Field

from .money_utils import money_handler


class MoneyField(BaseModel):
    """Pydantic-compatible Money field for serialization."""

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
    )

    amount: str = Field(description="Amount as string for precision")
    currency: str = Field(description="ISO 4217 currency code")
    minor_units: int = Field(description="Amount in minor units (cents, etc.)")

    @classmethod
    def from_money(cls, money: Money) -> "MoneyField":
        """Create MoneyField from Money object."""
        return cls(
            amount=str(money.amount),
            currency=money.currency.code,
            minor_units=money_handler.money_to_minor_units(money),
        )


__all__ = ["MoneyField"]
