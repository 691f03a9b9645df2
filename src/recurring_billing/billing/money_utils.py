"""
Money and currency utilities using py-moneyed and Babel.

Provides currency handling with proper decimal precision,
locale-aware formatting, and currency validation.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from babel import Locale
from babel.core import UnknownLocaleError
from babel.numbers import format_currency, get_currency_precision
from moneyed import Currency, Money, get_currency
from moneyed.classes import CurrencyDoesNotExist

# Common currencies for quick access
USD = Currency("USD")
EUR = Currency("EUR")
GBP = Currency("GBP")
JPY = Currency("JPY")

# Default locale for formatting
DEFAULT_LOCALE = "en_US"


class MoneyHandler:
    """Central handler for money operations with proper error handling."""

    def __init__(
        self, default_currency: str | Currency = "USD", default_locale: str = DEFAULT_LOCALE
    ) -> None:
        self.default_currency = self._validate_currency(default_currency)
        self.default_locale = self._validate_locale(default_locale)

    def _validate_currency(self, currency_code: str | Currency) -> Currency:
        """Validate and return Currency object."""
        if isinstance(currency_code, Currency):
            currency_code = currency_code.code
        try:
            return get_currency(currency_code.upper())
        except CurrencyDoesNotExist:
            raise ValueError(f"Invalid currency code: {currency_code}") from None

    def _validate_locale(self, locale_code: str) -> str:
        """Validate locale code."""
        try:
            Locale.parse(locale_code)
            return locale_code
        except (UnknownLocaleError, ValueError):
            return DEFAULT_LOCALE

    def create_money(
        self, amount: int | float | Decimal | str, currency: str | Currency | None = None
    ) -> Money:
        """Create Money object with proper validation."""
        validated_currency = self._validate_currency(currency or self.default_currency)

        # Convert to Decimal for precision
        if isinstance(amount, str):
            decimal_amount = Decimal(amount)
        else:
            decimal_amount = Decimal(str(amount))

        return Money(amount=decimal_amount, currency=validated_currency)

    def zero(self, currency: str | Currency | None = None) -> Money:
        """Zero amount in the given currency."""
        return self.create_money(0, currency)

    def format_money(self, money: Money, locale: str | None = None, **kwargs: Any) -> str:
        """Format Money object with locale-aware formatting."""
        locale = locale or self.default_locale
        validated_locale = self._validate_locale(locale)

        try:
            return format_currency(
                number=money.amount, currency=money.currency.code, locale=validated_locale, **kwargs
            )
        except (TypeError, ValueError):
            # Fallback to simple formatting if locale issues
            return f"{money.currency.code} {money.amount}"

    def add_money(self, *money_objects: Money) -> Money:
        """Add multiple Money objects safely."""
        if not money_objects:
            return self.create_money(0)

        # Ensure all currencies match
        first_currency = money_objects[0].currency
        for money in money_objects[1:]:
            if money.currency != first_currency:
                raise ValueError(
                    f"Currency mismatch: {money.currency.code} != {first_currency.code}"
                )

        total = sum(money_objects, self.create_money(0, first_currency))
        return total

    def multiply_money(self, money: Money, multiplier: int | float | Decimal | str) -> Money:
        """Multiply Money by a number with proper precision."""
        if isinstance(multiplier, str):
            multiplier = Decimal(multiplier)
        elif not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))

        return money * multiplier

    def get_currency_precision(self, currency: str | Currency) -> int:
        """Get decimal precision for a currency."""
        if isinstance(currency, Currency):
            currency = currency.code
        return get_currency_precision(currency.upper())

    def round_money(self, money: Money) -> Money:
        """Round Money to the currency's minor unit, half-up."""
        precision = self.get_currency_precision(money.currency)
        quantum = Decimal(1).scaleb(-precision)
        rounded_amount = money.amount.quantize(quantum, rounding=ROUND_HALF_UP)
        return Money(amount=rounded_amount, currency=money.currency)

    def prorate(self, money: Money, numerator: int, denominator: int) -> Money:
        """
        Scale an amount by numerator/denominator and round to currency precision.

        A full ratio returns the amount unchanged so full-period charges never
        pick up rounding error.
        """
        if denominator <= 0:
            raise ValueError("Proration denominator must be positive")
        if numerator == denominator:
            return money
        factor = Decimal(numerator) / Decimal(denominator)
        return self.round_money(money * factor)

    def money_to_minor_units(self, money: Money) -> int:
        """Convert Money to minor units (e.g., cents for USD)."""
        precision = self.get_currency_precision(money.currency)
        rounded = self.round_money(money)
        return int(rounded.amount * (10**precision))


# Global instance for convenience
money_handler = MoneyHandler()


# Convenience functions
def create_money(amount: int | float | Decimal | str, currency: str | Currency = "USD") -> Money:
    """Create Money object with default handler."""
    return money_handler.create_money(amount, currency)


def format_money(money: Money, locale: str | None = None, **kwargs: Any) -> str:
    """Format Money with default handler."""
    return money_handler.format_money(money, locale, **kwargs)


def add_money(*money_objects: Money) -> Money:
    """Add Money objects with default handler."""
    return money_handler.add_money(*money_objects)


def multiply_money(money: Money, multiplier: int | float | Decimal | str) -> Money:
    """Multiply Money with default handler."""
    return money_handler.multiply_money(money, multiplier)


def round_money(money: Money) -> Money:
    """Round Money with default handler."""
    return money_handler.round_money(money)


__all__ = [
    "MoneyHandler",
    "money_handler",
    "create_money",
    "format_money",
    "add_money",
    "multiply_money",
    "round_money",
    "USD",
    "EUR",
    "GBP",
    "JPY",
]
