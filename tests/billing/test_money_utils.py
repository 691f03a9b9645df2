"""Tests for billing money_utils module."""

from decimal import Decimal

import pytest
from moneyed import Currency, Money

from recurring_billing.billing.money_utils import (
    EUR,
    JPY,
    USD,
    MoneyHandler,
    add_money,
    create_money,
    format_money,
    money_handler,
    multiply_money,
    round_money,
)


@pytest.mark.unit
class TestMoneyHandler:
    """Test MoneyHandler class."""

    def test_money_handler_initialization_defaults(self):
        """Test MoneyHandler with default settings."""
        handler = MoneyHandler()
        assert handler.default_currency == Currency("USD")
        assert handler.default_locale == "en_US"

    def test_money_handler_initialization_custom(self):
        """Test MoneyHandler with custom settings."""
        handler = MoneyHandler(default_currency="eur", default_locale="de_DE")
        assert handler.default_currency.code == "EUR"
        assert handler.default_locale == "de_DE"

    def test_validate_currency_invalid(self):
        """Test validating invalid currency code raises error."""
        handler = MoneyHandler()

        with pytest.raises(ValueError) as exc_info:
            handler._validate_currency("INVALID")
        assert "Invalid currency code" in str(exc_info.value)

    def test_validate_locale_invalid_fallback(self):
        """Test invalid locale falls back to default."""
        handler = MoneyHandler()

        assert handler._validate_locale("invalid_locale") == "en_US"

    def test_create_money_amount_types(self):
        """Test creating money from strings, ints and floats."""
        handler = MoneyHandler()

        assert handler.create_money("100.50", USD).amount == Decimal("100.50")
        assert handler.create_money(100, USD).amount == Decimal("100")
        assert handler.create_money(0.1, USD).amount == Decimal("0.1")

    def test_create_money_default_currency(self):
        """Test the handler's default currency is used when none is given."""
        handler = MoneyHandler(default_currency=EUR)

        assert handler.create_money("5").currency == EUR
        assert handler.zero() == Money("0", "EUR")

    def test_format_money(self):
        """Test locale-aware formatting."""
        handler = MoneyHandler()

        assert handler.format_money(Money("1234.5", USD)) == "$1,234.50"
        assert handler.format_money(Money("125", JPY)) == "¥125"

    def test_add_money(self):
        """Test summing several amounts."""
        handler = MoneyHandler()

        total = handler.add_money(Money("1.10", USD), Money("2.20", USD), Money("3", USD))

        assert total == Money("6.30", USD)

    def test_add_money_empty(self):
        """Test summing nothing yields zero in the default currency."""
        assert MoneyHandler().add_money() == Money("0", USD)

    def test_add_money_currency_mismatch(self):
        """Test mixing currencies is rejected."""
        with pytest.raises(ValueError, match="Currency mismatch"):
            MoneyHandler().add_money(Money("1", USD), Money("1", EUR))

    def test_multiply_money(self):
        """Test multiplication does not round."""
        handler = MoneyHandler()

        assert handler.multiply_money(Money("10", USD), "0.333") == Money("3.330", USD)
        assert handler.multiply_money(Money("10", USD), 1.5) == Money("15", USD)

    def test_currency_precision(self):
        """Test precision comes from currency data."""
        handler = MoneyHandler()

        assert handler.get_currency_precision("usd") == 2
        assert handler.get_currency_precision(JPY) == 0

    @pytest.mark.parametrize(
        ("amount", "currency", "expected"),
        [
            ("1.005", USD, "1.01"),
            ("1.004", USD, "1.00"),
            ("-1.005", USD, "-1.01"),
            ("62.5", JPY, "63"),
        ],
    )
    def test_round_money_half_up(self, amount, currency, expected):
        """Test rounding to the minor unit, half away from zero."""
        rounded = MoneyHandler().round_money(Money(amount, currency))

        assert rounded.amount == Decimal(expected)
        assert str(rounded.amount) == expected


@pytest.mark.unit
class TestProrate:
    """Test proration of amounts."""

    def test_full_ratio_is_unchanged(self):
        """Test a full period keeps the exact amount."""
        money = Money("9.999", USD)

        assert money_handler.prorate(money, 3600, 3600) is money

    def test_partial_ratio_is_rounded(self):
        """Test a partial period is rounded to the currency precision."""
        assert money_handler.prorate(Money("2", USD), 1200, 3600) == Money("0.67", USD)
        assert money_handler.prorate(Money("10", USD), 15, 31) == Money("4.84", USD)

    def test_zero_ratio(self):
        """Test a zero-length overlap yields zero."""
        assert money_handler.prorate(Money("10", USD), 0, 3600).amount == 0

    def test_invalid_denominator(self):
        """Test a non-positive denominator is rejected."""
        with pytest.raises(ValueError, match="denominator must be positive"):
            money_handler.prorate(Money("10", USD), 1, 0)


@pytest.mark.unit
class TestMinorUnits:
    """Test minor unit conversion."""

    def test_minor_units(self):
        """Test amounts are converted to the smallest currency unit."""
        assert money_handler.money_to_minor_units(Money("123.45", USD)) == 12345
        assert money_handler.money_to_minor_units(Money("125", JPY)) == 125

    def test_minor_units_round_first(self):
        """Test sub-minor amounts are rounded half-up before conversion."""
        assert money_handler.money_to_minor_units(Money("0.675", USD)) == 68


@pytest.mark.unit
class TestConvenienceFunctions:
    """Test module-level helpers."""

    def test_helpers_use_default_handler(self):
        """Test module-level helpers."""
        money = create_money("10.005")

        assert money.currency.code == "USD"
        assert round_money(money) == Money("10.01", USD)
        assert add_money(money, Money("1", USD)) == Money("11.005", USD)
        assert multiply_money(money, 2) == Money("20.010", USD)
        assert format_money(Money("3", USD)) == "$3.00"
