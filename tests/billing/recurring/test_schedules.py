"""Tests for billing schedules and interval plugins."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from recurring_billing.billing.config import BillingConfig, DunningConfig, set_billing_config
from recurring_billing.billing.exceptions import BillingConfigurationError
from recurring_billing.billing.recurring.billing_period import BillingPeriod
from recurring_billing.billing.recurring.models import SubscriptionState
from recurring_billing.billing.recurring.schedules import (
    BillingSchedule,
    BillingType,
    FixedInterval,
    Interval,
    IntervalPlugin,
    IntervalUnit,
    RollingInterval,
    get_interval_plugin,
    register_interval_plugin,
)

pytestmark = pytest.mark.unit


def _dt(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


def _schedule(plugin: str, number: int, unit: IntervalUnit, **kwargs) -> BillingSchedule:
    return BillingSchedule(
        billing_schedule_id=f"{plugin}_{number}_{unit.value}",
        plugin=plugin,
        interval=Interval(number=number, unit=unit),
        **kwargs,
    )


class TestInterval:
    """Test interval arithmetic."""

    def test_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            Interval(number=0, unit=IntervalUnit.DAY)

    def test_month_addition_clamps_to_month_end(self):
        interval = Interval(number=1, unit=IntervalUnit.MONTH)

        assert interval.add_to(_dt(2017, 1, 31)) == _dt(2017, 2, 28)
        assert interval.add_to(_dt(2016, 1, 31)) == _dt(2016, 2, 29)

    def test_multiplier(self):
        interval = Interval(number=2, unit=IntervalUnit.WEEK)

        assert interval.add_to(_dt(2017, 1, 2), 3) == _dt(2017, 2, 13)


class TestFixedSchedule:
    """Test calendar-aligned periods."""

    @pytest.mark.parametrize(
        ("number", "unit", "expected_start", "expected_end"),
        [
            (1, IntervalUnit.HOUR, _dt(2017, 2, 24, 17), _dt(2017, 2, 24, 18)),
            (6, IntervalUnit.HOUR, _dt(2017, 2, 24, 12), _dt(2017, 2, 24, 18)),
            (1, IntervalUnit.DAY, _dt(2017, 2, 24), _dt(2017, 2, 25)),
            (1, IntervalUnit.WEEK, _dt(2017, 2, 20), _dt(2017, 2, 27)),
            (1, IntervalUnit.MONTH, _dt(2017, 2, 1), _dt(2017, 3, 1)),
            (3, IntervalUnit.MONTH, _dt(2017, 1, 1), _dt(2017, 4, 1)),
            (1, IntervalUnit.YEAR, _dt(2017, 1, 1), _dt(2018, 1, 1)),
        ],
    )
    def test_period_contains_reference_time(self, number, unit, expected_start, expected_end):
        reference = _dt(2017, 2, 24, 17, 30)
        period = _schedule("fixed", number, unit).period_for(reference)

        assert period == BillingPeriod(start=expected_start, end=expected_end)
        assert period.contains(reference)

    def test_boundary_belongs_to_starting_period(self):
        schedule = _schedule("fixed", 1, IntervalUnit.HOUR)

        period = schedule.period_for(_dt(2017, 2, 24, 18))

        assert period.start == _dt(2017, 2, 24, 18)

    def test_multi_day_periods_tile_the_calendar(self):
        schedule = _schedule("fixed", 3, IntervalUnit.DAY)
        first = schedule.period_for(_dt(2017, 2, 24, 9))

        assert first.duration == 3 * 86400
        assert schedule.period_for(first.end) == schedule.period_for(first.end, first)

    def test_next_period_starts_at_previous_end(self):
        schedule = _schedule("fixed", 1, IntervalUnit.MONTH)
        january = schedule.period_for(_dt(2017, 1, 15))

        february = schedule.period_for(_dt(2017, 3, 10), january)

        assert february == BillingPeriod(start=_dt(2017, 2, 1), end=_dt(2017, 3, 1))
        assert february.duration == 28 * 86400

    def test_anchor_ignored(self):
        schedule = _schedule("fixed", 1, IntervalUnit.DAY)

        period = schedule.period_for(_dt(2017, 2, 24, 10), anchor=_dt(2017, 2, 1, 13))

        assert period.start == _dt(2017, 2, 24)


class TestRollingSchedule:
    """Test periods anchored at the subscription start."""

    def test_first_period_starts_at_anchor(self):
        schedule = _schedule("rolling", 1, IntervalUnit.HOUR)
        start = _dt(2017, 2, 24, 17, 30)

        period = schedule.period_for(start, anchor=start)

        assert period == BillingPeriod(start=start, end=_dt(2017, 2, 24, 18, 30))

    def test_reference_defaults_to_anchor(self):
        schedule = _schedule("rolling", 1, IntervalUnit.DAY)

        period = schedule.period_for(_dt(2017, 2, 24, 17, 30))

        assert period.start == _dt(2017, 2, 24, 17, 30)

    def test_steps_whole_intervals_from_anchor(self):
        schedule = _schedule("rolling", 1, IntervalUnit.MONTH)

        period = schedule.period_for(_dt(2017, 5, 10), anchor=_dt(2017, 1, 15, 8))

        assert period == BillingPeriod(start=_dt(2017, 4, 15, 8), end=_dt(2017, 5, 15, 8))

    def test_boundary_belongs_to_starting_period(self):
        schedule = _schedule("rolling", 1, IntervalUnit.HOUR)

        period = schedule.period_for(_dt(2017, 2, 24, 18, 30), anchor=_dt(2017, 2, 24, 17, 30))

        assert period.start == _dt(2017, 2, 24, 18, 30)

    def test_month_end_anchor_clamps(self):
        schedule = _schedule("rolling", 1, IntervalUnit.MONTH)

        period = schedule.period_for(_dt(2017, 3, 1), anchor=_dt(2017, 1, 31))

        assert period == BillingPeriod(start=_dt(2017, 2, 28), end=_dt(2017, 3, 31))

    def test_next_period(self):
        schedule = _schedule("rolling", 2, IntervalUnit.WEEK)
        first = schedule.period_for(_dt(2017, 2, 24, 9), anchor=_dt(2017, 2, 24, 9))

        second = schedule.period_for(_dt(2017, 3, 1), first)

        assert second.start == first.end
        assert second.duration == 14 * 86400


class TestBillingSchedulePolicies:
    """Test dunning and billing type defaults."""

    def test_defaults(self):
        schedule = BillingSchedule(billing_schedule_id="monthly")

        assert schedule.billing_type == BillingType.POSTPAID
        assert schedule.plugin == "fixed"
        assert schedule.interval == Interval(number=1, unit=IntervalUnit.MONTH)
        assert isinstance(schedule.interval_plugin, FixedInterval)

    def test_retry_delays_fall_back_to_config(self):
        schedule = BillingSchedule(billing_schedule_id="monthly")

        assert schedule.retry_delays() == [1, 3, 5]

        set_billing_config(BillingConfig(dunning=DunningConfig(retry_schedule_days=[2, 4])))
        assert schedule.retry_delays() == [2, 4]

    def test_explicit_retry_schedule(self):
        schedule = BillingSchedule(billing_schedule_id="monthly", retry_schedule=[1, 3, 7])

        assert schedule.retry_delays() == [1, 3, 7]

    def test_empty_retry_schedule_disables_retries(self):
        schedule = BillingSchedule(billing_schedule_id="monthly", retry_schedule=[])

        assert schedule.retry_delays() == []

    def test_negative_retry_delay_rejected(self):
        with pytest.raises(ValidationError, match="must not be negative"):
            BillingSchedule(billing_schedule_id="monthly", retry_schedule=[1, -3])

    def test_unpaid_state(self):
        assert (
            BillingSchedule(billing_schedule_id="a").get_unpaid_subscription_state()
            == SubscriptionState.ACTIVE
        )
        assert (
            BillingSchedule(
                billing_schedule_id="b", unpaid_subscription_state=SubscriptionState.CANCELED
            ).get_unpaid_subscription_state()
            == SubscriptionState.CANCELED
        )


class TestIntervalPluginRegistry:
    """Test plugin lookup."""

    def test_shipped_plugins(self):
        assert isinstance(get_interval_plugin("fixed"), FixedInterval)
        assert isinstance(get_interval_plugin("rolling"), RollingInterval)

    def test_unknown_plugin_is_configuration_error(self):
        with pytest.raises(BillingConfigurationError, match="Unknown billing schedule plugin"):
            get_interval_plugin("lunar")

    def test_schedule_rejects_unknown_plugin(self):
        with pytest.raises(BillingConfigurationError):
            BillingSchedule(billing_schedule_id="x", plugin="lunar")

    def test_register_custom_plugin(self):
        class FirstOfNextHour(IntervalPlugin):
            plugin_id = "test_next_hour"

            def first_period(self, interval, reference_time, anchor=None):
                start = reference_time.replace(minute=0, second=0, microsecond=0)
                return BillingPeriod(start=start, end=interval.add_to(start))

        register_interval_plugin(FirstOfNextHour())
        schedule = _schedule("test_next_hour", 1, IntervalUnit.HOUR)

        assert schedule.period_for(_dt(2017, 2, 24, 17, 30)).start == _dt(2017, 2, 24, 17)
