"""
Billing schedules.

A billing schedule decides how billing periods are generated (fixed
calendar-aligned intervals or rolling intervals anchored at the
subscription's start), whether periods are charged before or after they
elapse, and the dunning policy applied when a charge is declined.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, field_validator

from recurring_billing.billing.config import get_billing_config
from recurring_billing.billing.exceptions import BillingConfigurationError
from recurring_billing.billing.recurring.billing_period import BillingPeriod
from recurring_billing.billing.recurring.models import SubscriptionState


class BillingType(str, Enum):
    """When a period is charged."""

    PREPAID = "prepaid"
    POSTPAID = "postpaid"


class IntervalUnit(str, Enum):
    """Calendar unit of a billing interval."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Interval(BaseModel):
    """A number of calendar units, e.g. 3 months."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(1, ge=1)
    unit: IntervalUnit = IntervalUnit.MONTH

    def delta(self, multiplier: int = 1) -> relativedelta:
        amount = self.number * multiplier
        if self.unit == IntervalUnit.HOUR:
            return relativedelta(hours=amount)
        if self.unit == IntervalUnit.DAY:
            return relativedelta(days=amount)
        if self.unit == IntervalUnit.WEEK:
            return relativedelta(weeks=amount)
        if self.unit == IntervalUnit.MONTH:
            return relativedelta(months=amount)
        return relativedelta(years=amount)

    def add_to(self, moment: datetime, multiplier: int = 1) -> datetime:
        return moment + self.delta(multiplier)


# ============================================================================
# Interval plugins
# ============================================================================


class IntervalPlugin(ABC):
    """Strategy generating billing periods for one kind of schedule."""

    plugin_id: str = ""

    @abstractmethod
    def first_period(
        self, interval: Interval, reference_time: datetime, anchor: datetime | None = None
    ) -> BillingPeriod:
        """Period containing ``reference_time``."""

    def next_period(self, interval: Interval, previous: BillingPeriod) -> BillingPeriod:
        """Period immediately following ``previous``."""
        return BillingPeriod(start=previous.end, end=interval.add_to(previous.end))


class FixedInterval(IntervalPlugin):
    """
    Periods aligned to calendar boundaries.

    Hourly periods start on the hour, daily at midnight, weekly on Monday,
    monthly on the 1st and yearly on January 1st. Multi-unit intervals are
    aligned within the enclosing unit, so a 3-month interval yields calendar
    quarters and a 6-hour interval starts at 00:00, 06:00, 12:00 and 18:00.
    """

    plugin_id = "fixed"

    def first_period(
        self, interval: Interval, reference_time: datetime, anchor: datetime | None = None
    ) -> BillingPeriod:
        start = self._align(interval, reference_time)
        return BillingPeriod(start=start, end=interval.add_to(start))

    def _align(self, interval: Interval, moment: datetime) -> datetime:
        n = interval.number
        midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)

        if interval.unit == IntervalUnit.HOUR:
            return midnight.replace(hour=moment.hour - moment.hour % n)
        if interval.unit == IntervalUnit.DAY:
            ordinal = midnight.toordinal()
            return midnight - relativedelta(days=(ordinal - 1) % n)
        if interval.unit == IntervalUnit.WEEK:
            monday = midnight - relativedelta(days=midnight.weekday())
            # Weeks are counted from the first Monday of the proleptic calendar
            week_index = (monday.toordinal() - 1) // 7
            return monday - relativedelta(weeks=week_index % n)
        if interval.unit == IntervalUnit.MONTH:
            month = moment.month - (moment.month - 1) % n
            return midnight.replace(month=month, day=1)
        return midnight.replace(year=moment.year - moment.year % n, month=1, day=1)


class RollingInterval(IntervalPlugin):
    """Periods anchored at the subscription's start time."""

    plugin_id = "rolling"

    def first_period(
        self, interval: Interval, reference_time: datetime, anchor: datetime | None = None
    ) -> BillingPeriod:
        anchor = anchor or reference_time
        steps = self._estimate_steps(interval, anchor, reference_time)

        # Each boundary is computed from the anchor so month-end anchors don't drift
        while interval.add_to(anchor, steps) > reference_time:
            steps -= 1
        while interval.add_to(anchor, steps + 1) <= reference_time:
            steps += 1

        start = interval.add_to(anchor, steps)
        return BillingPeriod(start=start, end=interval.add_to(anchor, steps + 1))

    @staticmethod
    def _estimate_steps(interval: Interval, anchor: datetime, reference_time: datetime) -> int:
        if interval.unit == IntervalUnit.MONTH:
            months = (reference_time.year - anchor.year) * 12 + reference_time.month - anchor.month
            return months // interval.number
        if interval.unit == IntervalUnit.YEAR:
            return (reference_time.year - anchor.year) // interval.number

        seconds_per_unit = {
            IntervalUnit.HOUR: 3600,
            IntervalUnit.DAY: 86400,
            IntervalUnit.WEEK: 7 * 86400,
        }[interval.unit]
        elapsed = (reference_time - anchor).total_seconds()
        return int(elapsed // (seconds_per_unit * interval.number))


_INTERVAL_PLUGINS: dict[str, IntervalPlugin] = {
    FixedInterval.plugin_id: FixedInterval(),
    RollingInterval.plugin_id: RollingInterval(),
}


def register_interval_plugin(plugin: IntervalPlugin) -> None:
    """Make an interval plugin available to billing schedules."""
    _INTERVAL_PLUGINS[plugin.plugin_id] = plugin


def get_interval_plugin(plugin_id: str) -> IntervalPlugin:
    try:
        return _INTERVAL_PLUGINS[plugin_id]
    except KeyError:
        raise BillingConfigurationError(
            f"Unknown billing schedule plugin: {plugin_id}", config_key="plugin"
        ) from None


# ============================================================================
# Billing schedule
# ============================================================================


class BillingSchedule(BaseModel):
    """Billing schedule configuration entity."""

    model_config = ConfigDict(validate_assignment=True)

    billing_schedule_id: str
    label: str = ""
    status: bool = Field(True, description="Whether new subscriptions may use this schedule")
    billing_type: BillingType = BillingType.POSTPAID
    plugin: str = Field("fixed", description="Interval plugin id")
    interval: Interval = Field(default_factory=Interval)
    retry_schedule: list[int] | None = Field(
        None,
        description="Days between payment retries; None uses the configured default, "
        "an empty list disables retries",
    )
    unpaid_subscription_state: SubscriptionState | None = Field(
        None,
        description="State applied to active subscriptions once dunning is exhausted; "
        "None uses the configured default",
    )

    @field_validator("retry_schedule")
    @classmethod
    def validate_retry_schedule(cls, v: list[int] | None) -> list[int] | None:
        if v is not None and any(days < 0 for days in v):
            raise ValueError("Retry delays must not be negative")
        return v

    @field_validator("plugin")
    @classmethod
    def validate_plugin(cls, v: str) -> str:
        get_interval_plugin(v)
        return v

    @property
    def interval_plugin(self) -> IntervalPlugin:
        return get_interval_plugin(self.plugin)

    def period_for(
        self,
        reference_time: datetime,
        previous_period: BillingPeriod | None = None,
        *,
        anchor: datetime | None = None,
    ) -> BillingPeriod:
        """
        Compute a billing period.

        Args:
            reference_time: Moment the period must contain when there is no
                previous period
            previous_period: When given, the period immediately following it
                is returned instead
            anchor: Start of the subscription, used by rolling schedules

        Returns:
            The billing period
        """
        if previous_period is not None:
            return self.interval_plugin.next_period(self.interval, previous_period)
        return self.interval_plugin.first_period(self.interval, reference_time, anchor)

    def retry_delays(self) -> list[int]:
        if self.retry_schedule is None:
            return list(get_billing_config().dunning.retry_schedule_days)
        return list(self.retry_schedule)

    def get_unpaid_subscription_state(self) -> SubscriptionState:
        if self.unpaid_subscription_state is None:
            return SubscriptionState(get_billing_config().dunning.unpaid_subscription_state)
        return self.unpaid_subscription_state


__all__ = [
    "BillingSchedule",
    "BillingType",
    "FixedInterval",
    "Interval",
    "IntervalPlugin",
    "IntervalUnit",
    "RollingInterval",
    "get_interval_plugin",
    "register_interval_plugin",
]
