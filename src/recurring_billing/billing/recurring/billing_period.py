"""Billing period value object."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BillingPeriod(BaseModel):
    """
    Half-open time interval ``[start, end)`` covered by an order or charge.

    A timestamp equal to ``end`` belongs to the following period.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime = Field(description="Inclusive start of the period")
    end: datetime = Field(description="Exclusive end of the period")

    @model_validator(mode="after")
    def validate_bounds(self) -> "BillingPeriod":
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Billing period bounds must be timezone-aware")
        if self.start >= self.end:
            raise ValueError("Billing period start must be before its end")
        return self

    @classmethod
    def of(cls, start: datetime, end: datetime) -> "BillingPeriod":
        return cls(start=start, end=end)

    @property
    def duration(self) -> int:
        """Length of the period in whole seconds."""
        return int((self.end - self.start).total_seconds())

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def overlaps(self, other: "BillingPeriod") -> bool:
        return self.start < other.end and other.start < self.end

    def intersect(
        self, start: "datetime | BillingPeriod", end: datetime | None = None
    ) -> "BillingPeriod | None":
        """
        Intersection with ``[start, end)``; ``end=None`` means open-ended.

        Another period may be passed instead of explicit bounds. Returns None
        when the intervals do not overlap.
        """
        if isinstance(start, BillingPeriod):
            start, end = start.start, start.end
        new_start = max(self.start, start)
        new_end = self.end if end is None else min(self.end, end)
        if new_start >= new_end:
            return None
        if new_start == self.start and new_end == self.end:
            return self
        return BillingPeriod(start=new_start, end=new_end)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BillingPeriod):
            return NotImplemented
        return (self.start, self.end) < (other.start, other.end)

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"
