"""
Recurring billing engine.

Computes billing periods, keeps draft recurring orders in sync with
subscriptions, charges them at the end of each cycle, retries declined
payments on a dunning schedule and renews subscriptions into the next cycle.
"""

__version__ = "1.0.0"
