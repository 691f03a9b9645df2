"""
Celery application configuration.

Recurring order jobs run on their own queue; the beat schedule closes
elapsed orders and ensures draft orders for active subscriptions.
"""

from typing import Any

import structlog
from celery import Celery
from kombu import Queue

from recurring_billing.logging import setup_logging
from recurring_billing.settings import settings

logger = structlog.get_logger(__name__)

# Create Celery application
celery_app = Celery(
    "recurring_billing",
    broker=settings.celery.broker_url,
    backend=settings.celery.result_backend,
    include=["recurring_billing.billing.recurring.tasks"],
)

# Configure Celery settings
celery_app.conf.update(
    # Task routing
    task_routes={
        "recurring.*": {"queue": settings.celery.recurring_queue},
    },
    # Queue configuration
    task_default_queue="default",
    task_queues=(
        Queue("default", routing_key="default"),
        Queue(settings.celery.recurring_queue, routing_key=settings.celery.recurring_queue),
    ),
    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery.task_always_eager,
    # Task result settings
    result_expires=3600,  # 1 hour
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,
)


@celery_app.on_after_configure.connect  # type: ignore[misc]
def setup_worker_logging(sender: Any, **kwargs: Any) -> None:
    """Configure structlog for worker processes."""
    setup_logging()


@celery_app.on_after_finalize.connect  # type: ignore[misc]
def setup_periodic_tasks(sender: Any, **kwargs: Any) -> None:
    """Register the recurring billing beat schedule."""
    from recurring_billing.billing.recurring.tasks import (
        ensure_recurring_orders_task,
        process_elapsed_orders_task,
    )

    sender.add_periodic_task(
        float(settings.celery.close_orders_interval_seconds),
        process_elapsed_orders_task.s(),
        name="recurring-process-elapsed-orders",
    )

    sender.add_periodic_task(
        float(settings.celery.ensure_orders_interval_seconds),
        ensure_recurring_orders_task.s(),
        name="recurring-ensure-orders",
    )

    logger.info(
        "Recurring billing periodic tasks registered",
        close_interval=settings.celery.close_orders_interval_seconds,
        ensure_interval=settings.celery.ensure_orders_interval_seconds,
    )


__all__ = ["celery_app", "setup_periodic_tasks", "setup_worker_logging"]
