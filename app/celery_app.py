from datetime import timedelta

from celery import Celery

from app.config import settings

# Create Celery app
celery_app = Celery(
    "coaching",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,
    task_soft_time_limit=270,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,
)

celery_app.conf.beat_schedule = {
    "subscriptions-expiry-sweep": {
        "task": "app.tasks.check_expired_subscriptions",
        "schedule": timedelta(minutes=settings.expiry_sweep_interval_minutes),
        "args": [],
    },
    "payments-reconcile-pending": {
        "task": "app.tasks.reconcile_pending_payments",
        "schedule": timedelta(minutes=5),
        "args": [],
    },
}
