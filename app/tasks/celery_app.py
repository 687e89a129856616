from datetime import timedelta

from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "scheduler",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.request_expiry"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "expire-stale-reading-requests": {
            "task": "readings.expire_stale_requests",
            "schedule": timedelta(minutes=settings.celery_request_expiry_interval_minutes),
        },
    },
)
