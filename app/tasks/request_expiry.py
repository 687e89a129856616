import logging

from app.db.session import SessionLocal
from app.services.reading_request_service import expire_stale_requests
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="readings.expire_stale_requests")
def expire_stale_requests_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        expired_count = expire_stale_requests(db=db)
        return {"expired": expired_count}
    finally:
        db.close()
