"""
Celery tasks

Tasks:
- check_expired_subscriptions: move lapsed ACTIVE subscriptions to PENDING
- reconcile_pending_payments: poll 3pay for payments whose callback never arrived
"""
import logging

from app.celery_app import celery_app
from app.database import SessionLocal
from app.services import payments, subscriptions
from app.services.errors import PaymentProviderError

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.health_check")
def health_check():
    """Simple health check task for testing Celery setup"""
    return {"status": "ok", "message": "Celery is working"}


@celery_app.task(name="app.tasks.check_expired_subscriptions", bind=True, max_retries=3)
def check_expired_subscriptions(self):
    db = SessionLocal()
    try:
        expired = subscriptions.check_expired_subscriptions(db)
        return {"expired_count": expired}
    except Exception as e:
        db.rollback()
        logger.error("Expiry sweep failed: %s", e)
        raise self.retry(exc=e, countdown=60)
    finally:
        db.close()


@celery_app.task(name="app.tasks.reconcile_pending_payments", bind=True, max_retries=0)
def reconcile_pending_payments(self):
    db = SessionLocal()
    try:
        stats = payments.reconcile_pending_payments(db)
        if stats["confirmed"]:
            logger.info("Reconciled pending payments: %s", stats)
        return stats
    except PaymentProviderError as e:
        db.rollback()
        logger.warning("Pending payment reconciliation aborted: %s", e)
        return {"error": str(e)}
    finally:
        db.close()
