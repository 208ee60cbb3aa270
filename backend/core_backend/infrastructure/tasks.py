from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def purge_expired_idempotency_records():
    """
    Periodic task removing idempotency records past their retention window.
    Scheduled hourly through CELERY_BEAT_SCHEDULE.
    """
    from core_backend.models import IdempotencyRecord

    deleted = IdempotencyRecord.objects.purge_expired()
    if deleted:
        logger.info(f"Purged {deleted} expired idempotency record(s)")
    else:
        logger.debug("No expired idempotency records to purge")
    return deleted
