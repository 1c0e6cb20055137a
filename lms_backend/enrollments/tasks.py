"""Celery tasks for enrollment maintenance."""
from celery import shared_task
from django.utils import timezone

from .services import expire_due_enrollments as expire_due


@shared_task
def expire_due_enrollments():
    """Expire active enrollments whose access period has ended (beat: hourly)."""
    now = timezone.now()
    expired = expire_due(now)
    return {
        'expired': expired,
        'timestamp': now.isoformat(),
    }
