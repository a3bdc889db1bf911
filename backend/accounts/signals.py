import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .services.reconciliation import attach_orphans

logger = logging.getLogger(__name__)
alerts = logging.getLogger("freight.alerts")


def reconcile_account(user_id: int) -> None:
    user = get_user_model().objects.filter(pk=user_id).first()
    if user is None:
        return
    try:
        attach_orphans(user)
    except Exception:
        # Registration already committed; an operator can rerun /api/accounts/reconcile/
        alerts.exception("Reconciliation failed for account %s", user_id)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def reconcile_new_account(sender, instance, created, raw=False, **kwargs):
    if not created or raw or not instance.email:
        return
    user_id = instance.pk
    transaction.on_commit(lambda: reconcile_account(user_id))
