"""
Dashboard cache invalidation
Commercial writes drop the cached KPIs of their organization once the transaction commits
"""
import logging

from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from campus.core.cache_utils import invalidate_dashboard_cache

logger = logging.getLogger(__name__)


def _schedule_invalidation(organization_id):
    if organization_id is None:
        return
    transaction.on_commit(lambda: invalidate_dashboard_cache(organization_id))


@receiver([post_save, post_delete], sender='sales.Quote')
@receiver([post_save, post_delete], sender='sales.Invoice')
@receiver([post_save, post_delete], sender='expenses.Expense')
@receiver([post_save, post_delete], sender='clients.Client')
def invalidate_on_document_change(sender, instance, **kwargs):
    _schedule_invalidation(instance.organization_id)


@receiver([post_save, post_delete], sender='sales.InvoicePayment')
def invalidate_on_payment_change(sender, instance, **kwargs):
    try:
        organization_id = instance.invoice.organization_id
    except ObjectDoesNotExist as e:
        # the invoice may already be gone during a cascade delete
        logger.debug(f"Skipping dashboard invalidation for payment {instance.pk}: {e}")
        return
    _schedule_invalidation(organization_id)
