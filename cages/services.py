"""
Cage workflows: run a lifecycle transaction and persist its result.

Every multi-step write happens inside one database transaction so a cage is
never visible as both active and harvested.
"""

import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from . import finance, lifecycle
from .exceptions import ValidationError
from .models import Cage
from .stores import cage_store, harvest_store, notification_store

logger = logging.getLogger(__name__)

# Cage ids that collide with list routes under /api/cages/
RESERVED_CAGE_IDS = {'feed'}


def target_weight():
    return getattr(settings, 'CAGE_TARGET_WEIGHT_G', lifecycle.TARGET_WEIGHT)


def ready_progress():
    return getattr(settings, 'HARVEST_READY_PROGRESS', lifecycle.HARVEST_READY_PROGRESS)


def user_label(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    return user.email or user.username


def add_cage(cage_id, initial_weight, seed_cost, user=None):
    state = lifecycle.new_cage(
        cage_id, initial_weight, seed_cost,
        now=timezone.now(), user=user_label(user), target_weight=target_weight(),
    )
    if state.cage_id.lower() in RESERVED_CAGE_IDS:
        raise ValidationError('id', f'Mã lồng "{state.cage_id}" không được sử dụng.')
    if cage_store.exists(state.cage_id):
        raise ValidationError('id', f'Lồng {state.cage_id} đã tồn tại.')
    try:
        with transaction.atomic():
            cage = cage_store.create(state, created_by=user)
    except IntegrityError:
        raise ValidationError('id', f'Lồng {state.cage_id} đã tồn tại.')

    logger.info(f"Cage {cage.cage_id} stocked at {cage.initial_weight}g")
    sync_notifications()
    return cage


def update_cage(cage_id, update, user=None):
    """Apply an operator update. Returns ``(cage, new_log_entries)``."""
    if update.user is None:
        update.user = user_label(user)

    with transaction.atomic():
        cage = cage_store.get(cage_id, for_update=True)
        state, entries = lifecycle.apply_update(
            cage.to_state(), update, now=timezone.now(), target_weight=target_weight())
        if entries:
            cage_store.save_state(cage, state)

    if entries:
        logger.info(f"Cage {cage_id} updated with {len(entries)} log entries")
        sync_notifications()
    return cage, entries


def feed_cages(cage_ids, user=None):
    """Bulk feeding; unknown ids are skipped. Returns the ids that were fed."""
    fed = []
    now = timezone.now()
    label = user_label(user)
    with transaction.atomic():
        for cage in Cage.objects.select_for_update().filter(pk__in=list(cage_ids)):
            state, _ = lifecycle.mark_fed(cage.to_state(), now=now, user=label)
            cage_store.save_state(cage, state)
            fed.append(cage.cage_id)

    logger.info(f"Bulk feeding recorded for {len(fed)} cages")
    return fed


def harvest_cage(cage_id, final_weight, price_per_kg, user=None):
    """Harvest a cage: store the outcome, drop the cage and its notifications."""
    with transaction.atomic():
        cage = cage_store.get(cage_id, for_update=True)
        outcome = lifecycle.apply_harvest(
            cage.to_state(), final_weight, price_per_kg, now=timezone.now(), user=user_label(user))
        record = harvest_store.create(outcome, harvested_by=user)
        cage_store.delete(cage_id)
        notification_store.delete_all_for_cage(cage_id)

    logger.info(f"Cage {cage_id} harvested: revenue {record.revenue}, profit {record.profit}")
    return record


def delete_cage(cage_id):
    with transaction.atomic():
        if not cage_store.delete(cage_id):
            raise Cage.DoesNotExist(f'Cage {cage_id} does not exist')
        notification_store.delete_all_for_cage(cage_id)
    logger.info(f"Cage {cage_id} deleted")


def sync_notifications(now=None):
    """Derive notifications from the current cages and store the new ones."""
    drafts = lifecycle.derive_notifications(
        cage_store.snapshot(),
        notification_store.snapshot(),
        now=now or timezone.now(),
        ready_progress=ready_progress(),
    )
    created = []
    for draft in drafts:
        notification, was_created = notification_store.create(draft)
        if was_created:
            created.append(notification)
    if created:
        logger.info(f"{len(created)} new notifications derived")
    return created


def mark_all_notifications_read():
    return notification_store.mark_all_unread_as_read()


def financial_summary():
    return finance.summarize(cage_store.snapshot(), harvest_store.snapshot())
