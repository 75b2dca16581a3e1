"""
Record stores: ordered snapshots, commit-time subscriptions, notification
uniqueness and write failure wrapping.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from cages import lifecycle
from cages.exceptions import StoreWriteError
from cages.lifecycle import NotificationDraft, NotificationType
from cages.models import Cage, Notification
from cages.stores import cage_store, harvest_store, notification_store

pytestmark = pytest.mark.django_db


def make_cage(cage_id, weight=100):
    return cage_store.create(lifecycle.new_cage(cage_id, weight, 10000, now=timezone.now()))


def draft(cage_id, notification_type=NotificationType.HARVEST, **kwargs):
    defaults = dict(
        notification_id=str(uuid.uuid4()),
        notification_type=notification_type,
        cage_id=cage_id,
        message=f'Lồng {cage_id}',
        timestamp=timezone.now(),
    )
    defaults.update(kwargs)
    return NotificationDraft(**defaults)


class TestCageStore:

    def test_snapshot_ordered_by_id(self):
        for cage_id in ['C03', 'A01', 'B02']:
            make_cage(cage_id)
        assert [c.cage_id for c in cage_store.snapshot()] == ['A01', 'B02', 'C03']

    def test_subscribe_delivers_now_then_after_commit(self, django_capture_on_commit_callbacks):
        make_cage('A01')
        received = []
        loaded = []
        unsubscribe = cage_store.subscribe(
            lambda snapshot: received.append([c.cage_id for c in snapshot]),
            on_initial_load=lambda: loaded.append(True),
        )
        try:
            assert received == [['A01']]
            assert loaded == [True]

            with django_capture_on_commit_callbacks(execute=True):
                make_cage('B02')
            assert received[-1] == ['A01', 'B02']
        finally:
            unsubscribe()

    def test_unsubscribe_stops_delivery(self, django_capture_on_commit_callbacks):
        received = []
        unsubscribe = cage_store.subscribe(received.append)
        unsubscribe()
        with django_capture_on_commit_callbacks(execute=True):
            make_cage('A01')
        assert len(received) == 1

    def test_nothing_published_without_listeners(self, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            make_cage('A01')
        assert callbacks == []

    def test_partial_update(self):
        make_cage('A01')
        assert cage_store.update('A01', ai_alert=True) == 1
        assert Cage.objects.get(pk='A01').ai_alert is True
        assert cage_store.update('ZZZ', ai_alert=True) == 0

    def test_delete(self):
        make_cage('A01')
        assert cage_store.delete('A01') == 1
        assert cage_store.delete('A01') == 0

    def test_write_failure_is_wrapped(self):
        state = lifecycle.new_cage('A01', 100, 0)
        with patch.object(Cage, 'save', side_effect=DatabaseError('disk I/O error')):
            with pytest.raises(StoreWriteError) as exc:
                cage_store.create(state)
        assert exc.value.operation == 'create'
        assert exc.value.key == 'A01'


class TestHarvestStore:

    def test_snapshot_newest_first(self):
        now = timezone.now()
        for days, cage_id in [(2, 'A01'), (0, 'B02'), (1, 'C03')]:
            cage = lifecycle.new_cage(cage_id, 100, 10000, now=now - timedelta(days=40))
            harvest_store.create(lifecycle.apply_harvest(cage, 500, 300000, now=now - timedelta(days=days)))
        assert [h.cage_id for h in harvest_store.snapshot()] == ['B02', 'C03', 'A01']


class TestNotificationStore:

    def test_create_is_deduplicated(self):
        first, created = notification_store.create(draft('A01'))
        second, created_again = notification_store.create(draft('A01'))
        assert created is True
        assert created_again is False
        assert first.pk == second.pk
        assert Notification.objects.count() == 1

    def test_unique_constraint(self):
        Notification.objects.create(cage_id='A01', notification_type='alert', message='x')
        with pytest.raises(IntegrityError), transaction.atomic():
            Notification.objects.create(cage_id='A01', notification_type='alert', message='y')

    def test_same_cage_different_types(self):
        notification_store.create(draft('A01', NotificationType.ALERT))
        notification_store.create(draft('A01', NotificationType.HARVEST))
        assert Notification.objects.filter(cage_id='A01').count() == 2

    def test_mark_all_unread_as_read(self):
        notification_store.create(draft('A01'))
        notification_store.create(draft('B02', read=True))
        assert notification_store.unread_count() == 1
        assert notification_store.mark_all_unread_as_read() == 1
        assert notification_store.unread_count() == 0

    def test_delete_all_for_cage(self):
        notification_store.create(draft('A01', NotificationType.ALERT))
        notification_store.create(draft('A01', NotificationType.HARVEST))
        notification_store.create(draft('B02'))
        assert notification_store.delete_all_for_cage('A01') == 2
        assert [n.cage_id for n in notification_store.snapshot()] == ['B02']

    def test_snapshot_newest_first(self):
        now = timezone.now()
        notification_store.create(draft('A01', timestamp=now - timedelta(hours=2)))
        notification_store.create(draft('B02', timestamp=now))
        assert [n.cage_id for n in notification_store.snapshot()] == ['B02', 'A01']
