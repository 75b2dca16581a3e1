"""
Record stores for cages, harvests and notifications.

Each store owns one model and offers the small surface the dashboard needs:
snapshot subscriptions plus the writes it performs. Subscribers receive the
full ordered snapshot after every committed change.
"""

import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models.signals import post_delete, post_save

from .exceptions import StoreWriteError
from .models import Cage, HarvestedCage, Notification

logger = logging.getLogger(__name__)


class SnapshotStore:
    model = None

    def __init__(self):
        self._listeners = []
        post_save.connect(self._on_change, sender=self.model, weak=False, dispatch_uid=f'{id(self)}-save')
        post_delete.connect(self._on_change, sender=self.model, weak=False, dispatch_uid=f'{id(self)}-delete')

    def queryset(self):
        return self.model.objects.all()

    def snapshot(self):
        return list(self.queryset())

    def subscribe(self, on_snapshot, on_initial_load=None):
        """Deliver the current snapshot now and after every change.

        Returns a callable that removes the subscription.
        """
        self._listeners.append(on_snapshot)
        on_snapshot(self.snapshot())
        if on_initial_load is not None:
            on_initial_load()

        def unsubscribe():
            if on_snapshot in self._listeners:
                self._listeners.remove(on_snapshot)
        return unsubscribe

    def publish(self):
        if self._listeners:
            transaction.on_commit(self._deliver)

    def _deliver(self):
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception('%s subscriber failed', self.model.__name__)

    def _on_change(self, sender, **kwargs):
        self.publish()

    def _write(self, operation, key, func):
        try:
            return func()
        except IntegrityError:
            raise
        except DatabaseError as exc:
            logger.error('%s %s failed for %s: %s', self.model.__name__, operation, key, exc)
            raise StoreWriteError(operation, key, exc) from exc


class CageStore(SnapshotStore):
    model = Cage

    def get(self, cage_id, for_update=False):
        queryset = Cage.objects.select_for_update() if for_update else Cage.objects
        return queryset.get(pk=cage_id)

    def exists(self, cage_id):
        return Cage.objects.filter(pk=cage_id).exists()

    def create(self, state, created_by=None):
        cage = Cage.from_state(state, created_by=created_by)
        return self._write('create', state.cage_id, lambda: cage.save(force_insert=True) or cage)

    def update(self, cage_id, **fields):
        """Partial update of the named fields."""
        def write():
            count = Cage.objects.filter(pk=cage_id).update(**fields)
            if count:
                self.publish()
            return count
        return self._write('update', cage_id, write)

    def save_state(self, cage, state):
        cage.apply_state(state)
        return self._write('update', cage.cage_id, lambda: cage.save() or cage)

    def delete(self, cage_id):
        def write():
            deleted, _ = Cage.objects.filter(pk=cage_id).delete()
            return deleted
        return self._write('delete', cage_id, write)


class HarvestStore(SnapshotStore):
    model = HarvestedCage

    def create(self, state, harvested_by=None):
        record = HarvestedCage.from_state(state, harvested_by=harvested_by)
        return self._write('create', state.cage_id, lambda: record.save() or record)


class NotificationStore(SnapshotStore):
    model = Notification

    def create(self, draft):
        """Insert unless a notification with the same (cage, type) exists.

        Returns ``(notification, created)``.
        """
        # get_or_create falls back to a read when a concurrent pass wins the
        # insert race on the unique (cage_id, notification_type) constraint
        def write():
            return Notification.objects.get_or_create(
                cage_id=draft.cage_id,
                notification_type=draft.notification_type.value,
                defaults={
                    'id': draft.notification_id,
                    'message': draft.message,
                    'timestamp': draft.timestamp,
                    'read': draft.read,
                },
            )
        return self._write('create', f'{draft.cage_id}:{draft.notification_type.value}', write)

    def unread_count(self):
        return Notification.objects.filter(read=False).count()

    def mark_all_unread_as_read(self):
        def write():
            count = Notification.objects.filter(read=False).update(read=True)
            if count:
                self.publish()
            return count
        return self._write('mark_read', 'unread', write)

    def delete_all_for_cage(self, cage_id):
        def write():
            deleted, _ = Notification.objects.filter(cage_id=cage_id).delete()
            return deleted
        return self._write('delete', cage_id, write)


cage_store = CageStore()
harvest_store = HarvestStore()
notification_store = NotificationStore()
