import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from . import lifecycle
from .lifecycle import Costs, FeedEvent, LogEntry


def _log_from_json(items):
    return tuple(LogEntry.from_dict(item) for item in items or [])


def _feed_from_json(items):
    return tuple(FeedEvent.from_dict(item) for item in items or [])


class Cage(models.Model):
    """An active cage of crabs, from stocking until harvest"""
    cage_id = models.CharField(max_length=20, primary_key=True)
    start_date = models.DateTimeField()
    initial_weight = models.PositiveIntegerField()  # grams
    current_weight = models.PositiveIntegerField()  # grams
    progress = models.PositiveSmallIntegerField(default=0)
    dead_crab_count = models.PositiveIntegerField(default=0)
    seed_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    feed_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    medicine_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    growth_history = models.JSONField(default=list, blank=True)
    log = models.JSONField(default=list, blank=True)
    feed_history = models.JSONField(default=list, blank=True)
    ai_alert = models.BooleanField(default=False)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['cage_id']

    def __str__(self):
        return f"Cage {self.cage_id}"

    @property
    def costs(self):
        return Costs(seed=self.seed_cost, feed=self.feed_cost, medicine=self.medicine_cost)

    @property
    def total_cost(self):
        return self.costs.total

    def farming_days(self, now=None):
        return lifecycle.compute_farming_days(self.start_date, now or timezone.now())

    def to_state(self):
        return lifecycle.CageState(
            cage_id=self.cage_id,
            start_date=self.start_date,
            initial_weight=self.initial_weight,
            current_weight=self.current_weight,
            progress=self.progress,
            costs=self.costs,
            dead_crab_count=self.dead_crab_count,
            growth_history=tuple(self.growth_history or []),
            log=_log_from_json(self.log),
            feed_history=_feed_from_json(self.feed_history),
            ai_alert=self.ai_alert,
        )

    def apply_state(self, state):
        """Copy a lifecycle state onto this row (start date and id never change)."""
        self.initial_weight = state.initial_weight
        self.current_weight = state.current_weight
        self.progress = state.progress
        self.dead_crab_count = state.dead_crab_count
        self.seed_cost = state.costs.seed
        self.feed_cost = state.costs.feed
        self.medicine_cost = state.costs.medicine
        self.growth_history = list(state.growth_history)
        self.log = [entry.to_dict() for entry in state.log]
        self.feed_history = [event.to_dict() for event in state.feed_history]
        self.ai_alert = state.ai_alert
        return self

    @classmethod
    def from_state(cls, state, created_by=None):
        cage = cls(cage_id=state.cage_id, start_date=state.start_date, created_by=created_by)
        return cage.apply_state(state)


class HarvestedCage(models.Model):
    """Final financial outcome of a cage. Written once, never updated."""
    cage_id = models.CharField(max_length=20, db_index=True)
    start_date = models.DateTimeField()
    harvest_date = models.DateTimeField()
    initial_weight = models.PositiveIntegerField()
    final_weight = models.PositiveIntegerField()
    price_per_kg = models.DecimalField(max_digits=14, decimal_places=2)
    seed_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    feed_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    medicine_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2)
    revenue = models.DecimalField(max_digits=16, decimal_places=3)
    profit = models.DecimalField(max_digits=16, decimal_places=3)
    dead_crab_count = models.PositiveIntegerField(default=0)
    growth_history = models.JSONField(default=list, blank=True)
    log = models.JSONField(default=list, blank=True)
    feed_history = models.JSONField(default=list, blank=True)
    harvested_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)

    class Meta:
        ordering = ['-harvest_date']

    def __str__(self):
        return f"Harvest {self.cage_id} on {self.harvest_date:%Y-%m-%d}"

    @property
    def costs(self):
        return Costs(seed=self.seed_cost, feed=self.feed_cost, medicine=self.medicine_cost)

    @classmethod
    def from_state(cls, state, harvested_by=None):
        return cls(
            cage_id=state.cage_id,
            start_date=state.start_date,
            harvest_date=state.harvest_date,
            initial_weight=state.initial_weight,
            final_weight=state.final_weight,
            price_per_kg=state.price_per_kg,
            seed_cost=state.costs.seed,
            feed_cost=state.costs.feed,
            medicine_cost=state.costs.medicine,
            total_cost=state.total_cost,
            revenue=state.revenue,
            profit=state.profit,
            dead_crab_count=state.dead_crab_count,
            growth_history=list(state.growth_history),
            log=[entry.to_dict() for entry in state.log],
            feed_history=[event.to_dict() for event in state.feed_history],
            harvested_by=harvested_by,
        )


class Notification(models.Model):
    """Alert derived from cage state; one per (cage, type)"""
    NOTIFICATION_TYPES = [
        (lifecycle.NotificationType.ALERT.value, 'AI Alert'),
        (lifecycle.NotificationType.HARVEST.value, 'Harvest Ready'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cage_id = models.CharField(max_length=20, db_index=True)
    notification_type = models.CharField(max_length=20, choices=NOTIFICATION_TYPES)
    message = models.TextField()
    timestamp = models.DateTimeField(default=timezone.now)
    read = models.BooleanField(default=False)

    class Meta:
        ordering = ['-timestamp']
        constraints = [
            models.UniqueConstraint(fields=['cage_id', 'notification_type'], name='unique_notification_per_cage_type'),
        ]

    def __str__(self):
        return f"{self.notification_type} - {self.cage_id}"
