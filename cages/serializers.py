from django.utils import timezone
from rest_framework import serializers

from . import lifecycle
from .models import Cage, HarvestedCage, Notification
from .services import target_weight
from .timeutils import format_distance_to_now


class CostsField(serializers.Field):
    def __init__(self, **kwargs):
        kwargs['source'] = '*'
        kwargs['read_only'] = True
        super().__init__(**kwargs)

    def to_representation(self, instance):
        costs = instance.costs
        return {
            'seed': str(costs.seed),
            'feed': str(costs.feed),
            'medicine': str(costs.medicine),
        }


class CageSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source='cage_id', read_only=True)
    costs = CostsField()
    total_cost = serializers.DecimalField(max_digits=16, decimal_places=2, read_only=True)
    farming_days = serializers.SerializerMethodField()
    stage = serializers.SerializerMethodField()
    stage_color = serializers.SerializerMethodField()

    class Meta:
        model = Cage
        fields = ['id', 'start_date', 'initial_weight', 'current_weight', 'progress', 'dead_crab_count',
                  'costs', 'total_cost', 'growth_history', 'ai_alert', 'farming_days', 'stage', 'stage_color',
                  'created_at', 'updated_at']
        read_only_fields = fields

    def _now(self):
        return self.context.get('now') or timezone.now()

    def get_farming_days(self, obj):
        return obj.farming_days(self._now())

    def get_stage(self, obj):
        return lifecycle.classify_farming_days(obj.farming_days(self._now())).value

    def get_stage_color(self, obj):
        return lifecycle.classify_farming_days(obj.farming_days(self._now())).color


class CageDetailSerializer(CageSerializer):
    log = serializers.SerializerMethodField()
    feed_history = serializers.JSONField(read_only=True)
    growth_rate = serializers.SerializerMethodField()
    estimated_target_date = serializers.SerializerMethodField()

    class Meta(CageSerializer.Meta):
        fields = CageSerializer.Meta.fields + ['log', 'feed_history', 'growth_rate', 'estimated_target_date']
        read_only_fields = fields

    def get_log(self, obj):
        # Legacy entries are shown as logged by the system; nothing is saved
        entries = lifecycle.attribute_log(obj.to_state().log)
        return [entry.to_dict() for entry in entries]

    def get_growth_rate(self, obj):
        return round(lifecycle.growth_rate(obj, self._now()), 2)

    def get_estimated_target_date(self, obj):
        estimate = lifecycle.estimate_target_date(obj, self._now(), target_weight())
        return estimate.date().isoformat() if estimate else None


class HarvestedCageSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source='cage_id', read_only=True)
    costs = CostsField()

    class Meta:
        model = HarvestedCage
        fields = ['id', 'start_date', 'harvest_date', 'initial_weight', 'final_weight', 'price_per_kg',
                  'costs', 'total_cost', 'revenue', 'profit', 'dead_crab_count', 'growth_history',
                  'log', 'feed_history']
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    time_ago = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = ['id', 'notification_type', 'cage_id', 'message', 'timestamp', 'read', 'time_ago']
        read_only_fields = fields

    def get_time_ago(self, obj):
        return format_distance_to_now(obj.timestamp)
