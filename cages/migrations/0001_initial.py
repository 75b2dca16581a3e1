# Generated migration for cages, harvests and notifications

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Cage',
            fields=[
                ('cage_id', models.CharField(max_length=20, primary_key=True, serialize=False)),
                ('start_date', models.DateTimeField()),
                ('initial_weight', models.PositiveIntegerField()),
                ('current_weight', models.PositiveIntegerField()),
                ('progress', models.PositiveSmallIntegerField(default=0)),
                ('dead_crab_count', models.PositiveIntegerField(default=0)),
                ('seed_cost', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('feed_cost', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('medicine_cost', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('growth_history', models.JSONField(blank=True, default=list)),
                ('log', models.JSONField(blank=True, default=list)),
                ('feed_history', models.JSONField(blank=True, default=list)),
                ('ai_alert', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['cage_id'],
            },
        ),
        migrations.CreateModel(
            name='HarvestedCage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('cage_id', models.CharField(db_index=True, max_length=20)),
                ('start_date', models.DateTimeField()),
                ('harvest_date', models.DateTimeField()),
                ('initial_weight', models.PositiveIntegerField()),
                ('final_weight', models.PositiveIntegerField()),
                ('price_per_kg', models.DecimalField(decimal_places=2, max_digits=14)),
                ('seed_cost', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('feed_cost', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('medicine_cost', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('total_cost', models.DecimalField(decimal_places=2, max_digits=14)),
                ('revenue', models.DecimalField(decimal_places=3, max_digits=16)),
                ('profit', models.DecimalField(decimal_places=3, max_digits=16)),
                ('dead_crab_count', models.PositiveIntegerField(default=0)),
                ('growth_history', models.JSONField(blank=True, default=list)),
                ('log', models.JSONField(blank=True, default=list)),
                ('feed_history', models.JSONField(blank=True, default=list)),
                ('harvested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-harvest_date'],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('cage_id', models.CharField(db_index=True, max_length=20)),
                ('notification_type', models.CharField(choices=[('alert', 'AI Alert'), ('harvest', 'Harvest Ready')], max_length=20)),
                ('message', models.TextField()),
                ('timestamp', models.DateTimeField(default=django.utils.timezone.now)),
                ('read', models.BooleanField(default=False)),
            ],
            options={
                'ordering': ['-timestamp'],
            },
        ),
        migrations.AddConstraint(
            model_name='notification',
            constraint=models.UniqueConstraint(fields=('cage_id', 'notification_type'), name='unique_notification_per_cage_type'),
        ),
    ]
