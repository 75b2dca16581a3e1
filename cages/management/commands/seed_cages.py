"""
Django Management Command: Seed Cages

Stocks the shared workspace with randomly grown demo cages.

Usage:
    python manage.py seed_cages
    python manage.py seed_cages --count 20 --clear  # Remove existing cages first
"""

import random
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from cages import lifecycle
from cages.models import Cage, Notification
from cages.services import sync_notifications, target_weight


class Command(BaseCommand):
    help = 'Generate random active cages for demos and local development'

    def add_arguments(self, parser):
        parser.add_argument(
            '--count',
            type=int,
            default=50,
            help='Number of cages to create (default 50)',
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete existing cages and notifications before seeding',
        )

    def handle(self, *args, **options):
        count = options['count']
        if count < 1:
            raise CommandError('--count must be at least 1')

        if options['clear']:
            self.clear_data()

        now = timezone.now()
        created = 0
        skipped = 0
        try:
            with transaction.atomic():
                for index in range(1, count + 1):
                    cage_id = f'{index:03d}'
                    if Cage.objects.filter(pk=cage_id).exists():
                        skipped += 1
                        continue
                    Cage.from_state(self.random_cage(cage_id, now)).save(force_insert=True)
                    created += 1
        except Exception as e:
            self.stdout.write(self.style.ERROR(f'✗ Error seeding cages: {e}'))
            raise CommandError(f'Seeding failed: {e}')

        notifications = sync_notifications(now=now)
        self.stdout.write(self.style.SUCCESS(f'✓ Created {created} cages ({skipped} existing ids skipped)'))
        self.stdout.write(f'  Notifications derived: {len(notifications)}')

    def clear_data(self):
        self.stdout.write(self.style.WARNING('Clearing existing cages...'))
        cages, _ = Cage.objects.all().delete()
        Notification.objects.all().delete()
        self.stdout.write(f'  Deleted {cages} cages')

    def random_cage(self, cage_id, now):
        farming_days = random.randint(0, 39)
        start_date = now - timedelta(days=farming_days)
        initial_weight = random.randint(50, 100)
        daily_growth = random.uniform(2, 5)
        current_weight = round(initial_weight + farming_days * daily_growth)
        seed_cost = random.randint(10000, 19999)
        feed_cost = current_weight * 150
        medicine_cost = random.randint(2000, 6999) if random.random() > 0.8 else 0

        state = lifecycle.new_cage(cage_id, initial_weight, seed_cost, now=start_date)
        history = tuple(
            int(initial_weight + step * (farming_days / 10) * daily_growth + random.random() * 20)
            for step in range(10)
        )
        return replace(
            state,
            current_weight=current_weight,
            progress=lifecycle.compute_progress(current_weight, target_weight()),
            costs=lifecycle.Costs(
                seed=Decimal(seed_cost), feed=Decimal(feed_cost), medicine=Decimal(medicine_cost)),
            growth_history=history,
            ai_alert=random.random() > 0.9,
            dead_crab_count=1 if random.random() > 0.95 else 0,
        )
