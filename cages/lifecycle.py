"""
Cage lifecycle engine.

Pure derivation rules over cage records:
- progress towards the target weight and the farming-day bucket
- the update transaction (weight, feeding, medicine, deaths, notes)
- the harvest transaction that turns a cage into a financial outcome
- notification triggers derived from the active cages

Nothing here touches the database. Every operation returns new values and
leaves persistence to the caller (see ``cages.services``).
"""

import uuid
from dataclasses import dataclass, fields, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Tuple

from .exceptions import ValidationError

TARGET_WEIGHT = 500  # grams
HARVEST_READY_PROGRESS = 95
DEFAULT_GROWTH_RATE = 2.5  # g/day, used when a cage has not grown yet
DEFAULT_FEED_TYPE = 'Thức ăn chung'
SYSTEM_USER = 'Hệ thống'

# Storage limits of the cage and harvest columns
MAX_CAGE_ID_LENGTH = 20
MAX_WHOLE_NUMBER = 2147483647  # PositiveIntegerField
MAX_AMOUNT = Decimal('999999999999.99')  # DecimalField(max_digits=14, decimal_places=2)
MAX_RESULT = Decimal('9999999999999.999')  # DecimalField(max_digits=16, decimal_places=3)
TOO_LARGE_MESSAGE = 'Giá trị quá lớn.'


class LogEntryType(str, Enum):
    CREATION = 'creation'
    UPDATE = 'update'
    FEEDING = 'feeding'
    MEDICINE = 'medicine'
    DEATH = 'death'
    NOTE = 'note'
    HARVEST = 'harvest'


class NotificationType(str, Enum):
    ALERT = 'alert'
    HARVEST = 'harvest'


class FarmingStage(str, Enum):
    CRITICAL = 'critical'
    MATURE = 'mature'
    MIDWAY = 'midway'
    EARLY = 'early'
    NEW = 'new'

    @property
    def color(self):
        return STAGE_COLORS[self]


STAGE_COLORS = {
    FarmingStage.CRITICAL: 'red',
    FarmingStage.MATURE: 'green',
    FarmingStage.MIDWAY: 'yellow',
    FarmingStage.EARLY: 'purple',
    FarmingStage.NEW: 'gray',
}

# Highest threshold first
FARMING_DAY_LADDER = (
    (40, FarmingStage.CRITICAL),
    (30, FarmingStage.MATURE),
    (20, FarmingStage.MIDWAY),
    (10, FarmingStage.EARLY),
)


def utcnow():
    return datetime.now(timezone.utc)


def _money(value):
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _parse_datetime(value):
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Log entry metadata: one variant per LogEntryType
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreationMeta:
    weight: int = 0
    cost: Decimal = Decimal('0')
    user: Optional[str] = None


@dataclass(frozen=True)
class WeightUpdateMeta:
    old_weight: int = 0
    new_weight: int = 0
    user: Optional[str] = None


@dataclass(frozen=True)
class FeedingMeta:
    feed_type: str = DEFAULT_FEED_TYPE
    weight: int = 0
    cost: Decimal = Decimal('0')
    user: Optional[str] = None


@dataclass(frozen=True)
class MedicineMeta:
    cost: Decimal = Decimal('0')
    user: Optional[str] = None


@dataclass(frozen=True)
class DeathMeta:
    count: int = 0
    user: Optional[str] = None


@dataclass(frozen=True)
class NoteMeta:
    user: Optional[str] = None


@dataclass(frozen=True)
class HarvestMeta:
    weight: int = 0
    price_per_kg: Decimal = Decimal('0')
    revenue: Decimal = Decimal('0')
    user: Optional[str] = None


META_BY_TYPE = {
    LogEntryType.CREATION: CreationMeta,
    LogEntryType.UPDATE: WeightUpdateMeta,
    LogEntryType.FEEDING: FeedingMeta,
    LogEntryType.MEDICINE: MedicineMeta,
    LogEntryType.DEATH: DeathMeta,
    LogEntryType.NOTE: NoteMeta,
    LogEntryType.HARVEST: HarvestMeta,
}

_MONEY_FIELDS = {'cost', 'price_per_kg', 'revenue'}


def _meta_to_dict(meta):
    data = {}
    for f in fields(meta):
        value = getattr(meta, f.name)
        if value is None:
            continue
        data[f.name] = str(value) if isinstance(value, Decimal) else value
    return data


def _meta_from_dict(meta_cls, data):
    # Unknown keys from older records are dropped
    known = {f.name for f in fields(meta_cls)}
    kwargs = {}
    for key, value in (data or {}).items():
        if key not in known or value is None:
            continue
        kwargs[key] = _money(value) if key in _MONEY_FIELDS else value
    return meta_cls(**kwargs)


@dataclass(frozen=True)
class LogEntry:
    date: datetime
    entry_type: LogEntryType
    details: str
    meta: object

    def __post_init__(self):
        entry_type = LogEntryType(self.entry_type)
        object.__setattr__(self, 'entry_type', entry_type)
        expected = META_BY_TYPE[entry_type]
        if not isinstance(self.meta, expected):
            raise TypeError(
                f'{entry_type.value} entries carry {expected.__name__}, '
                f'got {type(self.meta).__name__}'
            )

    @property
    def user(self):
        return self.meta.user

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'type': self.entry_type.value,
            'details': self.details,
            'meta': _meta_to_dict(self.meta),
        }

    @classmethod
    def from_dict(cls, data):
        entry_type = LogEntryType(data.get('type', LogEntryType.NOTE.value))
        return cls(
            date=_parse_datetime(data['date']),
            entry_type=entry_type,
            details=data.get('details') or data.get('message', ''),
            meta=_meta_from_dict(META_BY_TYPE[entry_type], data.get('meta')),
        )


@dataclass(frozen=True)
class FeedEvent:
    date: datetime
    feed_type: str
    weight: int
    cost: Decimal

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'feed_type': self.feed_type,
            'weight': self.weight,
            'cost': str(self.cost),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            date=_parse_datetime(data['date']),
            feed_type=data.get('feed_type') or DEFAULT_FEED_TYPE,
            weight=int(data.get('weight') or 0),
            cost=_money(data.get('cost') or 0),
        )


# ---------------------------------------------------------------------------
# Cage records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Costs:
    seed: Decimal = Decimal('0')
    feed: Decimal = Decimal('0')
    medicine: Decimal = Decimal('0')

    @property
    def total(self):
        return self.seed + self.feed + self.medicine

    def to_dict(self):
        return {'seed': self.seed, 'feed': self.feed, 'medicine': self.medicine}


@dataclass(frozen=True)
class CageState:
    cage_id: str
    start_date: datetime
    initial_weight: int
    current_weight: int
    progress: int
    costs: Costs
    dead_crab_count: int = 0
    growth_history: Tuple[int, ...] = ()
    log: Tuple[LogEntry, ...] = ()
    feed_history: Tuple[FeedEvent, ...] = ()
    ai_alert: bool = False


@dataclass(frozen=True)
class HarvestedCageState:
    cage_id: str
    start_date: datetime
    harvest_date: datetime
    initial_weight: int
    final_weight: int
    price_per_kg: Decimal
    costs: Costs
    total_cost: Decimal
    revenue: Decimal
    profit: Decimal
    dead_crab_count: int = 0
    growth_history: Tuple[int, ...] = ()
    log: Tuple[LogEntry, ...] = ()
    feed_history: Tuple[FeedEvent, ...] = ()


@dataclass
class UpdateInput:
    """Operator input for one update transaction.

    ``weight`` is the new absolute weight and is required. Every other
    amount is an increment; blank values count as zero.
    """
    weight: object = None
    feed_cost: object = 0
    medicine_cost: object = 0
    dead_count: object = 0
    note: str = ''
    feed_type: str = ''
    feed_weight: object = 0
    user: Optional[str] = None


@dataclass(frozen=True)
class NotificationDraft:
    notification_id: str
    notification_type: NotificationType
    cage_id: str
    message: str
    timestamp: datetime
    read: bool = False


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------

def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _to_decimal(value, field_name, maximum=None):
    if isinstance(value, bool):
        raise ValidationError(field_name, 'Giá trị phải là số.')
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(field_name, 'Giá trị phải là số.')
    if not number.is_finite():
        raise ValidationError(field_name, 'Giá trị phải là số.')
    if number < 0:
        raise ValidationError(field_name, 'Giá trị không được âm.')
    if maximum is not None and number > maximum:
        raise ValidationError(field_name, TOO_LARGE_MESSAGE)
    return number


def parse_whole_number(value, field_name, required=False):
    """Grams and counts: truncated to an integer, never negative."""
    if _is_blank(value):
        if required:
            raise ValidationError(field_name, 'Giá trị là bắt buộc.')
        return 0
    return int(_to_decimal(value, field_name, MAX_WHOLE_NUMBER))


def parse_amount(value, field_name, required=False):
    """Monetary amounts in VND, never negative."""
    if _is_blank(value):
        if required:
            raise ValidationError(field_name, 'Giá trị là bắt buộc.')
        return Decimal('0')
    return _to_decimal(value, field_name, MAX_AMOUNT)


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------

def compute_progress(current_weight, target_weight=TARGET_WEIGHT):
    if target_weight <= 0:
        raise ValueError('target_weight must be positive')
    ratio = Decimal(current_weight) * 100 / Decimal(target_weight)
    return max(0, min(100, int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))))


def compute_farming_days(start_date, now=None):
    """Whole days since stocking, never less than 1."""
    now = now or utcnow()
    return max(1, (now - start_date).days)


def classify_farming_days(days):
    for threshold, stage in FARMING_DAY_LADDER:
        if days >= threshold:
            return stage
    return FarmingStage.NEW


def growth_rate(cage, now=None):
    """Average grams gained per farming day."""
    days = compute_farming_days(cage.start_date, now)
    return (cage.current_weight - cage.initial_weight) / days


def estimate_target_date(cage, now=None, target_weight=TARGET_WEIGHT):
    """Projected date the cage reaches ``target_weight``; None once past it."""
    now = now or utcnow()
    rate = growth_rate(cage, now)
    if rate <= 0:
        rate = DEFAULT_GROWTH_RATE
    days_to_target = (target_weight - cage.current_weight) / rate
    if days_to_target < 0:
        return None
    return now + timedelta(days=round(days_to_target))


def attribute_log(entries, default_user=SYSTEM_USER):
    """Fill in a display user for legacy entries that were logged without one."""
    return tuple(
        entry if entry.meta.user else replace(entry, meta=replace(entry.meta, user=default_user))
        for entry in entries
    )


def _sorted_log(entries):
    return tuple(sorted(entries, key=lambda entry: entry.date))


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def new_cage(cage_id, initial_weight, seed_cost, now=None, user=None, target_weight=TARGET_WEIGHT):
    cage_id = (cage_id or '').strip()
    if not cage_id:
        raise ValidationError('id', 'Mã lồng là bắt buộc.')
    if len(cage_id) > MAX_CAGE_ID_LENGTH:
        raise ValidationError('id', f'Mã lồng tối đa {MAX_CAGE_ID_LENGTH} ký tự.')
    weight = parse_whole_number(initial_weight, 'initial_weight', required=True)
    seed = parse_amount(seed_cost, 'seed_cost')
    now = now or utcnow()

    creation = LogEntry(
        date=now,
        entry_type=LogEntryType.CREATION,
        details=f'Thả giống với trọng lượng {weight}g.',
        meta=CreationMeta(weight=weight, cost=seed, user=user),
    )
    return CageState(
        cage_id=cage_id,
        start_date=now,
        initial_weight=weight,
        current_weight=weight,
        progress=compute_progress(weight, target_weight),
        costs=Costs(seed=seed),
        growth_history=(weight,),
        log=(creation,),
    )


def apply_update(cage, update, now=None, target_weight=TARGET_WEIGHT):
    """Apply one operator update. Returns ``(updated_cage, new_log_entries)``.

    All new entries share one timestamp; the whole log is re-sorted by date
    afterwards. An update that changes nothing returns the cage untouched.
    """
    weight = parse_whole_number(update.weight, 'weight', required=True)
    feed_cost = parse_amount(update.feed_cost, 'feed_cost')
    medicine_cost = parse_amount(update.medicine_cost, 'medicine_cost')
    dead_count = parse_whole_number(update.dead_count, 'dead_count')
    feed_weight = parse_whole_number(update.feed_weight, 'feed_weight')
    feed_type = (update.feed_type or '').strip()
    note = (update.note or '').strip()
    user = update.user
    now = now or utcnow()

    entries = []
    growth_history = cage.growth_history
    feed_history = cage.feed_history

    if weight != cage.current_weight:
        growth_history = growth_history + (weight,)
        entries.append(LogEntry(
            date=now,
            entry_type=LogEntryType.UPDATE,
            details=f'Trọng lượng mới: {weight}g. Tăng {weight - cage.current_weight}g.',
            meta=WeightUpdateMeta(old_weight=cage.current_weight, new_weight=weight, user=user),
        ))

    if feed_cost > 0 or feed_weight > 0 or feed_type:
        event = FeedEvent(
            date=now,
            feed_type=feed_type or DEFAULT_FEED_TYPE,
            weight=feed_weight,
            cost=feed_cost,
        )
        feed_history = feed_history + (event,)
        entries.append(LogEntry(
            date=now,
            entry_type=LogEntryType.FEEDING,
            details=f'Cho ăn {event.weight}g {event.feed_type}.',
            meta=FeedingMeta(feed_type=event.feed_type, weight=event.weight, cost=event.cost, user=user),
        ))

    if medicine_cost > 0:
        entries.append(LogEntry(
            date=now,
            entry_type=LogEntryType.MEDICINE,
            details='Sử dụng thuốc.',
            meta=MedicineMeta(cost=medicine_cost, user=user),
        ))

    if dead_count > 0:
        entries.append(LogEntry(
            date=now,
            entry_type=LogEntryType.DEATH,
            details=f'Ghi nhận {dead_count} cua chết.',
            meta=DeathMeta(count=dead_count, user=user),
        ))

    if note:
        entries.append(LogEntry(
            date=now,
            entry_type=LogEntryType.NOTE,
            details=note,
            meta=NoteMeta(user=user),
        ))

    if not entries:
        return cage, ()

    costs = replace(
        cage.costs,
        feed=cage.costs.feed + feed_cost,
        medicine=cage.costs.medicine + medicine_cost,
    )
    if costs.total > MAX_AMOUNT:
        raise ValidationError('feed_cost' if feed_cost > 0 else 'medicine_cost', TOO_LARGE_MESSAGE)
    if cage.dead_crab_count + dead_count > MAX_WHOLE_NUMBER:
        raise ValidationError('dead_count', TOO_LARGE_MESSAGE)

    updated = replace(
        cage,
        current_weight=weight,
        progress=compute_progress(weight, target_weight),
        costs=costs,
        dead_crab_count=cage.dead_crab_count + dead_count,
        growth_history=growth_history,
        feed_history=feed_history,
        log=_sorted_log(cage.log + tuple(entries)),
    )
    return updated, tuple(entries)


def mark_fed(cage, now=None, user=None):
    """Bulk-feeding shortcut: log a feeding without weight or cost."""
    now = now or utcnow()
    entry = LogEntry(
        date=now,
        entry_type=LogEntryType.FEEDING,
        details='Đánh dấu đã cho ăn (hàng loạt).',
        meta=FeedingMeta(user=user),
    )
    return replace(cage, log=_sorted_log(cage.log + (entry,))), entry


def apply_harvest(cage, final_weight, price_per_kg, now=None, user=None):
    """Build the terminal harvest record for ``cage``.

    The caller must remove the cage and its notifications in the same
    transaction that stores the returned record.
    """
    weight = parse_whole_number(final_weight, 'final_weight', required=True)
    price = parse_amount(price_per_kg, 'price_per_kg', required=True)
    if weight <= 0:
        raise ValidationError('final_weight', 'Trọng lượng thu hoạch phải lớn hơn 0.')
    if price <= 0:
        raise ValidationError('price_per_kg', 'Giá bán phải lớn hơn 0.')
    now = now or utcnow()

    total_cost = cage.costs.total
    revenue = Decimal(weight) / 1000 * price
    profit = revenue - total_cost
    if revenue > MAX_RESULT or abs(profit) > MAX_RESULT:
        raise ValidationError('price_per_kg', 'Doanh thu vượt quá giới hạn lưu trữ.')

    entry = LogEntry(
        date=now,
        entry_type=LogEntryType.HARVEST,
        details=f'Thu hoạch {weight}g với giá {price} VND/kg.',
        meta=HarvestMeta(weight=weight, price_per_kg=price, revenue=revenue, user=user),
    )
    return HarvestedCageState(
        cage_id=cage.cage_id,
        start_date=cage.start_date,
        harvest_date=now,
        initial_weight=cage.initial_weight,
        final_weight=weight,
        price_per_kg=price,
        costs=cage.costs,
        total_cost=total_cost,
        revenue=revenue,
        profit=profit,
        dead_crab_count=cage.dead_crab_count,
        growth_history=cage.growth_history,
        log=_sorted_log(cage.log + (entry,)),
        feed_history=cage.feed_history,
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

NOTIFICATION_MESSAGES = {
    NotificationType.ALERT: 'Lồng {cage_id}: AI phát hiện tốc độ tăng trưởng bất thường, cần kiểm tra.',
    NotificationType.HARVEST: 'Lồng {cage_id} đã đạt {progress}% trọng lượng mục tiêu, sẵn sàng thu hoạch.',
}


def notification_key(cage_id, notification_type):
    return cage_id, NotificationType(notification_type).value


def derive_notifications(cages, existing, now=None, ready_progress=HARVEST_READY_PROGRESS, id_factory=None):
    """New notifications for triggers that have no ``(cage_id, type)`` entry yet.

    ``cages`` need ``cage_id``, ``ai_alert`` and ``progress``; ``existing``
    items need ``cage_id`` and ``notification_type``.
    """
    now = now or utcnow()
    id_factory = id_factory or (lambda: str(uuid.uuid4()))
    seen = {notification_key(n.cage_id, n.notification_type) for n in existing}
    drafts = []

    for cage in cages:
        triggers = []
        if cage.ai_alert:
            triggers.append(NotificationType.ALERT)
        if cage.progress >= ready_progress:
            triggers.append(NotificationType.HARVEST)

        for notification_type in triggers:
            key = notification_key(cage.cage_id, notification_type)
            if key in seen:
                continue
            seen.add(key)
            drafts.append(NotificationDraft(
                notification_id=id_factory(),
                notification_type=notification_type,
                cage_id=cage.cage_id,
                message=NOTIFICATION_MESSAGES[notification_type].format(
                    cage_id=cage.cage_id, progress=cage.progress),
                timestamp=now,
            ))
    return drafts
