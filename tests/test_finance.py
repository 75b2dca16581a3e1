from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from cages import finance
from cages.lifecycle import Costs


def harvested(cage_id, profit, total_cost, when, seed=0, feed=0, medicine=0):
    return SimpleNamespace(
        cage_id=cage_id,
        profit=Decimal(profit),
        revenue=Decimal(profit) + Decimal(total_cost),
        total_cost=Decimal(total_cost),
        costs=Costs(seed=Decimal(seed), feed=Decimal(feed), medicine=Decimal(medicine)),
        harvest_date=when,
    )


def active(seed, feed=0, medicine=0):
    return SimpleNamespace(costs=Costs(seed=Decimal(seed), feed=Decimal(feed), medicine=Decimal(medicine)))


MARCH = datetime(2024, 3, 15, tzinfo=timezone.utc)
APRIL = datetime(2024, 4, 2, tzinfo=timezone.utc)
DECEMBER = datetime(2023, 12, 30, tzinfo=timezone.utc)


def test_totals():
    records = [
        harvested('A01', 100000, 20000, MARCH, seed=15000, feed=5000),
        harvested('B02', -5000, 30000, APRIL, seed=10000, feed=20000),
    ]
    assert finance.total_profit(records) == Decimal('95000')
    assert finance.total_revenue(records) == Decimal('145000')
    assert finance.total_harvested_cost(records) == Decimal('50000')
    assert finance.current_investment([active(15000, 2000), active(10000, 0, 500)]) == Decimal('27500')


def test_empty_collections():
    summary = finance.summarize([], [])
    assert summary.total_profit == 0
    assert summary.cost_breakdown == []
    assert summary.monthly_profit == []
    assert summary.top_profit == []


def test_cost_breakdown_skips_empty_categories():
    records = [
        harvested('A01', 1, 20000, MARCH, seed=15000, feed=5000),
        harvested('B02', 1, 12000, APRIL, seed=10000, feed=2000),
    ]
    breakdown = finance.cost_breakdown(records)
    assert [(s.category, s.label, s.value) for s in breakdown] == [
        ('seed', 'Giống', Decimal('25000')),
        ('feed', 'Thức ăn', Decimal('7000')),
    ]


def test_monthly_profit_sorted_by_year_then_month():
    records = [
        harvested('A01', 1000, 0, APRIL),
        harvested('B02', 2000, 0, DECEMBER),
        harvested('C03', 500, 0, MARCH),
        harvested('D04', 250, 0, APRIL),
    ]
    months = finance.monthly_profit(records)
    assert [(m.label, m.profit) for m in months] == [
        ('12/2023', Decimal('2000')),
        ('03/2024', Decimal('500')),
        ('04/2024', Decimal('1250')),
    ]


def test_top_five():
    records = [harvested(f'C{i:02d}', i * 1000, 60000 - i * 1000, MARCH) for i in range(1, 8)]
    assert [h.cage_id for h in finance.top_by_profit(records)] == ['C07', 'C06', 'C05', 'C04', 'C03']
    assert [h.cage_id for h in finance.top_by_cost(records)] == ['C01', 'C02', 'C03', 'C04', 'C05']


def test_format_vnd():
    assert finance.format_vnd(25000) == '25.000 VND'
    assert finance.format_vnd(Decimal('1234567.5')) == '1.234.568 VND'
    assert finance.format_vnd(-5000) == '-5.000 VND'
