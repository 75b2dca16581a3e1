"""
Financial aggregation over harvested and active cages.

Works on anything exposing the harvest/cage attributes (``profit``,
``revenue``, ``total_cost``, ``costs``, ``harvest_date``), so both the ORM
models and the lifecycle dataclasses can be passed in.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List

TOP_N = 5

COST_CATEGORIES = (
    ('seed', 'Giống'),
    ('feed', 'Thức ăn'),
    ('medicine', 'Thuốc'),
)


@dataclass(frozen=True)
class CostSlice:
    category: str
    label: str
    value: Decimal


@dataclass(frozen=True)
class MonthlyProfit:
    year: int
    month: int
    profit: Decimal

    @property
    def label(self):
        return f'{self.month:02d}/{self.year}'


@dataclass
class FinancialSummary:
    total_profit: Decimal
    total_revenue: Decimal
    total_harvested_cost: Decimal
    current_investment: Decimal
    cost_breakdown: List[CostSlice] = field(default_factory=list)
    monthly_profit: List[MonthlyProfit] = field(default_factory=list)
    top_profit: list = field(default_factory=list)
    top_cost: list = field(default_factory=list)


def format_vnd(value):
    """25000 -> '25.000 VND'"""
    amount = int(Decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    return f"{amount:,} VND".replace(',', '.')


def _sum(values):
    return sum(values, Decimal('0'))


def total_profit(harvested):
    return _sum(h.profit for h in harvested)


def total_revenue(harvested):
    return _sum(h.revenue for h in harvested)


def total_harvested_cost(harvested):
    return _sum(h.total_cost for h in harvested)


def current_investment(cages):
    return _sum(c.costs.total for c in cages)


def cost_breakdown(harvested):
    """Per-category spend over harvested cages; empty categories are left out."""
    slices = []
    for category, label in COST_CATEGORIES:
        value = _sum(getattr(h.costs, category) for h in harvested)
        if value > 0:
            slices.append(CostSlice(category=category, label=label, value=value))
    return slices


def monthly_profit(harvested):
    totals = {}
    for h in harvested:
        key = (h.harvest_date.year, h.harvest_date.month)
        totals[key] = totals.get(key, Decimal('0')) + h.profit
    return [
        MonthlyProfit(year=year, month=month, profit=profit)
        for (year, month), profit in sorted(totals.items())
    ]


def top_by_profit(harvested, limit=TOP_N):
    return sorted(harvested, key=lambda h: h.profit, reverse=True)[:limit]


def top_by_cost(harvested, limit=TOP_N):
    return sorted(harvested, key=lambda h: h.total_cost, reverse=True)[:limit]


def summarize(cages, harvested):
    cages = list(cages)
    harvested = list(harvested)
    return FinancialSummary(
        total_profit=total_profit(harvested),
        total_revenue=total_revenue(harvested),
        total_harvested_cost=total_harvested_cost(harvested),
        current_investment=current_investment(cages),
        cost_breakdown=cost_breakdown(harvested),
        monthly_profit=monthly_profit(harvested),
        top_profit=top_by_profit(harvested),
        top_cost=top_by_cost(harvested),
    )
