"""PDF exports of the harvest ledger and the active cages."""

from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from . import lifecycle
from .finance import format_vnd

REPORT_TYPES = ('harvest', 'cages')

FARM_NAME = 'Thinh Y Crab Farm'

HEADER_STYLE = [
    ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
    ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('FONTSIZE', (0, 0), (-1, 0), 11),
    ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
    ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
    ('GRID', (0, 0), (-1, -1), 1, colors.black),
]


def _table(rows, col_widths):
    table = Table(rows, colWidths=col_widths)
    table.setStyle(TableStyle(HEADER_STYLE))
    return table


def _build(title, story_parts):
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=title)
    styles = getSampleStyleSheet()
    story = [Paragraph(title, styles['Title']), Spacer(1, 12)]
    for part in story_parts:
        if isinstance(part, str):
            story.append(Paragraph(part, styles['Normal']))
        else:
            story.append(part)
        story.append(Spacer(1, 16))
    doc.build(story)
    return buffer.getvalue()


def build_harvest_report(harvested, summary):
    """Summary of all harvests plus one row per harvested cage."""
    summary_rows = [
        ['Metric', 'Value'],
        ['Harvested cages', str(len(harvested))],
        ['Total revenue', format_vnd(summary.total_revenue)],
        ['Total cost', format_vnd(summary.total_harvested_cost)],
        ['Total profit', format_vnd(summary.total_profit)],
        ['Active investment', format_vnd(summary.current_investment)],
    ]
    parts = [_table(summary_rows, [200, 200])]

    if harvested:
        rows = [['Cage', 'Harvest date', 'Weight (g)', 'Revenue', 'Cost', 'Profit']]
        for record in harvested:
            rows.append([
                record.cage_id,
                record.harvest_date.strftime('%d/%m/%Y'),
                str(record.final_weight),
                format_vnd(record.revenue),
                format_vnd(record.total_cost),
                format_vnd(record.profit),
            ])
        parts.append(_table(rows, [50, 80, 70, 95, 95, 95]))
    else:
        parts.append('No cages have been harvested yet.')

    if summary.monthly_profit:
        rows = [['Month', 'Profit']]
        rows.extend([month.label, format_vnd(month.profit)] for month in summary.monthly_profit)
        parts.append(_table(rows, [120, 160]))

    return _build(f'{FARM_NAME} - Harvest Report', parts)


def build_cage_report(cages, now):
    """Active cages with their farming stage, weight and spend."""
    rows = [['Cage', 'Days', 'Stage', 'Weight (g)', 'Progress', 'Dead', 'Total cost']]
    for cage in cages:
        days = cage.farming_days(now)
        rows.append([
            cage.cage_id,
            str(days),
            lifecycle.classify_farming_days(days).value,
            str(cage.current_weight),
            f'{cage.progress}%',
            str(cage.dead_crab_count),
            format_vnd(cage.total_cost),
        ])
    parts = [_table(rows, [50, 45, 65, 70, 60, 45, 110])]
    if len(rows) == 1:
        parts.append('No active cages.')
    return _build(f'{FARM_NAME} - Active Cages ({now:%d/%m/%Y})', parts)
