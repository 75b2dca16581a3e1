"""
Vietnamese prompts for the farm advisor.

Builders take the ORM rows (``Cage`` / ``HarvestedCage``) or anything with the
same attributes and return plain strings ready to send to the model.
"""

import json
from decimal import Decimal

from django.utils import timezone

from cages import lifecycle
from cages.finance import format_vnd

REPORT_OVERVIEW = 'overview'
REPORT_PERFORMANCE = 'performance'
REPORT_HARVEST_READY = 'harvest-ready'
REPORT_PROFIT = 'profit'
REPORT_INVENTORY = 'inventory'

REPORT_TITLES = {
    REPORT_OVERVIEW: 'Báo cáo Tổng quan',
    REPORT_PERFORMANCE: 'Báo cáo Hiệu suất',
    REPORT_HARVEST_READY: 'Báo cáo Lồng Sẵn sàng Thu hoạch',
    REPORT_PROFIT: 'Báo cáo Lợi nhuận',
    REPORT_INVENTORY: 'Báo cáo Quản lý Kho (Mô phỏng)',
}

REPORT_TYPES = tuple(REPORT_TITLES)

TABLE_CLASSES = (
    'sử dụng class của Tailwind CSS: "w-full text-sm text-left text-gray-500", '
    'thead với "text-xs text-gray-700 uppercase bg-gray-50", và tbody rows với "bg-white border-b"'
)

# Assumed unit prices for the simulated inventory report
FEED_PRICE_PER_KG = 50000
MEDICINE_PRICE_PER_BOTTLE = 200000


def _number(value):
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _dumps(data):
    return json.dumps(data, ensure_ascii=False)


def _vi_date(value):
    value = timezone.localtime(value) if timezone.is_aware(value) else value
    return f'{value.day}/{value.month}/{value.year}'


def cage_summaries(cages, now=None):
    now = now or timezone.now()
    summaries = []
    for cage in cages:
        days = lifecycle.compute_farming_days(cage.start_date, now)
        summaries.append({
            'id': cage.cage_id,
            'currentWeight': cage.current_weight,
            'farmingDays': days,
            'growthRate': f'{(cage.current_weight - cage.initial_weight) / days:.2f}',
            'totalCost': _number(cage.costs.total),
            'progress': cage.progress,
            'deadCrabCount': cage.dead_crab_count,
        })
    return summaries


def harvest_summaries(harvests):
    return [{
        'id': record.cage_id,
        'finalWeight': record.final_weight,
        'profit': _number(record.profit),
        'revenue': _number(record.revenue),
        'totalCost': _number(record.costs.total),
    } for record in harvests]


def chat_system_instruction(cages, harvests, now=None):
    return (
        "Bạn là 'Cố vấn AI Thịnh Ý', trợ lý quản lý chủ động và toàn diện cho một trang trại nuôi cua. "
        "Luôn trả lời bằng tiếng Việt.\n"
        "Sử dụng dữ liệu trang trại được cung cấp để trả lời câu hỏi. Trả lời ngắn gọn, sâu sắc và hữu ích.\n"
        "QUAN TRỌNG: Định dạng câu trả lời bằng Markdown. Dùng bảng để so sánh (ví dụ: top 3 lồng), "
        "gạch đầu dòng cho danh sách và chữ đậm để nhấn mạnh. Mọi giá trị tiền tệ (chi phí, doanh thu, lợi nhuận) "
        "phải dùng dấu chấm phân cách hàng nghìn và thêm hậu tố 'VND' (ví dụ: 25.000 VND).\n"
        "Dữ liệu trang trại hiện tại:\n"
        f"- Lồng đang nuôi: {_dumps(cage_summaries(cages, now))}\n"
        f"- Lồng đã thu hoạch: {_dumps(harvest_summaries(harvests))}"
    )


def health_prompt(cage):
    recent_growth = ', '.join(str(weight) for weight in list(cage.growth_history)[-5:])
    return (
        "Phân tích sức khỏe của lồng cua dựa trên dữ liệu sau đây và trả về một đối tượng JSON.\n"
        "Dữ liệu:\n"
        f"- ID Lồng: {cage.cage_id}\n"
        f"- Ngày bắt đầu nuôi: {_vi_date(cage.start_date)}\n"
        f"- Trọng lượng ban đầu: {cage.initial_weight}g\n"
        f"- Trọng lượng hiện tại: {cage.current_weight}g\n"
        f"- Số cua chết: {cage.dead_crab_count}\n"
        f"- Tổng chi phí: {format_vnd(cage.costs.total)}\n"
        f"- Lịch sử tăng trưởng gần nhất: {recent_growth}g\n"
        f"- Cảnh báo AI có sẵn: {'Có' if cage.ai_alert else 'Không'}\n\n"
        "Hãy tuân thủ nghiêm ngặt schema JSON sau."
    )


def _overview_prompt(cages, harvests, now):
    active = len(cages)
    average_weight = sum(c.current_weight for c in cages) / (active or 1)
    total_profit = sum((h.profit for h in harvests), Decimal('0'))
    active_cost = sum((c.costs.total for c in cages), Decimal('0'))
    return (
        "Tạo một báo cáo tổng quan chi tiết bằng tiếng Việt về trang trại cua với dữ liệu sau.\n"
        "Trình bày kết quả dưới dạng HTML. Bắt đầu bằng một đoạn văn tóm tắt ngắn (2-3 câu) về tình hình chung của trang trại.\n"
        f"Sau đó, tạo một bảng ({TABLE_CLASSES}) để hiển thị các chỉ số quan trọng.\n"
        'Bảng nên có hai cột: "Chỉ số" và "Giá trị".\n\n'
        "Dữ liệu để tạo báo cáo:\n"
        f"- Tổng số lồng đang nuôi: {active}\n"
        f"- Tổng số lồng đã thu hoạch: {len(harvests)}\n"
        f"- Trọng lượng trung bình (đang nuôi): {average_weight:.2f}g\n"
        f"- Tổng lợi nhuận (đã thu hoạch): {format_vnd(total_profit)}\n"
        f"- Tổng chi phí (đang nuôi): {format_vnd(active_cost)}\n"
        f"- Số lồng có cảnh báo AI: {sum(1 for c in cages if c.ai_alert)}\n"
        f"- Tổng số cua chết đã ghi nhận: {sum(c.dead_crab_count for c in cages)}\n\n"
        'Cuối cùng, dựa trên các số liệu trên, đặc biệt là số cua chết và cảnh báo AI, tạo một div với class '
        '"mt-4 p-3 bg-blue-50 rounded-lg" và đưa ra một "Đề xuất AI" ngắn gọn (1-2 câu) với tiêu đề h3 để cải thiện hoạt động.'
    )


def _performance_prompt(cages, harvests, now):
    return (
        "Phân tích hiệu suất tăng trưởng của các lồng cua. Dưới đây là dữ liệu tóm tắt của tất cả các lồng đang nuôi.\n"
        f"Dữ liệu: {_dumps(cage_summaries(cages, now))}\n"
        "Hãy xác định 3 lồng có tốc độ tăng trưởng (growthRate) cao nhất và 3 lồng thấp nhất.\n"
        "Trình bày kết quả dưới dạng HTML với tiêu đề rõ ràng cho mỗi nhóm và một bảng đơn giản (sử dụng class của Tailwind CSS) "
        "cho mỗi nhóm, hiển thị ID lồng, trọng lượng hiện tại, tốc độ tăng trưởng (g/ngày) và số cua chết. "
        "Cuối cùng, đưa ra một nhận xét ngắn gọn về nguyên nhân có thể gây ra sự khác biệt, có tính đến cả số cua chết."
    )


def _harvest_ready_prompt(cages, harvests, now):
    return (
        "Dựa trên dữ liệu lồng cua, xác định các lồng đã sẵn sàng hoặc sắp sẵn sàng để thu hoạch. "
        f"Mục tiêu thu hoạch là {lifecycle.TARGET_WEIGHT}g.\n"
        f"Dữ liệu: {_dumps(cage_summaries(cages, now))}\n"
        "Hãy liệt kê các lồng có tiến độ (progress) từ 90% trở lên.\n"
        "Trình bày kết quả dưới dạng HTML, sử dụng bảng (với class của Tailwind CSS) với các cột: ID Lồng, "
        "Trọng lượng hiện tại, Tiến độ (%), và một nhận xét ngắn về việc chuẩn bị thu hoạch. Nếu không có lồng nào, hãy thông báo."
    )


def _profit_prompt(cages, harvests, now):
    return (
        "Phân tích lợi nhuận từ các lồng đã thu hoạch.\n"
        f"Dữ liệu: {_dumps(harvest_summaries(harvests))}\n"
        "Hãy tính tổng doanh thu, tổng chi phí và tổng lợi nhuận.\n"
        "Trình bày kết quả dưới dạng HTML. Bắt đầu với các thẻ div hiển thị các con số tổng quan. "
        "Sau đó, hiển thị một bảng (sử dụng class của Tailwind CSS) chi tiết từng lồng đã thu hoạch với các cột: "
        "ID Lồng, Doanh thu, Chi phí, Lợi nhuận. Cuối cùng, đưa ra một phân tích ngắn gọn về tình hình lợi nhuận."
    )


def _inventory_prompt(cages, harvests, now):
    feed_cost = sum((c.costs.feed for c in cages), Decimal('0'))
    medicine_cost = sum((c.costs.medicine for c in cages), Decimal('0'))
    return (
        "Tạo một báo cáo mô phỏng về quản lý kho vật tư (thức ăn, thuốc) bằng tiếng Việt.\n"
        "Dựa trên tổng chi phí thức ăn và thuốc từ tất cả lồng đang nuôi và đã thu hoạch.\n"
        f"- Tổng chi phí thức ăn (đang nuôi): {format_vnd(feed_cost)}\n"
        f"- Tổng chi phí thuốc (đang nuôi): {format_vnd(medicine_cost)}\n"
        "Hãy ước tính lượng tiêu thụ và đề xuất kế hoạch nhập kho cho tháng tới. "
        f"Giả định giá thức ăn là {format_vnd(FEED_PRICE_PER_KG)}/kg và thuốc là {format_vnd(MEDICINE_PRICE_PER_BOTTLE)}/lọ.\n"
        "Trình bày dưới dạng HTML với các đề mục rõ ràng."
    )


REPORT_PROMPTS = {
    REPORT_OVERVIEW: _overview_prompt,
    REPORT_PERFORMANCE: _performance_prompt,
    REPORT_HARVEST_READY: _harvest_ready_prompt,
    REPORT_PROFIT: _profit_prompt,
    REPORT_INVENTORY: _inventory_prompt,
}


def report_prompt(report_type, cages, harvests, now=None):
    """Return ``(title, prompt)``; unknown report types raise ``KeyError``."""
    builder = REPORT_PROMPTS[report_type]
    return REPORT_TITLES[report_type], builder(list(cages), list(harvests), now or timezone.now())
