from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List

import requests
from django.conf import settings
from django.utils import timezone

from . import prompts

logger = logging.getLogger(__name__)

DEFAULT_MODEL = getattr(settings, "ADVISOR_MODEL", "google/gemini-2.5-flash")
BASE_URL = getattr(settings, "ADVISOR_BASE_URL", "https://openrouter.ai/api/v1")
TIMEOUT_SECONDS = getattr(settings, "ADVISOR_TIMEOUT_SECONDS", 30)
MAX_ATTEMPTS = 3
RETRY_STATUS = {429, 500, 502, 503, 504}
API_KEY = getattr(settings, "ADVISOR_API_KEY", "").strip()
HEADERS = {"Content-Type": "application/json"}
if API_KEY:
    HEADERS["Authorization"] = f"Bearer {API_KEY}"
try:
    FAILURE_BACKOFF_SECONDS = int(
        getattr(settings, "ADVISOR_FAILURE_BACKOFF_SECONDS", 300))
except (TypeError, ValueError):
    FAILURE_BACKOFF_SECONDS = 300
_offline_until: datetime | None = None

CHAT_FALLBACK = "Xin lỗi, đã có lỗi xảy ra khi kết nối với AI. Vui lòng thử lại sau."
REPORT_FALLBACK_HTML = '<p class="text-red-500">Đã xảy ra lỗi khi tạo báo cáo. Vui lòng thử lại.</p>'

HEALTH_STATUSES = ("KHỎE MẠNH", "CẦN CHÚ Ý", "NGUY CƠ CAO")
HEALTH_COLORS = ("green", "yellow", "red")

HEALTH_SCHEMA = {
    "type": "object",
    "properties": {
        "healthStatus": {"type": "string", "enum": list(HEALTH_STATUSES),
                         "description": "Tình trạng sức khỏe tổng quát."},
        "statusColor": {"type": "string", "enum": list(HEALTH_COLORS),
                        "description": "Màu tương ứng với trạng thái."},
        "summary": {"type": "string", "description": "Một câu tóm tắt ngắn gọn tình hình."},
        "keyObservations": {
            "type": "array",
            "description": "Liệt kê các quan sát chính, cả tốt và xấu.",
            "items": {
                "type": "object",
                "properties": {
                    "text": {"type": "string", "description": "Nội dung quan sát."},
                    "isPositive": {"type": "boolean", "description": "Quan sát này là tích cực hay tiêu cực."},
                },
                "required": ["text", "isPositive"],
            },
        },
        "recommendation": {"type": "string", "description": "Một đề xuất hành động cụ thể."},
    },
    "required": ["healthStatus", "statusColor", "summary", "keyObservations", "recommendation"],
}


class AdvisoryServiceError(Exception):
    """The advisory service failed or answered with something unusable."""


@dataclass
class ChatSession:
    """Conversation context: the farm snapshot prompt plus the turns so far."""
    system_instruction: str
    messages: List[Dict[str, str]] = field(default_factory=list)

    def request_messages(self, query: str) -> List[Dict[str, str]]:
        return (
            [{"role": "system", "content": self.system_instruction}]
            + list(self.messages)
            + [{"role": "user", "content": query}]
        )

    def add_turn(self, query: str, reply: str) -> None:
        self.messages.append({"role": "user", "content": query})
        self.messages.append({"role": "assistant", "content": reply})


@dataclass(frozen=True)
class Observation:
    text: str
    is_positive: bool


@dataclass(frozen=True)
class HealthReport:
    status: str
    status_color: str
    summary: str
    observations: tuple
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "health_status": self.status,
            "status_color": self.status_color,
            "summary": self.summary,
            "key_observations": [
                {"text": o.text, "is_positive": o.is_positive} for o in self.observations
            ],
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class AdvisorReport:
    title: str
    html_content: str


HEALTH_FALLBACK = HealthReport(
    status="NGUY CƠ CAO",
    status_color="red",
    summary="Không thể thực hiện phân tích AI.",
    observations=(
        Observation("Đã xảy ra lỗi khi kết nối với máy chủ AI.", False),
        Observation("Vui lòng kiểm tra lại kết nối mạng hoặc thử lại sau.", False),
    ),
    recommendation="Nếu sự cố tiếp diễn, vui lòng liên hệ với bộ phận hỗ trợ kỹ thuật.",
)


def _mark_offline(reason: str) -> None:
    global _offline_until
    _offline_until = timezone.now() + timedelta(seconds=max(5, FAILURE_BACKOFF_SECONDS))
    logger.warning(
        "Advisor temporarily marked offline (%s); will retry after %ss.",
        reason,
        FAILURE_BACKOFF_SECONDS,
    )


def _should_short_circuit() -> bool:
    global _offline_until
    if _offline_until is None:
        return False
    now = timezone.now()
    if now >= _offline_until:
        _offline_until = None
        return False
    return True


def _post(payload: Dict[str, Any], stream: bool = False) -> requests.Response:
    """POST to chat completions with retries; raise ``AdvisoryServiceError`` on failure."""
    if not HEADERS.get("Authorization"):
        raise AdvisoryServiceError("missing_api_key")
    if _should_short_circuit():
        raise AdvisoryServiceError("offline")

    payload = {"model": DEFAULT_MODEL, **payload}
    url = f"{BASE_URL}/chat/completions"
    attempts = 0
    while attempts < MAX_ATTEMPTS:
        attempts += 1
        try:
            response = requests.post(
                url, headers=HEADERS, json=payload, timeout=TIMEOUT_SECONDS, stream=stream)
            if response.status_code in RETRY_STATUS:
                delay = 1.5 * attempts
                logger.warning(
                    "Advisor returned %s; retrying in %.1fs", response.status_code, delay)
                response.close()
                time.sleep(delay)
                continue
            response.raise_for_status()
            return response
        except requests.RequestException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            if status in {401, 403}:
                logger.error("Advisor authorization failed (status %s).", status)
                _mark_offline(f"auth_{status}")
            elif status:
                logger.error("Advisor request failed with status %s.", status)
                _mark_offline(f"status_{status}")
            else:
                logger.error("Advisor network error: %s", exc)
                _mark_offline("network_error")
            raise AdvisoryServiceError(str(exc)) from exc

    _mark_offline("retries_exhausted")
    raise AdvisoryServiceError("retries_exhausted")


def _completion_text(payload: Dict[str, Any]) -> str:
    response = _post(payload)
    try:
        data = response.json()
    except ValueError as exc:
        raise AdvisoryServiceError("invalid_json_body") from exc
    if not isinstance(data, dict):
        raise AdvisoryServiceError("unexpected_body")
    choices = data.get("choices")
    if not choices or not isinstance(choices, list):
        logger.error("Advisor response missing 'choices': %s", data)
        _mark_offline("missing_choices")
        raise AdvisoryServiceError(str(data.get("error") or "missing_choices"))
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        logger.error("Advisor response has an unexpected shape: %s", data)
        raise AdvisoryServiceError("unexpected_body")
    content = message.get("content")
    if not isinstance(content, str):
        logger.error("Advisor response missing message content: %s", data)
        raise AdvisoryServiceError("missing_message_content")
    return content.strip()


def strip_code_fences(text: str) -> str:
    return text.replace("```html", "").replace("```json", "").replace("```", "").strip()


def parse_health_report(text: str) -> HealthReport:
    """Validate a JSON health analysis against ``HEALTH_SCHEMA``."""
    try:
        data = json.loads(strip_code_fences(text))
    except ValueError as exc:
        raise AdvisoryServiceError("health report is not JSON") from exc
    if not isinstance(data, dict):
        raise AdvisoryServiceError("health report is not an object")

    status = data.get("healthStatus")
    color = data.get("statusColor")
    summary = data.get("summary")
    recommendation = data.get("recommendation")
    raw_observations = data.get("keyObservations")
    if status not in HEALTH_STATUSES or color not in HEALTH_COLORS:
        raise AdvisoryServiceError(f"unexpected status {status!r}/{color!r}")
    if not isinstance(summary, str) or not isinstance(recommendation, str):
        raise AdvisoryServiceError("summary and recommendation must be strings")
    if not isinstance(raw_observations, list):
        raise AdvisoryServiceError("keyObservations must be a list")

    observations = []
    for item in raw_observations:
        if not isinstance(item, dict) or not isinstance(item.get("text"), str) \
                or not isinstance(item.get("isPositive"), bool):
            raise AdvisoryServiceError(f"malformed observation: {item!r}")
        observations.append(Observation(item["text"], item["isPositive"]))

    return HealthReport(status, color, summary, tuple(observations), recommendation)


def analyze_health(cage) -> HealthReport:
    """Structured health check of one cage; never raises."""
    payload = {
        "messages": [{"role": "user", "content": prompts.health_prompt(cage)}],
        "response_format": {
            "type": "json_schema",
            "json_schema": {"name": "health_report", "strict": True, "schema": HEALTH_SCHEMA},
        },
    }
    try:
        return parse_health_report(_completion_text(payload))
    except AdvisoryServiceError as exc:
        logger.warning("Health analysis for cage %s failed (%s); using fallback.", cage.cage_id, exc)
        return HEALTH_FALLBACK


def generate_report(report_type: str, cages, harvests, now=None) -> AdvisorReport:
    """HTML report of the given type; unknown types raise ``KeyError``."""
    title, prompt = prompts.report_prompt(report_type, cages, harvests, now)
    try:
        text = _completion_text({"messages": [{"role": "user", "content": prompt}]})
    except AdvisoryServiceError as exc:
        logger.warning("Report %s failed (%s); using fallback.", report_type, exc)
        return AdvisorReport(title, REPORT_FALLBACK_HTML)
    return AdvisorReport(title, strip_code_fences(text))


def start_conversation(cages, harvests, now=None) -> ChatSession:
    return ChatSession(system_instruction=prompts.chat_system_instruction(cages, harvests, now))


def _iter_stream_text(response: requests.Response) -> Iterator[str]:
    """Text deltas from a server-sent-events completion stream."""
    response.encoding = "utf-8"
    for line in response.iter_lines(decode_unicode=True):
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if not line or not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            return
        try:
            event = json.loads(data)
        except ValueError as exc:
            raise AdvisoryServiceError("malformed stream event") from exc
        if not isinstance(event, dict):
            raise AdvisoryServiceError("unexpected_body")
        if event.get("error"):
            raise AdvisoryServiceError(str(event["error"]))
        choices = event.get("choices") or []
        if not choices:
            continue
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise AdvisoryServiceError("unexpected_body")
        delta = choices[0].get("delta") or {}
        if not isinstance(delta, dict):
            raise AdvisoryServiceError("unexpected_body")
        content = delta.get("content")
        if isinstance(content, str) and content:
            yield content


def stream_chat(session: ChatSession, query: str) -> Iterator[str]:
    """Yield the reply to ``query`` chunk by chunk.

    The turn is added to ``session`` only when the stream completes. Closing
    the generator early releases the HTTP connection and records nothing.
    """
    try:
        response = _post({"messages": session.request_messages(query), "stream": True}, stream=True)
    except AdvisoryServiceError as exc:
        logger.warning("Chat request failed (%s); sending apology.", exc)
        yield CHAT_FALLBACK
        return

    chunks: List[str] = []
    failed = False
    try:
        for chunk in _iter_stream_text(response):
            chunks.append(chunk)
            yield chunk
    except (requests.RequestException, AdvisoryServiceError) as exc:
        logger.error("Chat stream interrupted: %s", exc)
        failed = True
    finally:
        response.close()

    if failed:
        yield CHAT_FALLBACK
    elif chunks:
        session.add_turn(query, "".join(chunks))
