"""
Advisor client: fallbacks, report cleanup, health schema validation and the
streamed chat with explicit sessions.
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests
from django.utils import timezone
from rest_framework import status

from advisor import client, prompts
from advisor.models import Conversation
from cages import lifecycle
from cages.models import Cage

HEALTHY = {
    'healthStatus': 'KHỎE MẠNH',
    'statusColor': 'green',
    'summary': 'Lồng phát triển tốt.',
    'keyObservations': [
        {'text': 'Tăng trưởng đều.', 'isPositive': True},
        {'text': 'Chi phí thức ăn cao.', 'isPositive': False},
    ],
    'recommendation': 'Duy trì chế độ cho ăn.',
}


@pytest.fixture(autouse=True)
def advisor_online(monkeypatch):
    monkeypatch.setattr(client, '_offline_until', None)
    monkeypatch.setitem(client.HEADERS, 'Authorization', 'Bearer test-key')
    monkeypatch.setattr(client.time, 'sleep', lambda seconds: None)


def completion(content):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = {'choices': [{'message': {'content': content}}]}
    return response


def stream(*lines):
    response = MagicMock()
    response.status_code = 200
    response.iter_lines.return_value = iter(lines)
    return response


def delta(text):
    return 'data: ' + json.dumps({'choices': [{'delta': {'content': text}}]})


def make_cage(cage_id='A01', weight=100):
    state = lifecycle.new_cage(cage_id, weight, 15000, now=timezone.now() - timedelta(days=10))
    return Cage.from_state(state)


# =============================================================================
# HEALTH ANALYSIS
# =============================================================================

class TestAnalyzeHealth:

    @patch('advisor.client.requests.post')
    def test_structured_report(self, mock_post):
        mock_post.return_value = completion(json.dumps(HEALTHY, ensure_ascii=False))

        report = client.analyze_health(make_cage())

        assert report.status == 'KHỎE MẠNH'
        assert report.status_color == 'green'
        assert report.observations[0] == client.Observation('Tăng trưởng đều.', True)
        payload = mock_post.call_args.kwargs['json']
        assert payload['response_format']['json_schema']['schema'] == client.HEALTH_SCHEMA
        assert 'ID Lồng: A01' in payload['messages'][0]['content']

    @patch('advisor.client.requests.post')
    def test_fenced_json_accepted(self, mock_post):
        mock_post.return_value = completion('```json\n' + json.dumps(HEALTHY) + '\n```')
        assert client.analyze_health(make_cage()).status == 'KHỎE MẠNH'

    @pytest.mark.parametrize('content', [
        'Lồng này khỏe mạnh.',
        json.dumps({**HEALTHY, 'healthStatus': 'TỐT'}),
        json.dumps({**HEALTHY, 'statusColor': 'blue'}),
        json.dumps({**HEALTHY, 'keyObservations': [{'text': 'x'}]}),
        json.dumps({key: value for key, value in HEALTHY.items() if key != 'summary'}),
        json.dumps([HEALTHY]),
    ])
    @patch('advisor.client.requests.post')
    def test_malformed_output_falls_back(self, mock_post, content):
        mock_post.return_value = completion(content)
        assert client.analyze_health(make_cage()) == client.HEALTH_FALLBACK

    @pytest.mark.parametrize('body', [
        {'choices': ['oops']},
        {'choices': [{'message': 'oops'}]},
        {'choices': [{'message': ['oops']}]},
        ['oops'],
    ])
    @patch('advisor.client.requests.post')
    def test_unexpected_body_falls_back(self, mock_post, body):
        response = completion('')
        response.json.return_value = body
        mock_post.return_value = response
        assert client.analyze_health(make_cage()) == client.HEALTH_FALLBACK

    @patch('advisor.client.requests.post')
    def test_network_error_falls_back_and_backs_off(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('unreachable')

        assert client.analyze_health(make_cage()) == client.HEALTH_FALLBACK
        assert client._offline_until is not None

        assert client.analyze_health(make_cage()) == client.HEALTH_FALLBACK
        assert mock_post.call_count == 1

    @patch('advisor.client.requests.post')
    def test_offline_window_expires(self, mock_post):
        client._offline_until = timezone.now() - timedelta(seconds=1)
        mock_post.return_value = completion(json.dumps(HEALTHY))
        assert client.analyze_health(make_cage()).status == 'KHỎE MẠNH'

    @patch('advisor.client.requests.post')
    def test_missing_api_key(self, mock_post, monkeypatch):
        monkeypatch.delitem(client.HEADERS, 'Authorization')
        assert client.analyze_health(make_cage()) == client.HEALTH_FALLBACK
        mock_post.assert_not_called()

    @patch('advisor.client.requests.post')
    def test_retries_on_busy_status(self, mock_post):
        busy = MagicMock(status_code=503)
        mock_post.side_effect = [busy, completion(json.dumps(HEALTHY))]

        assert client.analyze_health(make_cage()).status == 'KHỎE MẠNH'
        assert mock_post.call_count == 2
        busy.close.assert_called_once()

    @patch('advisor.client.requests.post')
    def test_exhausted_retries_back_off(self, mock_post):
        mock_post.return_value = MagicMock(status_code=503)

        assert client.analyze_health(make_cage()) == client.HEALTH_FALLBACK
        assert mock_post.call_count == client.MAX_ATTEMPTS
        assert client._offline_until is not None

        assert client.analyze_health(make_cage()) == client.HEALTH_FALLBACK
        assert mock_post.call_count == client.MAX_ATTEMPTS

    def test_fallback_shape(self):
        data = client.HEALTH_FALLBACK.to_dict()
        assert data['health_status'] == 'NGUY CƠ CAO'
        assert data['status_color'] == 'red'
        assert data['summary'] == 'Không thể thực hiện phân tích AI.'
        assert len(data['key_observations']) == 2
        assert all(o['is_positive'] is False for o in data['key_observations'])


# =============================================================================
# REPORTS
# =============================================================================

class TestGenerateReport:

    @patch('advisor.client.requests.post')
    def test_code_fences_removed(self, mock_post):
        mock_post.return_value = completion('```html\n<h3>Tổng quan</h3>\n```')

        report = client.generate_report('overview', [make_cage()], [])

        assert report == client.AdvisorReport('Báo cáo Tổng quan', '<h3>Tổng quan</h3>')

    @patch('advisor.client.requests.post')
    def test_failure_returns_apology(self, mock_post):
        mock_post.side_effect = requests.Timeout()
        report = client.generate_report('profit', [], [])
        assert report.title == 'Báo cáo Lợi nhuận'
        assert report.html_content == client.REPORT_FALLBACK_HTML

    def test_unknown_type(self):
        with pytest.raises(KeyError):
            client.generate_report('weather', [], [])

    @pytest.mark.parametrize('report_type', prompts.REPORT_TYPES)
    def test_every_prompt_builds(self, report_type):
        title, prompt = prompts.report_prompt(report_type, [make_cage('A01', 300)], [])
        assert title == prompts.REPORT_TITLES[report_type]
        assert prompt

    def test_cage_summary(self):
        summary = prompts.cage_summaries([make_cage('A01', 100)])[0]
        assert summary['id'] == 'A01'
        assert summary['farmingDays'] == 10
        assert summary['growthRate'] == '0.00'
        assert summary['totalCost'] == 15000


# =============================================================================
# CHAT
# =============================================================================

class TestStreamChat:

    def session(self):
        return client.start_conversation([make_cage()], [])

    @patch('advisor.client.requests.post')
    def test_streams_chunks_and_records_turn(self, mock_post):
        response = stream(': keep-alive', delta('Xin '), '', delta('chào'), 'data: [DONE]')
        mock_post.return_value = response
        session = self.session()

        chunks = list(client.stream_chat(session, 'Lồng nào tốt nhất?'))

        assert chunks == ['Xin ', 'chào']
        assert session.messages == [
            {'role': 'user', 'content': 'Lồng nào tốt nhất?'},
            {'role': 'assistant', 'content': 'Xin chào'},
        ]
        response.close.assert_called_once()
        payload = mock_post.call_args.kwargs['json']
        assert payload['stream'] is True
        assert payload['messages'][0] == {'role': 'system', 'content': session.system_instruction}
        assert mock_post.call_args.kwargs['stream'] is True

    @patch('advisor.client.requests.post')
    def test_context_carries_to_next_turn(self, mock_post):
        session = self.session()
        mock_post.return_value = stream(delta('Một'))
        list(client.stream_chat(session, 'câu hỏi 1'))
        mock_post.return_value = stream(delta('Hai'))
        list(client.stream_chat(session, 'câu hỏi 2'))

        roles = [m['role'] for m in mock_post.call_args.kwargs['json']['messages']]
        assert roles == ['system', 'user', 'assistant', 'user']

    @patch('advisor.client.requests.post')
    def test_early_close_releases_connection(self, mock_post):
        response = stream(delta('Xin '), delta('chào'))
        mock_post.return_value = response
        session = self.session()

        chunks = client.stream_chat(session, 'hỏi')
        assert next(chunks) == 'Xin '
        chunks.close()

        response.close.assert_called_once()
        assert session.messages == []

    @patch('advisor.client.requests.post')
    def test_connection_failure_yields_apology(self, mock_post):
        mock_post.side_effect = requests.ConnectionError()
        session = self.session()
        assert list(client.stream_chat(session, 'hỏi')) == [client.CHAT_FALLBACK]
        assert session.messages == []

    @pytest.mark.parametrize('bad_line', [
        'data: {not json',
        'data: ["x"]',
        'data: {"choices": ["x"]}',
        'data: {"choices": [{"delta": "x"}]}',
    ])
    @patch('advisor.client.requests.post')
    def test_broken_stream_yields_apology(self, mock_post, bad_line):
        response = stream(delta('Xin '), bad_line)
        mock_post.return_value = response
        session = self.session()

        assert list(client.stream_chat(session, 'hỏi')) == ['Xin ', client.CHAT_FALLBACK]
        assert session.messages == []
        response.close.assert_called_once()

    def test_system_instruction_has_farm_data(self):
        instruction = prompts.chat_system_instruction([make_cage('A01')], [])
        assert '"id": "A01"' in instruction
        assert 'VND' in instruction


# =============================================================================
# API
# =============================================================================

@pytest.mark.django_db
class TestAdvisorApi:

    @pytest.fixture
    def cage(self):
        return Cage.objects.create(
            cage_id='A01', start_date=timezone.now(), initial_weight=100, current_weight=100,
            progress=20, seed_cost=15000,
        )

    @patch('advisor.client.requests.post')
    def test_health(self, mock_post, auth_client, cage):
        mock_post.return_value = completion(json.dumps(HEALTHY))
        response = auth_client.get('/api/advisor/health/A01/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['cage_id'] == 'A01'
        assert response.data['health_status'] == 'KHỎE MẠNH'

    @patch('advisor.client.requests.post')
    def test_health_fallback(self, mock_post, auth_client, cage):
        mock_post.return_value = completion('not json')
        response = auth_client.get('/api/advisor/health/A01/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['health_status'] == 'NGUY CƠ CAO'

    def test_health_missing_cage(self, auth_client):
        assert auth_client.get('/api/advisor/health/ZZZ/').status_code == status.HTTP_404_NOT_FOUND

    @patch('advisor.client.requests.post')
    def test_report(self, mock_post, auth_client, cage):
        mock_post.return_value = completion('<p>ok</p>')
        response = auth_client.get('/api/advisor/reports/harvest-ready/')
        assert response.data == {
            'type': 'harvest-ready',
            'title': 'Báo cáo Lồng Sẵn sàng Thu hoạch',
            'html_content': '<p>ok</p>',
        }

    def test_unknown_report(self, auth_client):
        assert auth_client.get('/api/advisor/reports/weather/').status_code == status.HTTP_404_NOT_FOUND

    @patch('advisor.client.requests.post')
    def test_chat_conversation(self, mock_post, auth_client, user, cage):
        response = auth_client.post('/api/advisor/chat/')
        assert response.status_code == status.HTTP_201_CREATED
        conversation = Conversation.objects.get(pk=response.data['id'])
        assert conversation.created_by == user
        assert '"id": "A01"' in conversation.system_instruction

        mock_post.return_value = stream(delta('Lồng '), delta('A01.'))
        response = auth_client.post(
            f'/api/advisor/chat/{conversation.id}/messages/', {'message': 'Lồng nào?'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert b''.join(response.streaming_content).decode('utf-8') == 'Lồng A01.'
        conversation.refresh_from_db()
        assert [m['role'] for m in conversation.messages] == ['user', 'assistant']

    def test_chat_requires_message(self, auth_client, user):
        conversation = Conversation.objects.create(system_instruction='x', created_by=user)
        response = auth_client.post(f'/api/advisor/chat/{conversation.id}/messages/', {}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_other_users_conversation(self, auth_client, django_user_model):
        other = django_user_model.objects.create_user(username='o@example.com', email='o@example.com', password='x')
        conversation = Conversation.objects.create(system_instruction='x', created_by=other)
        response = auth_client.post(
            f'/api/advisor/chat/{conversation.id}/messages/', {'message': 'hi'}, format='json')
        assert response.status_code == status.HTTP_404_NOT_FOUND
