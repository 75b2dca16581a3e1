from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from cages import services
from cages.models import Cage, Notification

pytestmark = pytest.mark.django_db


@pytest.fixture
def ready_cages():
    services.add_cage('A01', 490, 10000)
    services.add_cage('B02', 100, 10000)
    Cage.objects.filter(pk='B02').update(ai_alert=True)


def test_list_newest_first(auth_client, ready_cages):
    Notification.objects.filter(cage_id='A01').update(timestamp=timezone.now() - timedelta(minutes=5))
    services.sync_notifications()

    response = auth_client.get('/api/notifications/')

    assert response.status_code == status.HTTP_200_OK
    assert [(n['cage_id'], n['notification_type']) for n in response.data] == [
        ('B02', 'alert'),
        ('A01', 'harvest'),
    ]
    assert response.data[1]['time_ago'] == '5 phút trước'
    assert response.data[0]['read'] is False


def test_derive_is_idempotent(auth_client, ready_cages):
    first = auth_client.post('/api/notifications/derive/')
    second = auth_client.post('/api/notifications/derive/')

    assert first.status_code == status.HTTP_201_CREATED
    assert [n['notification_type'] for n in first.data] == ['alert']
    assert second.status_code == status.HTTP_200_OK
    assert second.data == []
    assert Notification.objects.count() == 2


def test_message_templates(ready_cages):
    services.sync_notifications()
    harvest = Notification.objects.get(cage_id='A01')
    alert = Notification.objects.get(cage_id='B02')
    assert harvest.message == 'Lồng A01 đã đạt 98% trọng lượng mục tiêu, sẵn sàng thu hoạch.'
    assert alert.message.startswith('Lồng B02')


def test_unread_count_and_mark_all_read(auth_client, ready_cages):
    services.sync_notifications()
    assert auth_client.get('/api/notifications/unread-count/').data == {'unread_count': 2}

    response = auth_client.post('/api/notifications/mark-all-read/')

    assert response.data == {'marked_read': 2}
    assert auth_client.get('/api/notifications/unread-count/').data == {'unread_count': 0}
    assert auth_client.post('/api/notifications/mark-all-read/').data == {'marked_read': 0}


def test_read_notification_is_not_re_derived(ready_cages):
    services.sync_notifications()
    services.mark_all_notifications_read()
    assert services.sync_notifications() == []
    assert Notification.objects.count() == 2


def test_harvest_clears_cage_notifications(ready_cages):
    services.sync_notifications()
    services.harvest_cage('A01', 490, 300000)
    assert list(Notification.objects.values_list('cage_id', flat=True)) == ['B02']
