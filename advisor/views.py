import logging

from django.http import StreamingHttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cages.models import Cage, HarvestedCage

from . import client, prompts
from .models import Conversation

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def cage_health(request, cage_id):
    """AI health check of one active cage"""
    cage = get_object_or_404(Cage, pk=cage_id)
    report = client.analyze_health(cage)
    return Response({'cage_id': cage.cage_id, **report.to_dict()})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def farm_report(request, report_type):
    if report_type not in prompts.REPORT_TYPES:
        return Response({'detail': f'Unknown report type: {report_type}'}, status=status.HTTP_404_NOT_FOUND)

    report = client.generate_report(
        report_type, Cage.objects.all(), HarvestedCage.objects.all(), now=timezone.now())
    return Response({
        'type': report_type,
        'title': report.title,
        'html_content': report.html_content,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def start_chat(request):
    """Open a conversation over a snapshot of the current farm data"""
    session = client.start_conversation(Cage.objects.all(), HarvestedCage.objects.all(), now=timezone.now())
    conversation = Conversation.start(session, request.user)
    logger.info(f"Advisor conversation {conversation.id} started by {request.user.email}")
    return Response({
        'id': str(conversation.id),
        'created_at': conversation.created_at,
    }, status=status.HTTP_201_CREATED)


def _stream_and_record(conversation, session, query):
    yield from client.stream_chat(session, query)
    conversation.record(session)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_message(request, conversation_id):
    """Stream the advisor's reply as plain text chunks"""
    conversation = get_object_or_404(Conversation, pk=conversation_id, created_by=request.user)
    query = (request.data.get('message') or '').strip()
    if not query:
        return Response({'detail': 'message is required'}, status=status.HTTP_400_BAD_REQUEST)

    chunks = _stream_and_record(conversation, conversation.to_session(), query)
    response = StreamingHttpResponse(chunks, content_type='text/plain; charset=utf-8')
    response['Cache-Control'] = 'no-cache'
    return response
