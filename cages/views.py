import logging

from django.http import HttpResponse
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.authtoken.models import Token
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from . import reports, services
from .exceptions import StoreWriteError, ValidationError
from .lifecycle import UpdateInput
from .models import Cage, HarvestedCage, Notification
from .serializers import CageDetailSerializer, CageSerializer, HarvestedCageSerializer, NotificationSerializer

logger = logging.getLogger(__name__)

SORT_ORDERING = {
    'id': ['cage_id'],
    'progress_desc': ['-progress', 'cage_id'],
    'progress_asc': ['progress', 'cage_id'],
    'days_desc': ['start_date', 'cage_id'],  # oldest stock first
    'days_asc': ['-start_date', 'cage_id'],
}

RETRY_MESSAGE = 'Không thể lưu dữ liệu. Vui lòng thử lại.'


def _failure_response(exc):
    if isinstance(exc, ValidationError):
        return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, Cage.DoesNotExist):
        return Response({'detail': 'Không tìm thấy lồng.'}, status=status.HTTP_404_NOT_FOUND)
    return Response({'detail': RETRY_MESSAGE}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


class CageViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Active cages of the shared farm workspace"""
    lookup_value_regex = '[^/]+'

    def get_queryset(self):
        queryset = Cage.objects.all()
        search = self.request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(cage_id__icontains=search)
        sort_key = self.request.query_params.get('sort', 'id')
        return queryset.order_by(*SORT_ORDERING.get(sort_key, SORT_ORDERING['id']))

    def get_serializer_class(self):
        if self.action == 'list':
            return CageSerializer
        return CageDetailSerializer

    def create(self, request):
        data = request.data
        try:
            cage = services.add_cage(
                data.get('id'),
                data.get('initial_weight'),
                data.get('seed_cost'),
                user=request.user,
            )
        except (ValidationError, StoreWriteError) as exc:
            return _failure_response(exc)
        return Response(CageDetailSerializer(cage).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        try:
            services.delete_cage(pk)
        except (Cage.DoesNotExist, StoreWriteError) as exc:
            return _failure_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='update-log')
    def update_log(self, request, pk=None):
        """Record weight, feeding, medicine, deaths and notes in one go"""
        data = request.data
        update = UpdateInput(
            weight=data.get('weight'),
            feed_cost=data.get('feed_cost'),
            medicine_cost=data.get('medicine_cost'),
            dead_count=data.get('dead_count'),
            note=data.get('note', ''),
            feed_type=data.get('feed_type', ''),
            feed_weight=data.get('feed_weight'),
        )
        try:
            cage, entries = services.update_cage(pk, update, user=request.user)
        except (ValidationError, Cage.DoesNotExist, StoreWriteError) as exc:
            return _failure_response(exc)
        return Response({
            'cage': CageDetailSerializer(cage).data,
            'new_entries': [entry.to_dict() for entry in entries],
        })

    @action(detail=True, methods=['post'])
    def harvest(self, request, pk=None):
        data = request.data
        try:
            record = services.harvest_cage(
                pk, data.get('final_weight'), data.get('price_per_kg'), user=request.user)
        except (ValidationError, Cage.DoesNotExist, StoreWriteError) as exc:
            return _failure_response(exc)
        return Response(HarvestedCageSerializer(record).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'])
    def feed(self, request):
        """Mark several cages as fed"""
        cage_ids = request.data.get('cage_ids') or []
        if not isinstance(cage_ids, list) or not cage_ids:
            return Response({'detail': 'cage_ids is required'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            fed = services.feed_cages(cage_ids, user=request.user)
        except StoreWriteError as exc:
            return _failure_response(exc)
        return Response({'fed': fed, 'message': f'{len(fed)} lồng đã được đánh dấu cho ăn.'})


class HarvestedCageViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = HarvestedCageSerializer
    queryset = HarvestedCage.objects.all()


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def financial_summary(request):
    """Profit, revenue and cost aggregates over harvested and active cages"""
    summary = services.financial_summary()
    return Response({
        'total_profit': summary.total_profit,
        'total_revenue': summary.total_revenue,
        'total_harvested_cost': summary.total_harvested_cost,
        'current_investment': summary.current_investment,
        'cost_breakdown': [
            {'category': item.category, 'name': item.label, 'value': item.value}
            for item in summary.cost_breakdown
        ],
        'monthly_profit': [
            {'name': month.label, 'year': month.year, 'month': month.month, 'profit': month.profit}
            for month in summary.monthly_profit
        ],
        'top_profit': HarvestedCageSerializer(summary.top_profit, many=True).data,
        'top_cost': HarvestedCageSerializer(summary.top_cost, many=True).data,
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def download_report(request, report_type):
    """Download the harvest ledger or the active cage list as PDF"""
    # Browsers open the download directly, so a token may also come as ?token=
    user = request.user if request.user.is_authenticated else None
    if user is None:
        token = request.GET.get('token')
        if not token:
            return Response({'detail': 'Authentication required'}, status=status.HTTP_401_UNAUTHORIZED)
        token_obj = Token.objects.select_related('user').filter(key=token).first()
        if token_obj is None:
            return Response({'detail': 'Invalid token'}, status=status.HTTP_401_UNAUTHORIZED)
        user = token_obj.user

    if report_type not in reports.REPORT_TYPES:
        return Response({'detail': f'Unknown report type: {report_type}'}, status=status.HTTP_404_NOT_FOUND)

    now = timezone.now()
    if report_type == 'harvest':
        pdf = reports.build_harvest_report(list(HarvestedCage.objects.all()), services.financial_summary())
    else:
        pdf = reports.build_cage_report(list(Cage.objects.all()), now)

    logger.info(f"{report_type} report generated for {user.email}")
    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{report_type}_report_{now:%Y-%m-%d}.pdf"'
    return response


# ============ NOTIFICATION ENDPOINTS ============

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications_list(request):
    notifications = Notification.objects.all()
    return Response(NotificationSerializer(notifications, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def unread_notification_count(request):
    return Response({'unread_count': Notification.objects.filter(read=False).count()})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_all_notifications_read(request):
    try:
        count = services.mark_all_notifications_read()
    except StoreWriteError as exc:
        return _failure_response(exc)
    return Response({'marked_read': count})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def derive_notifications(request):
    """Re-run notification derivation over the current cages"""
    try:
        created = services.sync_notifications()
    except StoreWriteError as exc:
        return _failure_response(exc)
    return Response(NotificationSerializer(created, many=True).data, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)
