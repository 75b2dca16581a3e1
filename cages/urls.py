from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'cages', views.CageViewSet, basename='cage')
router.register(r'harvests', views.HarvestedCageViewSet, basename='harvest')

urlpatterns = [
    path('', include(router.urls)),
    path('financial/summary/', views.financial_summary, name='financial-summary'),
    path('reports/download/<str:report_type>/', views.download_report, name='download-report'),
    # Notification endpoints
    path('notifications/', views.notifications_list, name='notifications-list'),
    path('notifications/unread-count/', views.unread_notification_count, name='unread-notification-count'),
    path('notifications/mark-all-read/', views.mark_all_notifications_read, name='mark-all-notifications-read'),
    path('notifications/derive/', views.derive_notifications, name='derive-notifications'),
]
