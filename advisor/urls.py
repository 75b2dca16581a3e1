from django.urls import path
from . import views

urlpatterns = [
    path('health/<str:cage_id>/', views.cage_health, name='advisor-health'),
    path('reports/<str:report_type>/', views.farm_report, name='advisor-report'),
    path('chat/', views.start_chat, name='advisor-chat-start'),
    path('chat/<uuid:conversation_id>/messages/', views.send_message, name='advisor-chat-message'),
]
