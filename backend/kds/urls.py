from django.urls import path, include
from rest_framework import routers

from . import views

app_name = 'kds'

router = routers.DefaultRouter()
router.register(r'tickets', views.KitchenTicketViewSet, basename='ticket')

urlpatterns = [
    path('orders/<str:order_number>/derive/', views.DeriveTicketsView.as_view(), name='derive_tickets'),
    path('stations/<str:station_id>/queue/', views.StationQueueView.as_view(), name='station_queue'),
    path('stats/', views.KitchenStatsView.as_view(), name='kitchen_stats'),
    path('', include(router.urls)),
]
