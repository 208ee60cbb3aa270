from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import POSSessionViewSet, POSTransactionViewSet

app_name = "payments"

router = DefaultRouter()
router.register(r"sessions", POSSessionViewSet, basename="session")
router.register(r"transactions", POSTransactionViewSet, basename="transaction")

urlpatterns = [
    path("", include(router.urls)),
]
