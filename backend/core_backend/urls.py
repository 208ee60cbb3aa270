"""
URL configuration for core_backend project.

Every endpoint lives under /api/; WebSocket routes are in
notifications.routing and served through core_backend.asgi.
"""

from django.urls import path, include
from django.http import JsonResponse


def health_check(request):
    """Simple health check endpoint that doesn't require an actor"""
    return JsonResponse({"status": "ok", "message": "Backend is running"})


urlpatterns = [
    path("api/health/", health_check, name="health_check"),
    path("api/", include("orders.urls")),
    path("api/kds/", include("kds.urls")),
    path("api/pos/", include("payments.urls")),
]
