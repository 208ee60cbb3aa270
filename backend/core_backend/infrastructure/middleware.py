from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
import logging

logger = logging.getLogger(__name__)

ACTOR_HEADER = "HTTP_X_ACTOR_ID"
MAX_ACTOR_LENGTH = 100


class ActorContextMiddleware(MiddlewareMixin):
    """
    Reads the caller's opaque actor id from the ``X-Actor-Id`` header and
    exposes it as ``request.actor_id`` for audit attribution.

    Mutating API requests without the header are rejected; reads and the
    health check are allowed anonymously.
    """

    SAFE_METHODS = ("GET", "HEAD", "OPTIONS")
    EXEMPT_PATHS = ("/api/health/",)

    def process_request(self, request):
        actor_id = request.META.get(ACTOR_HEADER, "").strip()

        if len(actor_id) > MAX_ACTOR_LENGTH:
            logger.warning(f"Rejected actor id longer than {MAX_ACTOR_LENGTH} characters on {request.path}")
            return JsonResponse(
                {"error": "validation_error", "detail": f"X-Actor-Id longer than {MAX_ACTOR_LENGTH} characters"},
                status=400,
            )

        if not actor_id and self._requires_actor(request):
            return JsonResponse(
                {"error": "validation_error", "detail": "X-Actor-Id header is required"},
                status=400,
            )

        request.actor_id = actor_id or "anonymous"
        return None

    def _requires_actor(self, request):
        if request.method in self.SAFE_METHODS:
            return False
        if request.path in self.EXEMPT_PATHS:
            return False
        return request.path.startswith("/api/")
