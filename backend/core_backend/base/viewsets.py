from rest_framework import viewsets, filters
from django_filters.rest_framework import DjangoFilterBackend

from core_backend.exceptions import ValidationError
from ..pagination import StandardPagination

IDEMPOTENCY_HEADER = 'HTTP_IDEMPOTENCY_KEY'
MAX_IDEMPOTENCY_KEY_LENGTH = 255


class ActorRequestMixin:
    """
    Request helpers shared by every coordination endpoint.

    ``request.actor_id`` is populated by ActorContextMiddleware; the
    Idempotency-Key header is optional and passed through to the services.
    """

    def get_actor(self, request) -> str:
        return getattr(request, 'actor_id', '') or ''

    def get_idempotency_key(self, request):
        key = request.META.get(IDEMPOTENCY_HEADER, '').strip()
        if not key:
            return None
        if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise ValidationError(
                f"Idempotency-Key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters",
                {'header': 'Idempotency-Key'},
            )
        return key

    def validated(self, serializer_class, request, **context):
        """Validate the request body with ``serializer_class`` and return its data."""
        serializer = serializer_class(data=request.data, context={'request': request, **context})
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


class ReadOnlyBaseViewSet(ActorRequestMixin, viewsets.ReadOnlyModelViewSet):
    """
    Base ViewSet for coordination resources.

    Features:
    - Standard pagination, filtering and ordering
    - Writes go through ``@action`` endpoints that call the services,
      never through serializer ``save()``
    """

    pagination_class = StandardPagination
    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter,
    ]
