# quotes/views.py
import logging

from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import STAFF_ROLES, IsStaffRole
from core.errors import InvalidShipmentError
from .models import Quote
from .serializers import (
    QuoteCreateSerializer,
    QuoteLogSerializer,
    QuoteSerializer,
    TrackingSerializer,
    TransitionSerializer,
)
from .services import lifecycle
from .services.lifecycle import create_quote, expire_if_due, refresh_tracking_token
from .services.tracking import track_quote

logger = logging.getLogger(__name__)

# Actions a customer may take on their own quotes; operators may take any
CLIENT_ACTIONS = {"submit", "accept", "reject", "cancel"}


def _is_staff(user) -> bool:
    return getattr(user, "role", None) in STAFF_ROLES


class QuoteViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = QuoteSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Quote.objects.all().select_related("account", "treatment_agent").prefetch_related("packages")
        if not _is_staff(self.request.user):
            qs = qs.filter(account=self.request.user)
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter.upper())
        return qs

    def get_object(self):
        return expire_if_due(super().get_object())

    def list(self, request, *args, **kwargs):
        # Overdue quotes are expired on read before being listed
        now = timezone.now()
        overdue = self.get_queryset().filter(status__in=(Quote.SENT, Quote.ACCEPTED), valid_until__lt=now)
        for quote in overdue:
            expire_if_due(quote, now=now)
        return super().list(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        serializer = QuoteCreateSerializer(data=request.data)
        if not serializer.is_valid():
            raise InvalidShipmentError(serializer.errors)
        data = serializer.validated_data
        user = request.user
        is_client = not _is_staff(user)
        quote = create_quote(
            serializer.to_shipment_input(),
            account=user if is_client else None,
            contact_email=data.get("contact_email"),
            contact_phone=data.get("contact_phone") or None,
            contact_name=data.get("contact_name") or None,
            actor=user,
            source="client" if is_client else "agent",
        )
        return Response(QuoteSerializer(quote).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request, pk=None):
        quote = super().get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        name = serializer.validated_data["action"]
        if not _is_staff(request.user) and name not in CLIENT_ACTIONS:
            raise PermissionDenied(f"Only operators may {name} a quote.")
        quote = lifecycle.transition(quote.pk, name, actor=request.user, payload=serializer.to_payload())
        return Response(QuoteSerializer(quote).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        quote = self.get_object()
        return Response(QuoteLogSerializer(quote.logs.all(), many=True).data)

    @action(detail=True, methods=["post"], url_path="refresh-token", permission_classes=[IsAuthenticated, IsStaffRole])
    def refresh_token(self, request, pk=None):
        quote = refresh_tracking_token(super().get_object().pk, actor=request.user)
        return Response(
            {"tracking_token": quote.tracking_token, "token_expires_at": quote.token_expires_at},
            status=status.HTTP_200_OK,
        )


class TrackingView(APIView):
    """Anonymous status lookup; unknown, malformed and expired tokens all answer 404."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, token):
        quote = track_quote(token)
        return Response(TrackingSerializer(quote).data)
