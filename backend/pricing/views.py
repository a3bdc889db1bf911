import logging

from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsManagerOrFinance
from core.errors import InvalidShipmentError
from .models import CountryDistance
from .serializers import (
    CountryDistanceSerializer,
    PricingConfigUpdateSerializer,
    ShipmentSerializer,
)
from .services.config_provider import get_config_provider
from .services.pricing_engine import compute_estimate

logger = logging.getLogger(__name__)


class EstimateView(APIView):
    """Instant, stateless estimate for any visitor. Nothing is persisted."""

    permission_classes = [AllowAny]

    def post(self, request):
        serializer = ShipmentSerializer(data=request.data)
        if not serializer.is_valid():
            raise InvalidShipmentError(serializer.errors)
        shipment = serializer.to_shipment_input()

        provider = get_config_provider()
        config = provider.get_pricing_config()
        distance = provider.get_distance(shipment.origin_country, shipment.destination_country)
        result = compute_estimate(shipment, config, distance_km=distance)

        body = result.to_dict()
        body["distance_km"] = distance
        body["config_version"] = config.version
        return Response(body, status=status.HTTP_200_OK)


class PricingConfigView(APIView):
    """Current pricing parameters (GET) and administrator update (PUT)."""

    permission_classes = [IsAuthenticated, IsManagerOrFinance]

    def get(self, request):
        return Response(get_config_provider().get_pricing_config().to_dict())

    def put(self, request):
        serializer = PricingConfigUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provider = get_config_provider()
        provider.update_pricing_config(serializer.to_config_data(), user=request.user)
        return Response(provider.get_pricing_config().to_dict(), status=status.HTTP_200_OK)


class CountryDistanceViewSet(viewsets.ModelViewSet):
    queryset = CountryDistance.objects.all()
    serializer_class = CountryDistanceSerializer
    permission_classes = [IsAuthenticated, IsManagerOrFinance]

    def perform_create(self, serializer):
        serializer.save()
        get_config_provider().invalidate()

    def perform_update(self, serializer):
        serializer.save()
        get_config_provider().invalidate()

    def perform_destroy(self, instance):
        logger.info("Removing distance %s by %s", instance, self.request.user.username)
        instance.delete()
        get_config_provider().invalidate()
