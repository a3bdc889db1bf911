from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.errors import InvalidShipmentError
from .serializers import InvitationSerializer, QuoteRequestSerializer
from .services import request_quote, validate_invitation


class QuoteRequestView(APIView):
    """Public endpoint behind the website quote form."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = QuoteRequestSerializer(data=request.data)
        if not serializer.is_valid():
            raise InvalidShipmentError(serializer.errors)
        data = serializer.validated_data
        prospect, quote = request_quote(
            serializer.to_shipment_input(),
            email=data["email"],
            phone=data.get("phone") or None,
            name=data.get("name") or None,
            company=data.get("company") or None,
        )
        return Response(
            {
                "quote_number": quote.quote_number,
                "status": quote.status,
                "estimated_cost": str(quote.estimated_cost),
                "currency": quote.currency,
                "selected_mode": quote.selected_mode,
                "estimated_delivery_days": quote.estimated_delivery_days,
                "valid_until": quote.valid_until,
                "tracking_token": quote.tracking_token,
            },
            status=status.HTTP_201_CREATED,
        )


class InvitationView(APIView):
    """Lets the registration form prefill from an invitation link."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, token):
        prospect = validate_invitation(token)
        return Response(InvitationSerializer(prospect).data)
