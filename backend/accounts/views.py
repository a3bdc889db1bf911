import json
import logging

from django.contrib.auth import authenticate
from django.contrib.auth.hashers import make_password
from django.db import transaction
from django.views.decorators.csrf import csrf_exempt
from django.http import JsonResponse
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from prospects.services import normalize_email
from .models import CustomUser
from .services.reconciliation import attach_orphans

logger = logging.getLogger(__name__)


def _error(detail: str, status_code: int):
    """Consistent error payload shape across API: {'detail': ...}."""
    return JsonResponse({'detail': detail}, status=status_code)


def _read_json(request):
    try:
        return json.loads(request.body or b'{}'), None
    except json.JSONDecodeError:
        return None, _error('Invalid JSON', 400)


@csrf_exempt
@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Login endpoint that returns a token and user role
    """
    data, err = _read_json(request)
    if err:
        return err
    username = data.get('username')
    password = data.get('password')
    if not username or not password:
        return _error('Username and password required', 400)

    user = authenticate(username=username, password=password)
    if not user:
        return _error('Invalid credentials', 401)

    token, _ = Token.objects.get_or_create(user=user)
    return JsonResponse({
        'token': token.key,
        'role': user.role,
        'username': user.username,
    })


@csrf_exempt
@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    """
    Self-service registration. New accounts are customers; operator roles are
    granted through the admin. Guest quotes sent from the same email are
    attached once the account is committed.
    """
    data, err = _read_json(request)
    if err:
        return err
    username = data.get('username')
    password = data.get('password')
    email = normalize_email(data.get('email') or '')
    if not username or not password or not email:
        return _error('Username, email and password required', 400)

    if CustomUser.objects.filter(username=username).exists():
        return _error('Username already exists', 400)
    if CustomUser.objects.filter(email__iexact=email).exists():
        return _error('An account with this email already exists', 400)

    with transaction.atomic():
        user = CustomUser.objects.create(
            username=username,
            email=email,
            phone=data.get('phone') or None,
            first_name=data.get('first_name') or '',
            last_name=data.get('last_name') or '',
            password=make_password(password),
            role='client',
        )
        token = Token.objects.create(user=user)
    logger.info("Registered account %s", user.pk)

    return JsonResponse({
        'token': token.key,
        'role': user.role,
        'username': user.username,
    }, status=201)


class ReconcileView(APIView):
    """Re-run orphan attachment for the caller's account. Repeating it attaches nothing new."""

    permission_classes = [IsAuthenticated]

    def post(self, request):
        result = attach_orphans(request.user)
        return Response(result.to_dict())
