import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode

from .auth import IsSystemAdmin, get_auth_user, get_profile
from .emails import get_valid_app_url, send_password_reset_email
from .exceptions import EmailDeliveryError
from .models import AuditLog
from .serializers import (
    UserSerializer, ChangePasswordSerializer,
    PasswordResetRequestSerializer, PasswordResetConfirmSerializer,
    AuditLogSerializer,
)
from .utils import create_audit_log

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        # Accept an e-mail address in the username field
        login = attrs.get(self.username_field)
        if login and '@' in login:
            match = User.objects.filter(email__iexact=login.strip()).first()
            if match:
                attrs[self.username_field] = match.get_username()
        data = super().validate(attrs)
        # Ensure user is active
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        profile = get_profile(self.user)
        data['role'] = profile.role
        data['agency_id'] = profile.agency_id
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        profile = get_profile(user)
        token['username'] = user.username
        token['email'] = user.email
        token['role'] = profile.role
        token['agency_id'] = profile.agency_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with role and agency scope"""
    auth_user = get_auth_user(request)
    user_data = UserSerializer(request.user).data
    user_data['role'] = auth_user.role
    user_data['is_system_admin'] = auth_user.is_system_admin
    user_data['agency_id'] = auth_user.agency_id
    user_data['agency_name'] = get_profile(request.user).agency.name if auth_user.agency_id else None
    user_data['viewable_agency_ids'] = sorted(auth_user.viewable_agency_ids)
    return Response(user_data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    """Change the current user's password"""
    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = request.user
    user.set_password(serializer.validated_data['new_password'])
    user.save(update_fields=['password'])
    create_audit_log(
        request=request,
        action='password_change',
        model_name='User',
        object_id=str(user.id),
        object_name=user.email,
    )
    return Response({'success': True})


@api_view(['POST'])
@permission_classes([AllowAny])
def password_reset_request(request):
    """
    E-mail a password reset link.
    Always reports success so the endpoint cannot be used to probe accounts.
    """
    serializer = PasswordResetRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Please enter a valid email address'}, status=status.HTTP_400_BAD_REQUEST)

    email = serializer.validated_data['email'].strip()
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is None:
        return Response({'success': True})

    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    reset_link = f"{get_valid_app_url()}/reset-password?uid={uid}&token={token}"
    try:
        send_password_reset_email(user.email, reset_link)
    except EmailDeliveryError as e:
        logger.error(f"Password reset email failed for user {user.pk}: {e}")
    return Response({'success': True})


@api_view(['POST'])
@permission_classes([AllowAny])
def password_reset_confirm(request):
    """Set a new password from a reset link"""
    serializer = PasswordResetConfirmSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        user_id = force_str(urlsafe_base64_decode(data['uid']))
        user = User.objects.get(pk=user_id)
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        user = None

    if user is None or not default_token_generator.check_token(user, data['token']):
        return Response({'error': 'Reset link is invalid or has expired'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        validate_password(data['new_password'], user)
    except ValidationError as e:
        return Response({'new_password': list(e.messages)}, status=status.HTTP_400_BAD_REQUEST)

    user.set_password(data['new_password'])
    user.save(update_fields=['password'])
    create_audit_log(
        action='password_change',
        model_name='User',
        object_id=str(user.id),
        object_name=user.email,
        user=user,
        changes={'via': 'password_reset'},
    )
    return Response({'success': True})


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    # Filter by action
    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    # Filter by model_name
    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    # Filter by date range
    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')[:500]
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)
