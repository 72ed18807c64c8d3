import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from django.core.mail import send_mail
from django.shortcuts import get_object_or_404
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_encode, urlsafe_base64_decode
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .models import AuditLog
from .permissions import IsStoreAdmin
from .serializers import (
    UserSerializer, SignupSerializer, AuditLogSerializer,
    PasswordResetRequestSerializer, PasswordResetConfirmSerializer,
)
from .utils import paginate

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['name'] = user.name
        token['is_store_admin'] = user.is_store_admin
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that answers 401 for users deleted after the token was issued"""
    def validate(self, attrs):
        try:
            refresh = self.token_class(attrs['refresh'])
        except TokenError:
            raise InvalidToken('Token is invalid or expired.')

        user_id = refresh.payload.get(jwt_settings.USER_ID_CLAIM)
        if user_id is None or not User.objects.filter(**{jwt_settings.USER_ID_FIELD: user_id}).exists():
            raise InvalidToken('Token is invalid. User no longer exists.')

        try:
            return super().validate(attrs)
        except TokenError:
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def signup(request):
    """Create a customer account and return a token pair"""
    email = (request.data.get('email') or '').strip()
    password = request.data.get('password') or ''
    name = (request.data.get('name') or '').strip()
    if not email or not password or not name:
        return Response(
            {'error': 'Email, password, and name are required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    serializer = SignupSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = serializer.save()
    logger.info(f"New customer account created: {user.email}")
    token = CustomTokenObtainPairSerializer.get_token(user)
    return Response({
        'user': UserSerializer(user).data,
        'access': str(token.access_token),
        'refresh': str(token),
        'message': 'User created successfully',
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the current user's profile"""
    if request.method == 'GET':
        return Response(UserSerializer(request.user).data)

    serializer = UserSerializer(request.user, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([AllowAny])
def forgot_password(request):
    """Email a password reset link. The answer is the same whether or not the account exists."""
    serializer = PasswordResetRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    email = serializer.validated_data['email'].strip().lower()
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user:
        uid = urlsafe_base64_encode(force_bytes(user.pk))
        token = default_token_generator.make_token(user)
        reset_url = f"{settings.FRONTEND_URL}/reset-password?uid={uid}&token={token}"
        try:
            send_mail(
                subject='Reset your Rashakin password',
                message=(
                    f"Hi {user.name or user.email},\n\n"
                    f"Use the link below to choose a new password:\n{reset_url}\n\n"
                    "If you did not ask for this, you can ignore this email."
                ),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
            )
        except Exception as e:
            logger.error(f"Failed to send password reset email to {user.email}: {str(e)}", exc_info=True)

    return Response({'message': 'If an account exists for that email, a reset link has been sent.'})


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password(request):
    """Set a new password from a reset link's uid/token pair"""
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
        validate_password(data['password'], user=user)
    except DjangoValidationError as e:
        return Response({'password': list(e.messages)}, status=status.HTTP_400_BAD_REQUEST)

    user.set_password(data['password'])
    user.save(update_fields=['password', 'updated_at'])
    logger.info(f"Password reset completed for {user.email}")
    return Response({'message': 'Password has been reset'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def audit_log_list(request):
    """List audit logs (admin only)"""
    queryset = AuditLog.objects.select_related('user').all()
    action = request.query_params.get('action')
    model_name = request.query_params.get('model_name')
    if action:
        queryset = queryset.filter(action=action)
    if model_name:
        queryset = queryset.filter(model_name=model_name)
    return Response(paginate(queryset.order_by('-created_at'), request, AuditLogSerializer, default_limit=50))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def audit_log_detail(request, pk):
    """Retrieve a single audit log entry"""
    audit_log = get_object_or_404(AuditLog, pk=pk)
    return Response(AuditLogSerializer(audit_log).data)
