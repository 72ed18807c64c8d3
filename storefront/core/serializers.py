from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, AuditLog


ADDRESS_FIELDS = ('street', 'city', 'state', 'postal_code', 'country')


class AddressSerializer(serializers.Serializer):
    street = serializers.CharField(allow_blank=True, required=False, default='')
    city = serializers.CharField(allow_blank=True, required=False, default='')
    state = serializers.CharField(allow_blank=True, required=False, default='')
    postal_code = serializers.CharField(allow_blank=True, required=False, default='')
    country = serializers.CharField(allow_blank=True, required=False, default='')


class UserSerializer(serializers.ModelSerializer):
    is_store_admin = serializers.BooleanField(read_only=True)
    address = AddressSerializer(required=False)

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'phone', 'address', 'is_active', 'is_staff', 'is_store_admin', 'created_at', 'updated_at']
        read_only_fields = ['email', 'is_active', 'is_staff', 'created_at', 'updated_at']

    def update(self, instance, validated_data):
        address = validated_data.pop('address', None)
        if address is not None:
            instance.address = {field: address.get(field, '') for field in ADDRESS_FIELDS}
        return super().update(instance, validated_data)


class SignupSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['email', 'password', 'name', 'phone']

    def validate_email(self, value):
        email = value.strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return email

    def validate(self, attrs):
        candidate = User(email=attrs.get('email', ''), name=attrs.get('name', ''))
        validate_password(attrs['password'], user=candidate)
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, is_active=True, **validated_data)


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordResetConfirmSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    password = serializers.CharField(write_only=True)


class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'user_email', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
