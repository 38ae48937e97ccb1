from rest_framework import serializers

from care.models import Account, AdminUser


class AdminLoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField()


class AdminRegisterSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=30)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    role = serializers.ChoiceField(choices=[r for r, _ in AdminUser.ROLE_CHOICES], default='admin')
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=AdminUser.PERMISSION_CHOICES), required=False, default=list
    )


class AdminProfileUpdateSerializer(serializers.Serializer):
    username = serializers.CharField(required=False, min_length=3, max_length=30)
    email = serializers.EmailField(required=False)
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=AdminUser.PERMISSION_CHOICES), required=False
    )


class AdminChangePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField()
    newPassword = serializers.CharField(min_length=6)


class UserListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[r for r, _ in Account.ROLE_CHOICES], required=False)
    status = serializers.ChoiceField(choices=['active', 'inactive'], required=False)
    search = serializers.CharField(required=False, allow_blank=True, max_length=100)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)


class UserStatusSerializer(serializers.Serializer):
    isActive = serializers.BooleanField()
