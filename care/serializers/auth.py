import bleach
from django.contrib.auth.password_validation import validate_password as run_password_validators
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from care.models import Account


class AddressSerializer(serializers.Serializer):
    street = serializers.CharField(required=False, allow_blank=True, max_length=200)
    city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    state = serializers.CharField(required=False, allow_blank=True, max_length=100)
    zipCode = serializers.CharField(required=False, allow_blank=True, max_length=20)
    country = serializers.CharField(required=False, allow_blank=True, max_length=100)


def _clean_name(v):
    v = bleach.clean((v or '').strip(), tags=[], strip=True)
    if not v:
        raise serializers.ValidationError('This field may not be blank.')
    return v


class RegisterSerializer(serializers.Serializer):
    firstName = serializers.CharField(max_length=50)
    lastName = serializers.CharField(max_length=50)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    role = serializers.ChoiceField(choices=list(Account.REGISTRATION_ROLES))
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    gender = serializers.ChoiceField(choices=['male', 'female', 'other'], required=False)
    dateOfBirth = serializers.DateField(required=False)
    address = AddressSerializer(required=False)

    def validate_firstName(self, v):
        return _clean_name(v)

    def validate_lastName(self, v):
        return _clean_name(v)

    def validate_email(self, v):
        return v.strip().lower()

    def validate_password(self, v):
        try:
            run_password_validators(v)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return v

    def to_profile(self) -> dict:
        """Model field names for :meth:`CredentialVerifier.register`."""
        vd = self.validated_data
        profile = {
            'email': vd['email'],
            'first_name': vd['firstName'],
            'last_name': vd['lastName'],
        }
        if vd.get('phone'):
            profile['phone'] = vd['phone']
        if vd.get('gender'):
            profile['gender'] = vd['gender']
        if vd.get('dateOfBirth'):
            profile['date_of_birth'] = vd['dateOfBirth']
        if vd.get('address'):
            profile['address'] = dict(vd['address'])
        return profile


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField()

    def validate_email(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Email is required')
        return v


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField()
    newPassword = serializers.CharField(min_length=6)


class ProfileUpdateSerializer(serializers.Serializer):
    firstName = serializers.CharField(required=False, max_length=50)
    lastName = serializers.CharField(required=False, max_length=50)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    avatar = serializers.CharField(required=False, allow_blank=True, max_length=512)
    address = AddressSerializer(required=False)
    preferences = serializers.DictField(required=False)

    def validate_firstName(self, v):
        return _clean_name(v)

    def validate_lastName(self, v):
        return _clean_name(v)

    def to_fields(self) -> dict:
        names = {'firstName': 'first_name', 'lastName': 'last_name'}
        out = {}
        for key, value in self.validated_data.items():
            if key in ('address', 'preferences'):
                value = dict(value)
            out[names.get(key, key)] = value
        return out


def account_payload(account) -> dict:
    """Public view of an account; never includes the password hash."""
    return {
        'id': account.pk,
        'firstName': account.first_name,
        'lastName': account.last_name,
        'email': account.email,
        'role': account.role,
        'isActive': account.is_active,
        'isApproved': account.is_approved,
        'phone': account.phone or None,
        'gender': account.gender or None,
        'dateOfBirth': account.date_of_birth.isoformat() if account.date_of_birth else None,
        'avatar': account.avatar or None,
        'address': account.address or {},
        'preferences': account.preferences or {},
        'lastLogin': account.last_login.isoformat() if account.last_login else None,
        'createdAt': account.date_joined.isoformat() if account.date_joined else None,
    }
