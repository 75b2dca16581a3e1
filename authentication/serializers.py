from django.contrib.auth import authenticate
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from rest_framework import serializers

from . import errors
from .errors import AuthError
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """The only user fields the dashboard sees"""
    uid = serializers.CharField(source='pk', read_only=True)

    class Meta:
        model = User
        fields = ['uid', 'email']


class CredentialsSerializer(serializers.Serializer):
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, required=False, allow_blank=True, trim_whitespace=False)


class RegisterSerializer(CredentialsSerializer):

    def validate(self, data):
        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''

        try:
            validate_email(email)
        except DjangoValidationError:
            raise AuthError(errors.INVALID_EMAIL)
        if len(password) < errors.MIN_PASSWORD_LENGTH:
            raise AuthError(errors.WEAK_PASSWORD)
        if User.objects.filter(email__iexact=email).exists():
            raise AuthError(errors.EMAIL_ALREADY_IN_USE)

        return {'email': email, 'password': password}

    def create(self, validated_data):
        # A concurrent sign-up with the same email can pass validate()
        try:
            with transaction.atomic():
                return User.objects.create_user(
                    username=validated_data['email'],
                    email=validated_data['email'],
                    password=validated_data['password'],
                )
        except IntegrityError:
            raise AuthError(errors.EMAIL_ALREADY_IN_USE)


class LoginSerializer(CredentialsSerializer):

    def validate(self, data):
        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''

        if not email:
            raise AuthError(errors.INVALID_EMAIL)
        if not User.objects.filter(email__iexact=email).exists():
            raise AuthError(errors.USER_NOT_FOUND)

        user = authenticate(email=email, password=password)
        if not user:
            raise AuthError(errors.WRONG_PASSWORD)

        data['user'] = user
        return data


class ThemeSerializer(serializers.Serializer):
    theme = serializers.ChoiceField(choices=User.THEME_CHOICES)
