"""
Shared pytest fixtures.
"""
import pytest
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient


@pytest.fixture
def api_client():
    """API client for making requests."""
    return APIClient()


@pytest.fixture
def user(django_user_model):
    return django_user_model.objects.create_user(
        username='farmer@example.com',
        email='farmer@example.com',
        password='secret123',
    )


@pytest.fixture
def token(user):
    return Token.objects.create(user=user)


@pytest.fixture
def auth_client(api_client, token):
    """API client signed in with a token."""
    api_client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
    return api_client
