import logging

from django.contrib.auth import logout
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .errors import AuthError
from .serializers import LoginSerializer, RegisterSerializer, ThemeSerializer, UserSerializer

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    serializer = RegisterSerializer(data=request.data)
    try:
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
    except AuthError as exc:
        return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)

    token, created = Token.objects.get_or_create(user=user)
    logger.info(f"New user registered: {user.email}")
    return Response({
        'user': UserSerializer(user).data,
        'token': token.key,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    serializer = LoginSerializer(data=request.data)
    try:
        serializer.is_valid(raise_exception=True)
    except AuthError as exc:
        logger.info(f"Sign-in rejected ({exc.code})")
        return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)

    user = serializer.validated_data['user']
    token, created = Token.objects.get_or_create(user=user)
    return Response({
        'user': UserSerializer(user).data,
        'token': token.key
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    Token.objects.filter(user=request.user).delete()
    logout(request)
    return Response({'message': 'Successfully logged out'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me(request):
    """Current signed-in user"""
    return Response(UserSerializer(request.user).data)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def theme(request):
    """Read or change the dashboard colour theme"""
    user = request.user
    if request.method == 'GET':
        return Response({'theme': user.theme or user.DEFAULT_THEME})

    serializer = ThemeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user.theme = serializer.validated_data['theme']
    user.save(update_fields=['theme'])
    return Response({'theme': user.theme})
