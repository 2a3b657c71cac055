from dj_rest_auth.views import LoginView
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.generics import CreateAPIView
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.views import TokenRefreshView

from taskhub.activity.utils import log_activity

from .serializers import RegisterSerializer
from .serializers import UserSerializer
from .tokens import RoleTokenObtainPairSerializer


@extend_schema_view(post=extend_schema(tags=["Authentication"]))
class TokenLoginView(LoginView):
    """Login returning ``access``, ``refresh`` and ``user`` in the JSON body."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


@extend_schema_view(post=extend_schema(tags=["Authentication"]))
class JWTRefreshView(TokenRefreshView):
    """Exchange a refresh token for a new access token and a rotated refresh token."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


@extend_schema(tags=["Authentication"])
class RegisterView(CreateAPIView):
    """Create an account and return a token pair for it."""

    serializer_class = RegisterSerializer
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        refresh = RoleTokenObtainPairSerializer.get_token(user)
        log_activity("register", actor=user, message=f"username={user.username}")
        return Response(
            {
                "user": UserSerializer(user, context={"request": request}).data,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            },
            status=status.HTTP_201_CREATED,
        )
