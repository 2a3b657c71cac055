from dj_rest_auth.views import LogoutView
from dj_rest_auth.views import PasswordChangeView
from dj_rest_auth.views import PasswordResetConfirmView
from dj_rest_auth.views import PasswordResetView
from dj_rest_auth.views import UserDetailsView
from django.urls import path

from .auth_views import RegisterView
from .auth_views import TokenLoginView

# Login is throttled; tokens come back in the body like /jwt/create/.
urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("login/", TokenLoginView.as_view(), name="dj-rest-auth_login"),
    path("logout/", LogoutView.as_view(), name="dj-rest-auth_logout"),
    path("password/reset/", PasswordResetView.as_view(), name="rest_password_reset"),
    path(
        "password/reset/confirm/",
        PasswordResetConfirmView.as_view(),
        name="rest_password_reset_confirm",
    ),
    path("password/change/", PasswordChangeView.as_view(), name="rest_password_change"),
    path("user/", UserDetailsView.as_view(), name="rest_user_details"),
]
