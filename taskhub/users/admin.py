from django.contrib import admin
from django.contrib.auth import admin as auth_admin
from django.utils.translation import gettext_lazy as _

from .models import User


@admin.register(User)
class UserAdmin(auth_admin.UserAdmin):
    fieldsets = (
        *auth_admin.UserAdmin.fieldsets,
        (
            _("Workspace"),
            {
                "fields": (
                    "role",
                    "is_online",
                    "last_seen",
                    "email_notifications",
                    "digest_frequency",
                ),
            },
        ),
    )
    list_display = ["username", "email", "name", "role", "is_active", "is_online"]
    list_filter = ["role", "is_active", "is_online"]
    search_fields = ["username", "email", "name"]
