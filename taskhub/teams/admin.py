from django.contrib import admin

from taskhub.teams import models


class TeamMembershipInline(admin.TabularInline):
    model = models.TeamMembership
    extra = 0
    raw_id_fields = ["user"]


@admin.register(models.Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "owner", "is_active", "created_at"]
    search_fields = ["name", "owner__username"]
    list_filter = ["is_active"]
    raw_id_fields = ["owner"]
    inlines = [TeamMembershipInline]


@admin.register(models.Invitation)
class InvitationAdmin(admin.ModelAdmin):
    list_display = ["id", "team", "email", "role", "status", "expires_at"]
    search_fields = ["email", "team__name"]
    list_filter = ["status", "role"]
    readonly_fields = ["token"]
