from django.contrib import admin

from taskhub.projects import models


class ProjectMembershipInline(admin.TabularInline):
    model = models.ProjectMembership
    extra = 0
    raw_id_fields = ["user"]


@admin.register(models.Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "team", "owner", "status", "priority"]
    search_fields = ["name", "team__name"]
    list_filter = ["status", "priority"]
    raw_id_fields = ["team", "owner"]
    inlines = [ProjectMembershipInline]
