from django.contrib import admin

from taskhub.activity import models


@admin.register(models.Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ["id", "action", "actor", "project", "created_at"]
    search_fields = ["action", "message"]
    list_filter = ["action", "created_at"]
    raw_id_fields = ["actor", "team", "project", "task"]
