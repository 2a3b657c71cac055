from django.contrib import admin

from taskhub.attachments import models


@admin.register(models.Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ["id", "original_name", "task", "uploaded_by", "size"]
    search_fields = ["original_name"]
    list_filter = ["is_image", "content_type"]
    raw_id_fields = ["task", "uploaded_by"]
