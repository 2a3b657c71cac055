from __future__ import annotations

from contextlib import suppress
from pathlib import Path

from django.conf import settings
from PIL import Image
from PIL.Image import UnidentifiedImageError
from rest_framework import serializers

from taskhub.attachments.models import Attachment
from taskhub.attachments.services import IMAGE_EXTS
from taskhub.users.api.serializers import UserSummarySerializer

ALLOWED_EXTS = IMAGE_EXTS | {
    ".svg",
    ".pdf",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".ppt",
    ".pptx",
    ".txt",
    ".csv",
    ".zip",
    ".rar",
    ".7z",
}


class AttachmentSerializer(serializers.ModelSerializer):
    uploaded_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Attachment
        fields = [
            "id",
            "task",
            "file",
            "original_name",
            "content_type",
            "size",
            "is_image",
            "uploaded_by",
            "created_at",
        ]
        read_only_fields = fields


class AttachmentUploadSerializer(serializers.Serializer):
    task = serializers.IntegerField()
    file = serializers.FileField(
        help_text="Images, office documents, text and archives. Max 10MB by default",
    )

    def validate_file(self, f):
        max_mb = settings.ATTACHMENT_MAX_MB
        size_mb = (getattr(f, "size", 0) or 0) / (1024 * 1024)
        if size_mb > max_mb:
            msg = f"File too large: {size_mb:.1f} MB > {max_mb} MB"
            raise serializers.ValidationError(msg)
        ext = Path(getattr(f, "name", "")).suffix.lower()
        if ext not in ALLOWED_EXTS:
            allowed = ", ".join(sorted(ALLOWED_EXTS))
            msg = f"Unsupported file type '{ext}'. Allowed: {allowed}"
            raise serializers.ValidationError(msg)
        if ext in IMAGE_EXTS:
            try:
                Image.open(f).verify()
            except UnidentifiedImageError as exc:
                msg = "Invalid image file"
                raise serializers.ValidationError(msg) from exc
            finally:
                with suppress(Exception):
                    f.seek(0)
        return f
