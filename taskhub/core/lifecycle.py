from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Lifecycle(models.TextChoices):
    ACTIVE = "active", _("Active")
    SOFT_DELETED = "soft_deleted", _("Soft deleted")


class ActiveQuerySet(models.QuerySet):
    def active(self):
        return self.filter(lifecycle=Lifecycle.ACTIVE)


class SoftDeletable(models.Model):
    """Rows are hidden instead of removed; ``deleted_by`` records who did it."""

    lifecycle = models.CharField(
        max_length=20,
        choices=Lifecycle.choices,
        default=Lifecycle.ACTIVE,
        db_index=True,
    )
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    objects = ActiveQuerySet.as_manager()

    class Meta:
        abstract = True

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle == Lifecycle.SOFT_DELETED


def soft_delete(instance: SoftDeletable, actor) -> bool:
    """Mark ``instance`` deleted. Returns False if it already was."""

    if instance.is_deleted:
        return False
    instance.lifecycle = Lifecycle.SOFT_DELETED
    instance.deleted_at = timezone.now()
    instance.deleted_by = actor
    instance.save(update_fields=["lifecycle", "deleted_at", "deleted_by"])
    return True
