"""Transactional email built from templates under ``templates/emails``."""

from __future__ import annotations

import logging
from typing import Any

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string

from taskhub.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

DIGEST_SECTIONS = (
    ("assignment", "Tasks assigned to you"),
    ("completion", "Completed tasks"),
    ("comment", "New comments"),
    ("due_soon", "Due soon"),
    ("invite", "Invitations"),
    ("mention", "Mentions"),
    ("other", "Other updates"),
)


def _user_name(user) -> str:
    return user.name or user.username or user.email.split("@")[0]


def send_digest_email(user, grouped: dict[str, list], total: int) -> None:
    """Send the daily digest to ``user``.

    Raises ``UpstreamError`` when rendering or delivery fails so the caller
    can count the failure.
    """

    sections = [
        {"key": key, "label": label, "items": grouped[key]}
        for key, label in DIGEST_SECTIONS
        if grouped.get(key)
    ]
    context: dict[str, Any] = {
        "user_name": _user_name(user),
        "sections": sections,
        "total": total,
        "notifications_url": f"{settings.FRONTEND_URL}/notifications",
        "settings_url": f"{settings.FRONTEND_URL}/settings/notifications",
    }
    try:
        html_message = render_to_string("emails/digest.html", context)
        plain_message = render_to_string("emails/digest.txt", context)
        send_mail(
            subject=f"Your daily digest: {total} update{'s' if total != 1 else ''}",
            message=plain_message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
            html_message=html_message,
            fail_silently=False,
        )
    except Exception as exc:
        msg = f"Could not deliver digest to {user.email}"
        raise UpstreamError(msg, details={"reason": str(exc)}) from exc
    logger.info("Digest email sent to %s (%d items)", user.email, total)


def send_invitation_email(invitation) -> bool:
    """Send a team invitation; returns False instead of raising on failure."""

    inviter = invitation.invited_by
    context = {
        "team_name": invitation.team.name,
        "inviter_name": _user_name(inviter) if inviter else "A teammate",
        "role": invitation.get_role_display(),
        "accept_url": f"{settings.FRONTEND_URL}/invitations/{invitation.token}",
        "expires_at": invitation.expires_at,
    }
    try:
        html_message = render_to_string("emails/team_invitation.html", context)
        plain_message = render_to_string("emails/team_invitation.txt", context)
        send_mail(
            subject=f"You're invited to join {invitation.team.name}",
            message=plain_message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[invitation.email],
            html_message=html_message,
            fail_silently=False,
        )
    except Exception:
        logger.exception("Failed to send invitation email to %s", invitation.email)
        return False
    logger.info("Invitation email sent to %s", invitation.email)
    return True
