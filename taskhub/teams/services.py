"""Team membership rules.

* The owner is always an ``admin`` member and can be neither removed nor
  re-roled.
* A team keeps at least one admin.
* Removing a member also drops them from every project of the team and from
  every task assignee list and subtask assignment in those projects, and
  their live sockets leave those project rooms.
* A team that still owns projects cannot be deleted.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from taskhub.access.roles import is_global_admin
from taskhub.activity.utils import log_activity
from taskhub.core.exceptions import AuthorizationError
from taskhub.core.exceptions import ConflictError
from taskhub.core.exceptions import NotFoundError
from taskhub.core.exceptions import ValidationError
from taskhub.notifications.email import send_invitation_email
from taskhub.notifications.models import Notification
from taskhub.notifications.services import notify
from taskhub.projects.models import ProjectMembership
from taskhub.realtime import hub
from taskhub.realtime.rooms import project_room
from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task

from .models import Invitation
from .models import Team
from .models import TeamMembership

logger = logging.getLogger(__name__)

User = get_user_model()


@transaction.atomic
def create_team(owner, *, name: str, description: str = "") -> Team:
    team = Team.objects.create(owner=owner, name=name, description=description)
    TeamMembership.objects.create(
        team=team,
        user=owner,
        role=TeamMembership.Role.ADMIN,
    )
    log_activity("team_created", actor=owner, team=team, message=team.name)
    return team


def _membership(team: Team, user) -> TeamMembership:
    try:
        return TeamMembership.objects.select_for_update().get(team=team, user=user)
    except TeamMembership.DoesNotExist as exc:
        msg = "User is not a member of this team."
        raise NotFoundError(msg) from exc


def _check_role(role: str) -> None:
    if role not in TeamMembership.Role.values:
        msg = f"Unknown team role '{role}'."
        raise ValidationError(msg, details={"role": [msg]})


@transaction.atomic
def add_team_member(team: Team, user, role: str, *, actor=None) -> TeamMembership:
    _check_role(role)
    if not user.is_active:
        msg = "Inactive users cannot join a team."
        raise ValidationError(msg)
    membership, created = TeamMembership.objects.get_or_create(
        team=team,
        user=user,
        defaults={"role": role},
    )
    if not created:
        msg = "User is already a member of this team."
        raise ConflictError(msg)
    log_activity(
        "team_member_added",
        actor=actor,
        team=team,
        message=user.username,
        metadata={"user": user.pk, "role": role},
    )
    return membership


@transaction.atomic
def remove_team_member(team: Team, user, *, actor=None) -> dict[str, int]:
    if user.pk == team.owner_id:
        msg = "The team owner cannot be removed."
        raise ValidationError(msg)
    membership = _membership(team, user)
    if membership.role == TeamMembership.Role.ADMIN and _admin_count(team) <= 1:
        msg = "A team must keep at least one admin."
        raise ValidationError(msg)

    project_rows, _ = ProjectMembership.objects.filter(
        project__team=team,
        user=user,
    ).delete()
    assignee_rows, _ = Task.assignees.through.objects.filter(
        task__project__team=team,
        user_id=user.pk,
    ).delete()
    subtask_rows = Subtask.objects.filter(
        task__project__team=team,
        assigned_to=user,
    ).update(assigned_to=None)
    membership.delete()
    if not is_global_admin(user):
        project_ids = team.projects.values_list("pk", flat=True)
        rooms = [project_room(pk) for pk in project_ids]
        transaction.on_commit(lambda: hub.evict_from_rooms(user.pk, rooms))

    log_activity(
        "team_member_removed",
        actor=actor,
        team=team,
        message=user.username,
        metadata={
            "user": user.pk,
            "project_memberships": project_rows,
            "task_assignments": assignee_rows,
            "subtask_assignments": subtask_rows,
        },
    )
    notify(
        user,
        Notification.Type.TEAM_REMOVED,
        "Removed from team",
        f"You were removed from {team.name}.",
        sender=actor,
    )
    return {
        "project_memberships": project_rows,
        "task_assignments": assignee_rows,
        "subtask_assignments": subtask_rows,
    }


def _admin_count(team: Team) -> int:
    return TeamMembership.objects.filter(
        team=team,
        role=TeamMembership.Role.ADMIN,
    ).count()


@transaction.atomic
def change_team_member_role(
    team: Team,
    user,
    role: str,
    *,
    actor=None,
) -> TeamMembership:
    _check_role(role)
    if user.pk == team.owner_id:
        msg = "The team owner's role cannot be changed."
        raise ValidationError(msg)
    membership = _membership(team, user)
    if membership.role == role:
        return membership
    if (
        membership.role == TeamMembership.Role.ADMIN
        and role != TeamMembership.Role.ADMIN
        and _admin_count(team) <= 1
    ):
        msg = "A team must keep at least one admin."
        raise ValidationError(msg)

    old_role = membership.role
    membership.role = role
    membership.save(update_fields=["role"])
    log_activity(
        "team_member_role_changed",
        actor=actor,
        team=team,
        message=user.username,
        metadata={"user": user.pk, "from": old_role, "to": role},
    )
    notify(
        user,
        Notification.Type.ROLE_CHANGED,
        "Your team role changed",
        f"Your role in {team.name} is now {membership.get_role_display()}.",
        sender=actor,
    )
    return membership


@transaction.atomic
def delete_team(team: Team, *, actor=None) -> None:
    project_count = team.projects.count()
    if project_count:
        msg = f"Cannot delete team with {project_count} project(s)"
        raise ConflictError(msg)
    log_activity("team_deleted", actor=actor, message=team.name)
    team.delete()
    logger.info("Team %s deleted by %s", team.name, getattr(actor, "pk", None))


# Invitations -----------------------------------------------------------------


@transaction.atomic
def invite(team: Team, email: str, role: str, *, invited_by) -> Invitation:
    _check_role(role)
    email = email.strip().lower()
    if TeamMembership.objects.filter(team=team, user__email__iexact=email).exists():
        msg = "This user is already a member of the team."
        raise ConflictError(msg)
    now = timezone.now()
    pending = Invitation.objects.filter(
        team=team,
        email__iexact=email,
        status=Invitation.Status.PENDING,
    )
    if pending.filter(expires_at__gt=now).exists():
        msg = "An invitation is already pending for this email."
        raise ConflictError(msg)
    pending.update(status=Invitation.Status.EXPIRED)

    invitation = Invitation.objects.create(
        team=team,
        email=email,
        role=role,
        invited_by=invited_by,
        expires_at=now + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
    )
    invitee = User.objects.filter(email__iexact=email, is_active=True).first()
    if invitee is not None:
        notify(
            invitee,
            Notification.Type.TEAM_INVITATION,
            "Team invitation",
            f"You were invited to join {team.name}.",
            sender=invited_by,
            action_url=f"/invitations/{invitation.token}",
        )
    log_activity(
        "team_invitation_sent",
        actor=invited_by,
        team=team,
        message=email,
        metadata={"role": role},
    )
    transaction.on_commit(lambda: send_invitation_email(invitation))
    return invitation


def _pending_invitation(token: str) -> Invitation:
    try:
        return Invitation.objects.select_related("team").get(
            token=token,
            status=Invitation.Status.PENDING,
        )
    except Invitation.DoesNotExist as exc:
        msg = "Invitation not found."
        raise NotFoundError(msg) from exc


def _check_invitee(invitation: Invitation, user) -> None:
    if invitation.email.lower() != (user.email or "").lower():
        msg = "invitation addressed to another email"
        raise AuthorizationError(msg)


def expire(invitation: Invitation) -> Invitation:
    invitation.status = Invitation.Status.EXPIRED
    invitation.save(update_fields=["status"])
    return invitation


@transaction.atomic
def accept_invitation(token: str, user) -> Invitation:
    """Join the team. An out-of-date invitation is flipped to ``expired``
    and returned as-is; callers check ``status``.
    """

    invitation = _pending_invitation(token)
    _check_invitee(invitation, user)
    if invitation.is_expired:
        return expire(invitation)

    TeamMembership.objects.get_or_create(
        team=invitation.team,
        user=user,
        defaults={"role": invitation.role},
    )
    invitation.status = Invitation.Status.ACCEPTED
    invitation.responded_at = timezone.now()
    invitation.save(update_fields=["status", "responded_at"])
    log_activity(
        "team_invitation_accepted",
        actor=user,
        team=invitation.team,
        message=user.username,
    )
    return invitation


@transaction.atomic
def decline_invitation(token: str, user) -> Invitation:
    invitation = _pending_invitation(token)
    _check_invitee(invitation, user)
    invitation.status = Invitation.Status.DECLINED
    invitation.responded_at = timezone.now()
    invitation.save(update_fields=["status", "responded_at"])
    return invitation


def pending_invitations_for(user):
    return Invitation.objects.filter(
        email__iexact=user.email,
        status=Invitation.Status.PENDING,
        expires_at__gt=timezone.now(),
    ).select_related("team", "invited_by")


def expire_stale_invitations() -> int:
    return Invitation.objects.filter(
        status=Invitation.Status.PENDING,
        expires_at__lte=timezone.now(),
    ).update(status=Invitation.Status.EXPIRED)
