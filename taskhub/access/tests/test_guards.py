import logging

import pytest

from taskhub.access.guards import Action
from taskhub.access.guards import allow
from taskhub.access.guards import ensure
from taskhub.attachments.models import Attachment
from taskhub.comments.models import Comment
from taskhub.comments.models import Reply
from taskhub.core.exceptions import AuthorizationError
from taskhub.projects.models import ProjectMembership
from taskhub.teams.models import TeamMembership
from tests.factories import create_project
from tests.factories import create_task
from tests.factories import create_team
from tests.factories import create_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def world():
    users = {
        name: create_user(name)
        for name in [
            "owner",
            "teamadmin",
            "manager",
            "member",
            "bystander",
            "viewer",
            "outsider",
        ]
    }
    users["admin"] = create_user("admin", role="admin")
    team = create_team(
        users["owner"],
        members={
            users["teamadmin"]: TeamMembership.Role.ADMIN,
            users["manager"]: TeamMembership.Role.MANAGER,
            users["member"]: TeamMembership.Role.MEMBER,
            users["bystander"]: TeamMembership.Role.MEMBER,
            users["viewer"]: TeamMembership.Role.MEMBER,
        },
    )
    project = create_project(
        team,
        users["owner"],
        members={
            users["member"]: ProjectMembership.Role.MEMBER,
            users["bystander"]: ProjectMembership.Role.MEMBER,
            users["viewer"]: ProjectMembership.Role.VIEWER,
        },
    )
    task = create_task(project, users["owner"], assignees=[users["member"]])
    comment = Comment.objects.create(
        task=task,
        project=project,
        author=users["viewer"],
        content="Looks good",
    )
    return {
        "users": users,
        "team": team,
        "project": project,
        "task": task,
        "comment": comment,
    }


def test_team_thresholds(world):
    users, team = world["users"], world["team"]
    assert allow(users["member"], Action.READ, team)
    assert not allow(users["outsider"], Action.READ, team)
    assert allow(users["manager"], Action.INVITE, team)
    assert not allow(users["member"], Action.INVITE, team)
    assert allow(users["teamadmin"], Action.MANAGE_MEMBERS, team)
    assert not allow(users["manager"], Action.MANAGE_MEMBERS, team)


def test_only_owner_or_global_admin_deletes_team(world):
    users, team = world["users"], world["team"]
    assert allow(users["owner"], Action.DELETE, team)
    assert not allow(users["teamadmin"], Action.DELETE, team)
    assert allow(users["admin"], Action.DELETE, team)


def test_project_creation_needs_team_manager(world):
    users, team = world["users"], world["team"]
    assert allow(users["manager"], Action.CREATE_PROJECT, team)
    assert not allow(users["member"], Action.CREATE_PROJECT, team)


def test_task_creator_and_managers_update_any_field(world):
    users, task = world["users"], world["task"]
    fields = ["title", "description", "assignee_ids"]
    assert allow(users["owner"], Action.UPDATE, task, fields=fields)
    assert allow(users["manager"], Action.UPDATE, task, fields=fields)


def test_task_creator_loses_update_once_removed_or_demoted(world):
    users, project = world["users"], world["project"]
    creator = users["bystander"]
    task = create_task(project, creator, title="Creator owned")
    assert allow(creator, Action.UPDATE, task, fields=["title"])

    ProjectMembership.objects.filter(project=project, user=creator).update(
        role=ProjectMembership.Role.VIEWER,
    )
    assert not allow(creator, Action.UPDATE, task, fields=["title"])

    ProjectMembership.objects.filter(project=project, user=creator).delete()
    TeamMembership.objects.filter(team=world["team"], user=creator).delete()
    assert not allow(creator, Action.UPDATE, task, fields=["title"])


def test_project_owner_loses_update_once_removed(world):
    users, team = world["users"], world["team"]
    owner = users["member"]
    project = create_project(
        team, owner, name="Side quest", members={owner: ProjectMembership.Role.MEMBER}
    )
    assert allow(owner, Action.UPDATE, project)

    ProjectMembership.objects.filter(project=project, user=owner).delete()
    TeamMembership.objects.filter(team=team, user=owner).delete()
    assert not allow(owner, Action.UPDATE, project)


def test_assignee_may_only_touch_status_and_progress(world):
    member, task = world["users"]["member"], world["task"]
    assert allow(member, Action.UPDATE, task, fields=["status"])
    assert allow(member, Action.UPDATE, task, fields=["status", "progress"])
    assert not allow(member, Action.UPDATE, task, fields=["status", "title"])
    assert not allow(member, Action.UPDATE, task, fields=[])
    assert not allow(member, Action.UPDATE, task)


def test_unassigned_member_and_viewer_cannot_update_task(world):
    users, task = world["users"], world["task"]
    assert not allow(users["bystander"], Action.UPDATE, task, fields=["status"])
    assert not allow(users["viewer"], Action.UPDATE, task, fields=["status"])


def test_viewer_assignee_is_still_read_only(world):
    users, task = world["users"], world["task"]
    task.assignees.add(users["viewer"])
    assert not allow(users["viewer"], Action.UPDATE, task, fields=["status"])


def test_comment_edits_stay_with_the_author(world):
    users, comment = world["users"], world["comment"]
    assert allow(users["viewer"], Action.UPDATE, comment)
    assert not allow(users["owner"], Action.UPDATE, comment)
    assert not allow(users["admin"], Action.UPDATE, comment)


def test_comment_delete_by_author_or_global_admin(world):
    users, comment = world["users"], world["comment"]
    assert allow(users["viewer"], Action.DELETE, comment)
    assert allow(users["admin"], Action.DELETE, comment)
    assert not allow(users["manager"], Action.DELETE, comment)


def test_reply_needs_project_membership(world):
    users, comment = world["users"], world["comment"]
    assert allow(users["viewer"], Action.REPLY, comment)
    assert not allow(users["outsider"], Action.REPLY, comment)
    reply = Reply.objects.create(comment=comment, author=users["member"], content="+1")
    assert allow(users["member"], Action.DELETE, reply)
    assert not allow(users["viewer"], Action.DELETE, reply)


def test_attachment_delete_by_uploader_or_manager(world):
    users, task = world["users"], world["task"]
    attachment = Attachment.objects.create(
        task=task,
        uploaded_by=users["member"],
        file="attachments/notes.txt",
        original_name="notes.txt",
        size=5,
    )
    assert allow(users["member"], Action.DELETE, attachment)
    assert allow(users["manager"], Action.DELETE, attachment)
    assert not allow(users["bystander"], Action.DELETE, attachment)


def test_inactive_and_anonymous_actors_are_denied(world):
    users, task = world["users"], world["task"]
    users["owner"].is_active = False
    assert not allow(users["owner"], Action.READ, task)
    assert not allow(None, Action.READ, task)


def test_ensure_raises_generic_denial_and_logs(world, caplog):
    users, task = world["users"], world["task"]
    with caplog.at_level(logging.WARNING, logger="taskhub.access.guards"):
        with pytest.raises(AuthorizationError) as excinfo:
            ensure(users["outsider"], Action.READ, task)
    assert excinfo.value.message == "Access denied"
    assert excinfo.value.status_code == 403
    assert "Access denied" in caplog.text
