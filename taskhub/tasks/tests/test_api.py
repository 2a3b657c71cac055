from rest_framework import status

from taskhub.notifications.models import Notification
from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task
from taskhub.tasks.models import TaskStatus
from tests.factories import create_task
from tests.mixins import ROLE_MANAGER
from tests.mixins import ROLE_MEMBER
from tests.mixins import ROLE_OUTSIDER
from tests.mixins import ROLE_OWNER
from tests.mixins import ROLE_VIEWER
from tests.mixins import RoleAPITestCase


class TaskAPITests(RoleAPITestCase):
    def task_kwargs(self, **extra):
        return {"pk": self.world.task.pk, **extra}

    def test_manager_creates_task_with_assignees_and_subtasks(self):
        response = self.post(
            "api_v1:tasks-list",
            role=ROLE_MANAGER,
            payload={
                "project": self.world.project.pk,
                "title": "Ship release",
                "priority": "high",
                "assignee_ids": [self.users[ROLE_MEMBER].pk],
                "subtasks": [{"title": "Tag"}, {"title": "Announce"}],
            },
        )
        self.assert_http_status(response, status.HTTP_201_CREATED)
        task = Task.objects.get(pk=response.data["id"])
        assert task.creator == self.users[ROLE_MANAGER]
        assert list(task.assignees.all()) == [self.users[ROLE_MEMBER]]
        assert task.subtasks.count() == 2
        assert Notification.objects.filter(
            recipient=self.users[ROLE_MEMBER],
            notification_type=Notification.Type.TASK_ASSIGNED,
            task=task,
        ).exists()

    def test_member_cannot_create_task(self):
        response = self.post(
            "api_v1:tasks-list",
            role=ROLE_MEMBER,
            payload={"project": self.world.project.pk, "title": "Sneaky"},
        )
        self.assert_denied(response)

    def test_viewer_cannot_be_assigned(self):
        response = self.post(
            "api_v1:tasks-list",
            role=ROLE_MANAGER,
            payload={
                "project": self.world.project.pk,
                "title": "Review",
                "assignee_ids": [self.users[ROLE_VIEWER].pk],
            },
        )
        self.assert_http_status(response, status.HTTP_400_BAD_REQUEST)
        assert response.data["details"] == {
            "assignees": [self.users[ROLE_VIEWER].pk],
        }

    def test_assignee_updates_status(self):
        response = self.patch(
            "api_v1:tasks-detail",
            role=ROLE_MEMBER,
            payload={"status": "in_progress", "progress": 30},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_http_status(response, status.HTTP_200_OK)
        self.world.task.refresh_from_db()
        assert self.world.task.status == TaskStatus.IN_PROGRESS
        assert self.world.task.progress == 30

    def test_assignee_mixing_in_other_fields_is_denied_entirely(self):
        response = self.patch(
            "api_v1:tasks-detail",
            role=ROLE_MEMBER,
            payload={"status": "in_progress", "title": "Hijacked"},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_denied(response)
        self.world.task.refresh_from_db()
        assert self.world.task.status == TaskStatus.TODO
        assert self.world.task.title == "Write docs"

    def test_viewer_cannot_update(self):
        response = self.patch(
            "api_v1:tasks-detail",
            role=ROLE_VIEWER,
            payload={"status": "in_progress"},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_denied(response)

    def test_invalid_transition_is_rejected(self):
        response = self.patch(
            "api_v1:tasks-detail",
            role=ROLE_OWNER,
            payload={"status": "completed"},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_http_status(response, status.HTTP_400_BAD_REQUEST)
        assert response.data["details"]["allowed"] == [
            "blocked",
            "cancelled",
            "in_progress",
        ]

    def test_completion_stamps_and_notifies_creator(self):
        Task.objects.filter(pk=self.world.task.pk).update(
            status=TaskStatus.IN_PROGRESS,
        )

        done = self.patch(
            "api_v1:tasks-detail",
            role=ROLE_MEMBER,
            payload={"status": "completed"},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_http_status(done, status.HTTP_200_OK)
        assert done.data["completed_at"] is not None
        assert done.data["progress"] == 100
        assert Notification.objects.filter(
            recipient=self.users[ROLE_OWNER],
            notification_type=Notification.Type.TASK_COMPLETED,
        ).exists()

        reopened = self.patch(
            "api_v1:tasks-detail",
            role=ROLE_MEMBER,
            payload={"status": "in_progress"},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_http_status(reopened, status.HTTP_200_OK)
        assert reopened.data["completed_at"] is None

    def test_project_cannot_change(self):
        response = self.patch(
            "api_v1:tasks-detail",
            role=ROLE_OWNER,
            payload={"project": self.world.project.pk + 100},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_http_status(response, status.HTTP_400_BAD_REQUEST)

    def test_filters(self):
        create_task(
            self.world.project,
            self.users[ROLE_OWNER],
            title="Unassigned",
            priority="urgent",
        )

        mine = self.get(
            "api_v1:tasks-list",
            role=ROLE_MEMBER,
            data={"assignee": self.users[ROLE_MEMBER].pk},
        )
        self.assert_http_status(mine, status.HTTP_200_OK)
        assert [row["title"] for row in mine.data["results"]] == ["Write docs"]

        urgent = self.get(
            "api_v1:tasks-list",
            role=ROLE_MEMBER,
            data={"priority": "urgent"},
        )
        assert [row["title"] for row in urgent.data["results"]] == ["Unassigned"]

    def test_outsider_sees_no_tasks(self):
        response = self.get("api_v1:tasks-list", role=ROLE_OUTSIDER)
        self.assert_http_status(response, status.HTTP_200_OK)
        assert response.data["results"] == []

    def test_archive_and_restore(self):
        archived = self.post(
            "api_v1:tasks-archive",
            role=ROLE_MANAGER,
            payload={"archived": True},
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_http_status(archived, status.HTTP_200_OK)
        assert archived.data["is_archived"] is True

        hidden = self.get(
            "api_v1:tasks-list",
            role=ROLE_MANAGER,
            data={"archived": "false"},
        )
        assert hidden.data["results"] == []

        restored = self.post(
            "api_v1:tasks-archive",
            role=ROLE_MANAGER,
            payload={"archived": False},
            reverse_kwargs=self.task_kwargs(),
        )
        assert restored.data["is_archived"] is False

    def test_delete_requires_manager(self):
        denied = self.delete(
            "api_v1:tasks-detail",
            role=ROLE_MEMBER,
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_denied(denied)

        deleted = self.delete(
            "api_v1:tasks-detail",
            role=ROLE_MANAGER,
            reverse_kwargs=self.task_kwargs(),
        )
        self.assert_http_status(deleted, status.HTTP_204_NO_CONTENT)
        assert not Task.objects.filter(pk=self.world.task.pk).exists()


class SubtaskAPITests(RoleAPITestCase):
    def setUp(self):
        super().setUp()
        self.subtask = Subtask.objects.create(task=self.world.task, title="Outline")

    def subtask_kwargs(self):
        return {"pk": self.world.task.pk, "subtask_id": self.subtask.pk}

    def test_creator_adds_subtask(self):
        response = self.post(
            "api_v1:tasks-subtasks",
            role=ROLE_OWNER,
            payload={"title": "Proofread"},
            reverse_kwargs={"pk": self.world.task.pk},
        )
        self.assert_http_status(response, status.HTTP_201_CREATED)
        assert self.world.task.subtasks.count() == 2

    def test_assignee_cannot_add_subtask(self):
        response = self.post(
            "api_v1:tasks-subtasks",
            role=ROLE_MEMBER,
            payload={"title": "Proofread"},
            reverse_kwargs={"pk": self.world.task.pk},
        )
        self.assert_denied(response)

    def test_assignee_completes_subtask(self):
        response = self.patch(
            "api_v1:tasks-subtask-detail",
            role=ROLE_MEMBER,
            payload={"status": "completed"},
            reverse_kwargs=self.subtask_kwargs(),
        )
        self.assert_http_status(response, status.HTTP_200_OK)
        assert response.data["completed_at"] is not None
        assert Notification.objects.filter(
            recipient=self.users[ROLE_OWNER],
            notification_type=Notification.Type.SUBTASK_COMPLETED,
        ).exists()

    def test_viewer_lists_but_cannot_delete(self):
        listed = self.get(
            "api_v1:tasks-subtasks",
            role=ROLE_VIEWER,
            reverse_kwargs={"pk": self.world.task.pk},
        )
        self.assert_http_status(listed, status.HTTP_200_OK)
        assert [row["title"] for row in listed.data] == ["Outline"]

        denied = self.delete(
            "api_v1:tasks-subtask-detail",
            role=ROLE_VIEWER,
            reverse_kwargs=self.subtask_kwargs(),
        )
        self.assert_denied(denied)
