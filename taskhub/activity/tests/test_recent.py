from __future__ import annotations

from django.utils import timezone
from rest_framework import status

from taskhub.activity.models import Activity
from taskhub.activity.utils import log_activity
from tests.factories import create_project
from tests.factories import create_team
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_MEMBER
from tests.mixins import ROLE_OUTSIDER
from tests.mixins import ROLE_VIEWER
from tests.mixins import RoleAPITestCase


class TestRecentActivityEndpoint(RoleAPITestCase):
    def test_requires_authentication(self):
        response = self.client.get("/api/v1/activities/recent/")
        self.assert_http_status(response, status.HTTP_401_UNAUTHORIZED)

    def test_task_activity_is_attributed_to_project_and_team(self):
        row = log_activity("task_updated", task=self.world.task, message="x")
        assert row.project == self.world.project
        assert row.team == self.world.team

    def test_feed_is_newest_first_and_limited(self):
        base = timezone.now()
        created = [
            log_activity(f"test_action_{i}", project=self.world.project)
            for i in range(6)
        ]
        for i, row in enumerate(created):
            Activity.objects.filter(pk=row.pk).update(
                created_at=base + timezone.timedelta(seconds=i),
            )

        res = self.get(
            "api_v1:activity:recent",
            role=ROLE_VIEWER,
            data={"limit": 5},
        )
        self.assert_http_status(res, status.HTTP_200_OK)
        assert res.data["limit"] == 5
        actions = [r["action"] for r in res.data["results"]]
        assert actions == [
            "test_action_5",
            "test_action_4",
            "test_action_3",
            "test_action_2",
            "test_action_1",
        ]

    def test_limit_is_clamped(self):
        res = self.get("api_v1:activity:recent", role=ROLE_MEMBER, data={"limit": 500})
        assert res.data["limit"] == 50
        res = self.get("api_v1:activity:recent", role=ROLE_MEMBER, data={"limit": "x"})
        assert res.data["limit"] == 20

    def test_feed_is_scoped_to_readable_projects(self):
        other_team = create_team(self.users[ROLE_OUTSIDER], name="Other")
        hidden = create_project(other_team, self.users[ROLE_OUTSIDER], name="Hidden")
        log_activity("visible", project=self.world.project)
        log_activity("secret", project=hidden)

        mine = self.get("api_v1:activity:recent", role=ROLE_VIEWER)
        assert [r["action"] for r in mine.data["results"]] == ["visible"]

        everything = self.get("api_v1:activity:recent", role=ROLE_ADMIN)
        assert {r["action"] for r in everything.data["results"]} == {
            "visible",
            "secret",
        }

    def test_project_filter_checks_access(self):
        other_team = create_team(self.users[ROLE_OUTSIDER], name="Other")
        hidden = create_project(other_team, self.users[ROLE_OUTSIDER], name="Hidden")

        denied = self.get(
            "api_v1:activity:recent",
            role=ROLE_VIEWER,
            data={"project": hidden.pk},
        )
        self.assert_denied(denied)

        missing = self.get(
            "api_v1:activity:recent",
            role=ROLE_VIEWER,
            data={"project": 999999},
        )
        self.assert_http_status(missing, status.HTTP_404_NOT_FOUND)
