from django.conf import settings
from django.urls import include
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from taskhub.attachments.api.views import AttachmentViewSet
from taskhub.comments.api.views import CommentViewSet
from taskhub.notifications.api.views import NotificationViewSet
from taskhub.projects.api.views import ProjectViewSet
from taskhub.tasks.api.views import TaskViewSet
from taskhub.teams.api.views import InvitationViewSet
from taskhub.teams.api.views import TeamViewSet
from taskhub.users.api.views import UserViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("users", UserViewSet)
# Registered before "teams" so the token lookup is not read as a team id
router.register("teams/invitations", InvitationViewSet, basename="invitations")
router.register("teams", TeamViewSet, basename="teams")
router.register("projects", ProjectViewSet, basename="projects")
router.register("tasks", TaskViewSet, basename="tasks")
router.register("comments", CommentViewSet, basename="comments")
router.register("attachments", AttachmentViewSet, basename="attachments")
router.register("notifications", NotificationViewSet, basename="notifications")


app_name = "api"
urlpatterns = [
    path(
        "activities/",
        include(("taskhub.activity.api.urls", "activity"), namespace="activity"),
    ),
    *router.urls,
]
