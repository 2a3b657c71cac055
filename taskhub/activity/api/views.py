from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import Q
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from taskhub.access.guards import Action
from taskhub.access.guards import ensure
from taskhub.access.roles import is_global_admin
from taskhub.access.roles import readable_project_ids
from taskhub.access.roles import readable_team_ids
from taskhub.activity.api.serializers import ActivitySerializer
from taskhub.activity.models import Activity
from taskhub.projects.models import Project

if TYPE_CHECKING:
    from django.db.models import QuerySet


class RecentActivityView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Activity"],
        parameters=[
            OpenApiParameter("project", int, description="Limit to one project"),
            OpenApiParameter("limit", int, description="1-50, default 20"),
        ],
        responses=ActivitySerializer(many=True),
    )
    def get(self, request):
        user = request.user
        try:
            limit = int(request.query_params.get("limit", "20"))
        except (TypeError, ValueError):
            limit = 20
        limit = max(1, min(limit, 50))

        qs: QuerySet[Activity] = Activity.objects.select_related("actor")
        project_id = request.query_params.get("project")
        if project_id:
            project = get_object_or_404(
                Project.objects.select_related("team"),
                pk=project_id if project_id.isdigit() else 0,
            )
            ensure(user, Action.READ, project)
            qs = qs.filter(project=project)
        elif not is_global_admin(user):
            qs = qs.filter(
                Q(project_id__in=readable_project_ids(user))
                | Q(project__isnull=True, team_id__in=readable_team_ids(user))
                | Q(actor=user),
            )
        rows = list(qs[:limit])
        data = ActivitySerializer(rows, many=True).data
        return Response({"results": data, "limit": limit})
