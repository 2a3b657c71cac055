import django_filters

from taskhub.tasks.models import Task


class TaskFilter(django_filters.FilterSet):
    project = django_filters.NumberFilter(field_name="project__id")
    team = django_filters.NumberFilter(field_name="project__team__id")
    assignee = django_filters.NumberFilter(field_name="assignees__id")
    creator = django_filters.NumberFilter(field_name="creator__id")
    due_before = django_filters.IsoDateTimeFilter(
        field_name="due_date", lookup_expr="lte"
    )
    due_after = django_filters.IsoDateTimeFilter(
        field_name="due_date", lookup_expr="gte"
    )
    archived = django_filters.BooleanFilter(field_name="is_archived")

    class Meta:
        model = Task
        fields = [
            "project",
            "team",
            "status",
            "priority",
            "assignee",
            "creator",
            "due_before",
            "due_after",
            "archived",
        ]
