from http import HTTPStatus

import pytest
from django.urls import reverse
from drf_spectacular.generators import SchemaGenerator


def test_api_v1_docs_accessible_by_admin(admin_client):
    url = reverse("api-docs-v1")
    response = admin_client.get(url)
    assert response.status_code == HTTPStatus.OK


@pytest.mark.django_db
def test_api_v1_docs_not_accessible_by_anonymous_users(client):
    url = reverse("api-docs-v1")
    response = client.get(url)
    assert response.status_code in {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN}


def test_api_v1_schema_generated_successfully(admin_client):
    url = reverse("api-schema-v1")
    response = admin_client.get(url)
    assert response.status_code == HTTPStatus.OK


def test_schema_tag_grouping(db):
    generator = SchemaGenerator()
    schema = generator.get_schema(request=None, public=True)
    paths = schema["paths"]
    expected = {
        "/api/v1/teams/": ["Teams"],
        "/api/v1/projects/": ["Projects"],
        "/api/v1/tasks/": ["Tasks"],
        "/api/v1/comments/": ["Comments"],
        "/api/v1/notifications/": ["Notifications"],
        "/api/v1/users/": ["Users"],
    }
    for path, tags in expected.items():
        first_op = next(iter(paths[path].values()))
        assert first_op.get("tags") == tags, path
