import io
from pathlib import Path

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework.test import APIClient

from taskhub.attachments.models import Attachment
from taskhub.notifications.models import Notification
from taskhub.projects.models import ProjectMembership
from taskhub.teams.models import TeamMembership
from tests.factories import create_project
from tests.factories import create_task
from tests.factories import create_team
from tests.factories import create_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def media(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
    settings.FILE_UPLOAD_MAX_MEMORY_SIZE = 1  # force temp-file uploads
    return tmp_path / "media"


@pytest.fixture
def world(media):
    owner = create_user("owner")
    member = create_user("member")
    viewer = create_user("viewer")
    team = create_team(
        owner,
        members={
            member: TeamMembership.Role.MEMBER,
            viewer: TeamMembership.Role.MEMBER,
        },
    )
    project = create_project(
        team,
        owner,
        members={
            member: ProjectMembership.Role.MEMBER,
            viewer: ProjectMembership.Role.VIEWER,
        },
    )
    task = create_task(project, owner, assignees=[member])
    return {"owner": owner, "member": member, "viewer": viewer, "task": task}


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def png_upload(name="shot.png"):
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color="red").save(buf, format="PNG")
    return SimpleUploadedFile(name, buf.getvalue(), content_type="image/png")


def upload(user, task_id, file):
    return client_for(user).post(
        "/api/v1/attachments/",
        data={"task": task_id, "file": file},
        format="multipart",
    )


def test_member_uploads_document(world):
    doc = SimpleUploadedFile("notes.pdf", b"x" * 2048, content_type="application/pdf")

    res = upload(world["member"], world["task"].pk, doc)

    assert res.status_code == 201, res.data
    assert res.data["original_name"] == "notes.pdf"
    assert res.data["size"] == 2048
    assert res.data["is_image"] is False
    attachment = Attachment.objects.get(pk=res.data["id"])
    assert attachment.file.name.startswith(f"attachments/task_{world['task'].pk}/")
    assert Notification.objects.filter(
        recipient=world["owner"],
        notification_type=Notification.Type.FILE_UPLOADED,
    ).exists()


def test_valid_image_is_flagged(world):
    res = upload(world["member"], world["task"].pk, png_upload())
    assert res.status_code == 201, res.data
    assert res.data["is_image"] is True


def test_corrupt_image_is_rejected(world):
    fake = SimpleUploadedFile("shot.png", b"not an image", content_type="image/png")
    res = upload(world["member"], world["task"].pk, fake)
    assert res.status_code == 400
    assert res.data["error"] == "validation_error"
    assert "file" in res.data["details"]


def test_disallowed_extension_is_rejected(world):
    script = SimpleUploadedFile("run.exe", b"MZ", content_type="application/x-msdos")
    res = upload(world["member"], world["task"].pk, script)
    assert res.status_code == 400
    assert not Attachment.objects.exists()


def test_oversized_file_is_rejected(world, settings):
    settings.ATTACHMENT_MAX_MB = 1
    big = SimpleUploadedFile("big.zip", b"x" * (1024 * 1024 + 1))
    res = upload(world["member"], world["task"].pk, big)
    assert res.status_code == 400
    assert "too large" in str(res.data["details"]["file"])


def test_viewer_cannot_upload(world):
    doc = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
    res = upload(world["viewer"], world["task"].pk, doc)
    assert res.status_code == 403
    assert res.data["message"] == "Access denied"


def test_unknown_task_is_not_found(world):
    doc = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
    res = upload(world["member"], 999999, doc)
    assert res.status_code == 404


def test_list_and_delete(world, django_capture_on_commit_callbacks):
    doc = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
    created = upload(world["member"], world["task"].pk, doc)
    attachment = Attachment.objects.get(pk=created.data["id"])
    stored = attachment.file.path

    listed = client_for(world["viewer"]).get(
        "/api/v1/attachments/",
        {"task": world["task"].pk},
    )
    assert listed.status_code == 200
    assert [row["id"] for row in listed.data["results"]] == [attachment.pk]

    denied = client_for(world["viewer"]).delete(f"/api/v1/attachments/{attachment.pk}/")
    assert denied.status_code == 403

    with django_capture_on_commit_callbacks(execute=True):
        deleted = client_for(world["member"]).delete(
            f"/api/v1/attachments/{attachment.pk}/",
        )
    assert deleted.status_code == 204
    assert not Attachment.objects.filter(pk=attachment.pk).exists()
    assert not Path(stored).exists()
