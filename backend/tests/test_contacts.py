"""
ContactBook Backend — Contacts API Tests
==========================================

What:  /contacts CRUD over HTTP, including photo upload and per-user
       isolation.
How:   Two registered users per test where isolation matters. Photos go to
       the tmp-dir LocalMediaStorage and are fetched back through /files.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from app.exceptions import UpstreamError
from helpers import auth_headers, register_user

ALICE_CONTACT = {
    "name": "Mom",
    "phoneNumber": "+380501234567",
    "email": "mom@example.com",
    "isFavourite": "true",
    "contactType": "home",
}


@pytest_asyncio.fixture
async def alice(client):
    return auth_headers(await register_user(client))


@pytest_asyncio.fixture
async def bob(client):
    return auth_headers(
        await register_user(client, name="Bob Example", email="bob@example.com")
    )


async def _create(client, headers, data=None, files=None):
    return await client.post("/contacts", headers=headers, data=data or ALICE_CONTACT, files=files)


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_contact(self, client, alice):
        response = await _create(client, alice)
        assert response.status_code == 201

        body = response.json()
        assert body["status"] == 201
        assert body["message"] == "Successfully created a contact!"
        contact = body["data"]
        assert contact["name"] == "Mom"
        assert contact["phoneNumber"] == "+380501234567"
        assert contact["email"] == "mom@example.com"
        assert contact["isFavourite"] is True
        assert contact["contactType"] == "home"
        assert contact["photo"] is None
        assert contact["userId"]

    @pytest.mark.asyncio
    async def test_defaults(self, client, alice):
        response = await _create(client, alice, data={"name": "Plumber", "phoneNumber": "555-0100"})
        assert response.status_code == 201
        contact = response.json()["data"]
        assert contact["isFavourite"] is False
        assert contact["contactType"] == "personal"
        assert contact["email"] is None

    @pytest.mark.asyncio
    async def test_get_by_id(self, client, alice):
        created = (await _create(client, alice)).json()["data"]
        response = await client.get(f"/contacts/{created['id']}", headers=alice)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == f"Successfully found contact with id {created['id']}!"
        assert body["data"] == created

    @pytest.mark.asyncio
    async def test_list_newest_first(self, client, alice):
        for name in ("First", "Second", "Third"):
            await _create(client, alice, data={"name": name, "phoneNumber": "555-0100"})

        response = await client.get("/contacts", headers=alice)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Successfully found contacts!"
        assert [c["name"] for c in body["data"]] == ["Third", "Second", "First"]

    @pytest.mark.asyncio
    async def test_empty_list(self, client, alice):
        response = await client.get("/contacts", headers=alice)
        assert response.status_code == 200
        assert response.json()["data"] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            {"phoneNumber": "555-0100"},
            {"name": "Al", "phoneNumber": "555-0100"},
            {"name": "Plumber"},
            {"name": "Plumber", "phoneNumber": "555-0100", "email": "nope"},
            {"name": "Plumber", "phoneNumber": "555-0100", "contactType": "family"},
        ],
    )
    async def test_invalid_fields_are_400(self, client, alice, data):
        response = await _create(client, alice, data=data)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["errors"]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        assert (await client.get("/contacts")).status_code == 401
        assert (await client.post("/contacts", data=ALICE_CONTACT)).status_code == 401


class TestIsolation:
    @pytest.mark.asyncio
    async def test_foreign_contact_looks_missing(self, client, alice, bob):
        created = (await _create(client, alice)).json()["data"]
        url = f"/contacts/{created['id']}"

        assert (await client.get(url, headers=bob)).status_code == 404
        assert (await client.patch(url, headers=bob, data={"name": "Hacked"})).status_code == 404
        assert (await client.delete(url, headers=bob)).status_code == 404

        # Still intact for the owner
        response = await client.get(url, headers=alice)
        assert response.json()["data"]["name"] == "Mom"

    @pytest.mark.asyncio
    async def test_lists_are_per_user(self, client, alice, bob):
        await _create(client, alice)
        response = await client.get("/contacts", headers=bob)
        assert response.json()["data"] == []

    @pytest.mark.asyncio
    async def test_malformed_id_is_400(self, client, alice):
        response = await client.get("/contacts/not-a-uuid", headers=alice)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid ID format"

    @pytest.mark.asyncio
    async def test_unknown_id_is_404(self, client, alice):
        response = await client.get(
            "/contacts/00000000-0000-0000-0000-000000000000", headers=alice
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Contact not found"


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_patch_changes_only_sent_fields(self, client, alice):
        created = (await _create(client, alice)).json()["data"]

        response = await client.patch(
            f"/contacts/{created['id']}", headers=alice, data={"name": "Mother"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Successfully patched a contact!"
        patched = body["data"]
        assert patched["name"] == "Mother"
        assert patched["phoneNumber"] == created["phoneNumber"]
        assert patched["email"] == created["email"]
        assert patched["isFavourite"] is True
        assert patched["createdAt"] == created["createdAt"]

    @pytest.mark.asyncio
    async def test_patch_empty_email_clears_it(self, client, alice):
        created = (await _create(client, alice)).json()["data"]
        response = await client.patch(
            f"/contacts/{created['id']}", headers=alice, data={"email": ""}
        )
        assert response.status_code == 200
        assert response.json()["data"]["email"] is None

    @pytest.mark.asyncio
    async def test_patch_validates_fields(self, client, alice):
        created = (await _create(client, alice)).json()["data"]
        response = await client.patch(
            f"/contacts/{created['id']}", headers=alice, data={"contactType": "family"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client, alice):
        created = (await _create(client, alice)).json()["data"]
        url = f"/contacts/{created['id']}"

        response = await client.delete(url, headers=alice)
        assert response.status_code == 204
        assert response.content == b""

        assert (await client.get(url, headers=alice)).status_code == 404
        assert (await client.delete(url, headers=alice)).status_code == 404


class TestPhotos:
    @pytest.mark.asyncio
    async def test_create_with_photo_serves_file(self, client, alice, sample_image_bytes):
        response = await _create(
            client, alice, files={"photo": ("mom.png", sample_image_bytes, "image/png")}
        )
        assert response.status_code == 201
        photo = response.json()["data"]["photo"]
        assert photo.startswith("/files/")
        assert photo.endswith(".png")

        served = await client.get(photo)
        assert served.status_code == 200
        assert served.content == sample_image_bytes
        assert served.headers["content-type"] == "image/png"

    @pytest.mark.asyncio
    async def test_patch_replaces_photo(self, client, alice, sample_image_bytes):
        created = (await _create(client, alice)).json()["data"]
        response = await client.patch(
            f"/contacts/{created['id']}",
            headers=alice,
            files={"photo": ("new.png", sample_image_bytes, "image/png")},
        )
        assert response.status_code == 200
        assert response.json()["data"]["photo"].startswith("/files/")
        assert response.json()["data"]["name"] == "Mom"

    @pytest.mark.asyncio
    async def test_disguised_file_is_400(self, client, alice):
        response = await _create(
            client, alice, files={"photo": ("evil.png", b"#!/bin/sh\necho hi\n", "image/png")}
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "photo"

    @pytest.mark.asyncio
    async def test_unsupported_extension_is_400(self, client, alice, sample_image_bytes):
        response = await _create(
            client, alice, files={"photo": ("doc.pdf", sample_image_bytes, "application/pdf")}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_media_failure_creates_nothing(self, client, app, alice, sample_image_bytes):
        app.state.media_storage._put = AsyncMock(
            side_effect=UpstreamError(service="storage", message="Failed to save uploaded image.")
        )

        response = await _create(
            client, alice, files={"photo": ("mom.png", sample_image_bytes, "image/png")}
        )
        assert response.status_code == 502
        assert response.json()["error"] == "upstream_error"

        listed = await client.get("/contacts", headers=alice)
        assert listed.json()["data"] == []

    @pytest.mark.asyncio
    async def test_files_route_refuses_traversal(self, client):
        response = await client.get("/files/..%2F..%2Fetc%2Fpasswd")
        assert response.status_code == 404
