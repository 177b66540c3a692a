"""Integration tests for the provider credential API

Tests cover:
- Bundle is stored as one ciphertext and never returned in metadata responses
- Config endpoint decrypts for ADMIN, 403 for lower roles
- One default per (org, kind)
- Name conflicts
- Every mutation writes exactly one audit record without secret values
"""

import json
from uuid import UUID

import pytest
from sqlalchemy import select

from auth.roles import OrgRole
from fixtures.multi_org import add_membership, auth_headers, create_user, day
from models.audit_log import AuditLog
from models.provider_credential import ProviderCredential

pytestmark = pytest.mark.integration

BASE = "/api/v1/providers"

OPENAI_BUNDLE = {"api_key": "sk-live-very-secret", "organization": "org-123"}


def credential_body(**overrides):
    body = {
        "kind": "AI",
        "provider": "openai",
        "name": "Production OpenAI",
        "config": OPENAI_BUNDLE,
        "is_default": True,
    }
    body.update(overrides)
    return body


@pytest.fixture
def owner(two_org_user):
    user, org_a, _ = two_org_user
    return user, org_a


async def audit_actions(session_factory, org_id):
    async with session_factory() as session:
        result = await session.execute(
            select(AuditLog).where(AuditLog.organization_id == org_id).order_by(AuditLog.timestamp)
        )
        return list(result.scalars().all())


async def stored_credential(session_factory, credential_id):
    async with session_factory() as session:
        result = await session.execute(
            select(ProviderCredential).where(ProviderCredential.id == UUID(str(credential_id)))
        )
        return result.scalar_one_or_none()


class TestCreate:

    async def test_create_returns_metadata_only(self, client, owner):
        user, org_a = owner

        response = await client.post(BASE, json=credential_body(), headers=auth_headers(user))

        assert response.status_code == 201
        data = response.json()
        assert data["kind"] == "AI"
        assert data["provider"] == "openai"
        assert data["is_default"] is True
        assert "config" not in data
        assert "sk-live-very-secret" not in response.text

    async def test_bundle_stored_as_single_ciphertext(self, client, session_factory, owner):
        user, org_a = owner

        response = await client.post(BASE, json=credential_body(), headers=auth_headers(user))

        stored = await stored_credential(session_factory, response.json()["id"])
        assert stored.org_id == org_a.id
        assert set(stored.config_encrypted) == {"ciphertext", "iv", "auth_tag"}
        assert "sk-live-very-secret" not in json.dumps(stored.config_encrypted)

    async def test_duplicate_name_conflicts(self, client, owner):
        user, _ = owner
        headers = auth_headers(user)

        await client.post(BASE, json=credential_body(), headers=headers)
        response = await client.post(BASE, json=credential_body(), headers=headers)

        assert response.status_code == 409

    async def test_same_name_other_kind_is_fine(self, client, owner):
        user, _ = owner
        headers = auth_headers(user)

        await client.post(BASE, json=credential_body(), headers=headers)
        response = await client.post(
            BASE,
            json=credential_body(kind="EMAIL", provider="smtp", config={"host": "smtp.example.com"}),
            headers=headers,
        )

        assert response.status_code == 201

    async def test_invalid_kind_is_validation_error(self, client, owner):
        user, _ = owner

        response = await client.post(BASE, json=credential_body(kind="FAX"), headers=auth_headers(user))

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    async def test_member_cannot_create(self, client, db_session, org_a):
        member = await create_user(db_session)
        await add_membership(db_session, member, org_a, OrgRole.MEMBER, day(1))

        response = await client.post(BASE, json=credential_body(), headers=auth_headers(member))

        assert response.status_code == 403


class TestReadConfig:

    async def test_admin_reads_decrypted_bundle(self, client, owner):
        user, _ = owner
        headers = auth_headers(user)
        created = (await client.post(BASE, json=credential_body(), headers=headers)).json()

        response = await client.get(f"{BASE}/{created['id']}/config", headers=headers)

        assert response.status_code == 200
        assert response.json()["config"] == OPENAI_BUNDLE

    async def test_member_lists_but_cannot_read_config(self, client, db_session, owner):
        user, org_a = owner
        created = (await client.post(BASE, json=credential_body(), headers=auth_headers(user))).json()
        member = await create_user(db_session)
        await add_membership(db_session, member, org_a, OrgRole.MEMBER, day(2))

        listing = await client.get(BASE, headers=auth_headers(member))
        config = await client.get(f"{BASE}/{created['id']}/config", headers=auth_headers(member))

        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert config.status_code == 403

    async def test_viewer_cannot_list(self, client, two_org_user):
        user, _, org_b = two_org_user
        headers = {**auth_headers(user), "Cookie": f"kz_org={org_b.id}"}

        response = await client.get(BASE, headers=headers)

        assert response.status_code == 403

    async def test_tampered_bundle_aborts_request(self, client, session_factory, owner):
        user, _ = owner
        headers = auth_headers(user)
        created = (await client.post(BASE, json=credential_body(), headers=headers)).json()

        async with session_factory() as session:
            stored = await session.get(ProviderCredential, UUID(created["id"]))
            tampered = dict(stored.config_encrypted)
            raw = bytearray(bytes.fromhex(tampered["ciphertext"]))
            raw[0] ^= 0x01
            tampered["ciphertext"] = raw.hex()
            stored.config_encrypted = tampered
            await session.commit()

        response = await client.get(f"{BASE}/{created['id']}/config", headers=headers)

        assert response.status_code == 500
        assert response.json()["error"] == "secret_error"
        assert "config" not in response.json()

    async def test_unknown_id_is_404(self, client, owner):
        user, _ = owner

        response = await client.get(
            f"{BASE}/00000000-0000-0000-0000-000000000000/config", headers=auth_headers(user)
        )

        assert response.status_code == 404


class TestListFilter:

    async def test_filter_by_kind(self, client, owner):
        user, _ = owner
        headers = auth_headers(user)
        await client.post(BASE, json=credential_body(), headers=headers)
        await client.post(
            BASE,
            json=credential_body(kind="STORAGE", provider="s3", name="Assets", config={"bucket": "b"}),
            headers=headers,
        )

        response = await client.get(BASE, params={"kind": "STORAGE"}, headers=headers)

        items = response.json()["items"]
        assert [item["provider"] for item in items] == ["s3"]


class TestUpdate:

    async def test_single_default_per_kind(self, client, session_factory, owner):
        user, org_a = owner
        headers = auth_headers(user)
        first = (await client.post(BASE, json=credential_body(), headers=headers)).json()
        second = (await client.post(BASE, json=credential_body(name="Backup OpenAI"), headers=headers)).json()

        assert (await stored_credential(session_factory, first["id"])).is_default is False
        assert (await stored_credential(session_factory, second["id"])).is_default is True

        response = await client.patch(f"{BASE}/{first['id']}", json={"is_default": True}, headers=headers)

        assert response.status_code == 200
        assert (await stored_credential(session_factory, first["id"])).is_default is True
        assert (await stored_credential(session_factory, second["id"])).is_default is False

    async def test_config_replacement_is_reencrypted(self, client, session_factory, owner):
        user, _ = owner
        headers = auth_headers(user)
        created = (await client.post(BASE, json=credential_body(), headers=headers)).json()
        before = (await stored_credential(session_factory, created["id"])).config_encrypted

        await client.patch(
            f"{BASE}/{created['id']}", json={"config": {"api_key": "sk-rotated"}}, headers=headers
        )

        after = (await stored_credential(session_factory, created["id"])).config_encrypted
        assert after["iv"] != before["iv"]
        config = await client.get(f"{BASE}/{created['id']}/config", headers=headers)
        assert config.json()["config"] == {"api_key": "sk-rotated"}

    async def test_rename_conflict(self, client, owner):
        user, _ = owner
        headers = auth_headers(user)
        await client.post(BASE, json=credential_body(), headers=headers)
        second = (await client.post(BASE, json=credential_body(name="Backup"), headers=headers)).json()

        response = await client.patch(
            f"{BASE}/{second['id']}", json={"name": "Production OpenAI"}, headers=headers
        )

        assert response.status_code == 409


class TestDelete:

    async def test_delete(self, client, session_factory, owner):
        user, _ = owner
        headers = auth_headers(user)
        created = (await client.post(BASE, json=credential_body(), headers=headers)).json()

        response = await client.delete(f"{BASE}/{created['id']}", headers=headers)

        assert response.status_code == 204
        assert await stored_credential(session_factory, created["id"]) is None
        again = await client.delete(f"{BASE}/{created['id']}", headers=headers)
        assert again.status_code == 404


class TestAuditTrail:

    async def test_one_record_per_mutation_without_secrets(self, client, session_factory, owner):
        user, org_a = owner
        headers = auth_headers(user)
        created = (await client.post(BASE, json=credential_body(), headers=headers)).json()
        await client.patch(
            f"{BASE}/{created['id']}", json={"config": {"api_key": "sk-rotated"}}, headers=headers
        )
        await client.get(f"{BASE}/{created['id']}/config", headers=headers)
        await client.delete(f"{BASE}/{created['id']}", headers=headers)

        entries = await audit_actions(session_factory, org_a.id)

        assert [entry.action for entry in entries] == [
            "PROVIDER_CREDENTIAL_CREATED",
            "PROVIDER_CREDENTIAL_UPDATED",
            "PROVIDER_CREDENTIAL_DELETED",
        ]
        assert all(entry.user_id == user.id for entry in entries)
        assert all(entry.resource_id == created["id"] for entry in entries)
        assert entries[1].new_values["config_changed"] is True

        serialized = json.dumps([[entry.old_values, entry.new_values] for entry in entries])
        assert "sk-live-very-secret" not in serialized
        assert "sk-rotated" not in serialized

    async def test_failed_mutation_is_not_audited(self, client, session_factory, owner):
        user, org_a = owner
        headers = auth_headers(user)
        await client.post(BASE, json=credential_body(), headers=headers)
        await client.post(BASE, json=credential_body(), headers=headers)

        entries = await audit_actions(session_factory, org_a.id)

        assert [entry.action for entry in entries] == ["PROVIDER_CREDENTIAL_CREATED"]
