"""Security tests for tenant escape attempts

Tests cover:
- Forged organization selector cookies
- organization_id injected through query parameters and bodies
- Another organization's resource ids (provider credentials, API keys)
- Ciphertexts copied between organizations
- Audit trails of other organizations
"""

from uuid import UUID

import pytest
from sqlalchemy import select

from fixtures.multi_org import auth_headers
from models.provider_credential import ProviderCredential

pytestmark = pytest.mark.security

PROVIDERS = "/api/v1/providers"
API_KEYS = "/api/v1/api-keys"


def credential_body(name="Mailer"):
    return {
        "kind": "EMAIL",
        "provider": "smtp",
        "name": name,
        "config": {"host": "smtp.example.com", "password": "hunter2"},
    }


@pytest.fixture
async def foreign_credential(client, outsider):
    """Credential owned by org C, created by its ADMIN."""
    response = await client.post(PROVIDERS, json=credential_body("Foreign mailer"), headers=auth_headers(outsider))
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def foreign_api_key(client, outsider):
    response = await client.post(API_KEYS, json={"name": "Foreign key"}, headers=auth_headers(outsider))
    assert response.status_code == 201
    return response.json()


class TestForgedSelector:

    async def test_forged_cookie_does_not_grant_access(self, client, two_org_user, org_c, foreign_credential):
        user, org_a, _ = two_org_user
        headers = {**auth_headers(user), "Cookie": f"kz_org={org_c.id}"}

        current = await client.get("/api/v1/me/org", headers=headers)
        listing = await client.get(PROVIDERS, headers=headers)

        assert current.json()["org_id"] == str(org_a.id)
        assert listing.status_code == 200
        assert foreign_credential["id"] not in listing.text

    async def test_injected_cookie_value(self, client, two_org_user):
        user, org_a, _ = two_org_user
        headers = {**auth_headers(user), "Cookie": "kz_org=' OR '1'='1"}

        response = await client.get("/api/v1/me/org", headers=headers)

        assert response.status_code == 200
        assert response.json()["org_id"] == str(org_a.id)


class TestOrgIdInjection:

    async def test_org_id_in_body_is_ignored(self, client, session_factory, two_org_user, org_c):
        user, org_a, _ = two_org_user
        body = {**credential_body(), "org_id": str(org_c.id), "organization_id": str(org_c.id)}

        response = await client.post(PROVIDERS, json=body, headers=auth_headers(user))

        assert response.status_code == 201
        async with session_factory() as session:
            stored = await session.get(ProviderCredential, UUID(response.json()["id"]))
        assert stored.org_id == org_a.id

    async def test_org_id_query_param_does_not_widen_audit_query(self, client, two_org_user, org_c, foreign_api_key):
        user, _, _ = two_org_user

        response = await client.get(
            "/api/v1/audit", params={"organization_id": str(org_c.id)}, headers=auth_headers(user)
        )

        assert response.status_code == 200
        assert response.json()["total"] == 0
        assert foreign_api_key["id"] not in response.text


class TestForeignResourceIds:

    async def test_foreign_credential_config_is_404(self, client, two_org_user, foreign_credential):
        user, _, _ = two_org_user

        response = await client.get(f"{PROVIDERS}/{foreign_credential['id']}/config", headers=auth_headers(user))

        assert response.status_code == 404
        assert "hunter2" not in response.text

    async def test_foreign_credential_update_and_delete_are_404(self, client, session_factory, two_org_user, foreign_credential):
        user, _, _ = two_org_user
        headers = auth_headers(user)

        patch = await client.patch(
            f"{PROVIDERS}/{foreign_credential['id']}", json={"name": "Hijacked"}, headers=headers
        )
        delete = await client.delete(f"{PROVIDERS}/{foreign_credential['id']}", headers=headers)

        assert patch.status_code == 404
        assert delete.status_code == 404
        async with session_factory() as session:
            stored = await session.get(ProviderCredential, UUID(foreign_credential["id"]))
        assert stored.name == "Foreign mailer"

    async def test_foreign_api_key_revoke_is_404(self, client, two_org_user, outsider, foreign_api_key):
        user, _, _ = two_org_user

        response = await client.delete(f"{API_KEYS}/{foreign_api_key['id']}", headers=auth_headers(user))

        assert response.status_code == 404
        still_active = await client.get(API_KEYS, headers=auth_headers(outsider))
        assert [item["id"] for item in still_active.json()["items"]] == [foreign_api_key["id"]]


class TestCiphertextRelocation:

    async def test_copied_bundle_fails_to_decrypt(self, client, session_factory, two_org_user, foreign_credential):
        user, _, _ = two_org_user
        headers = auth_headers(user)
        own = (await client.post(PROVIDERS, json=credential_body("Own mailer"), headers=headers)).json()

        # Copy org C's ciphertext into org A's row
        async with session_factory() as session:
            foreign = await session.get(ProviderCredential, UUID(foreign_credential["id"]))
            target = await session.get(ProviderCredential, UUID(own["id"]))
            target.config_encrypted = dict(foreign.config_encrypted)
            await session.commit()

        response = await client.get(f"{PROVIDERS}/{own['id']}/config", headers=headers)

        assert response.status_code == 500
        assert response.json()["error"] == "secret_error"
        assert "hunter2" not in response.text


class TestAuditIsolation:

    async def test_audit_trail_only_shows_own_org(self, client, two_org_user, outsider, foreign_credential):
        user, org_a, _ = two_org_user
        await client.post(PROVIDERS, json=credential_body("Own mailer"), headers=auth_headers(user))

        own = await client.get("/api/v1/audit", headers=auth_headers(user))
        foreign = await client.get("/api/v1/audit", headers=auth_headers(outsider))

        assert {entry["organization_id"] for entry in own.json()["entries"]} == {str(org_a.id)}
        assert [entry["resource_id"] for entry in foreign.json()["entries"]] == [foreign_credential["id"]]

    async def test_viewer_cannot_read_audit(self, client, two_org_user):
        user, _, org_b = two_org_user
        headers = {**auth_headers(user), "Cookie": f"kz_org={org_b.id}"}

        response = await client.get("/api/v1/audit", headers=headers)

        assert response.status_code == 403
