"""Unit tests for the Org, User and Membership models

Tests cover:
- Org slug and name validation
- Duplicate slug rejection
- One membership per (org, user)
- Membership role and audit tenant/system constraints
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.roles import OrgRole
from fixtures.multi_org import add_membership, create_org, create_user, day
from models.audit_log import AuditLog
from models.base import Base, org_scoped_tables
from models.membership import Membership
from models.org import Org
from models.user import User


class TestOrgValidation:

    @pytest.mark.parametrize("slug", ["acme", "acme-studio", "org-123"])
    def test_valid_slugs(self, slug):
        assert Org(name="Acme", slug=slug).slug == slug

    @pytest.mark.parametrize("slug", ["Acme", "acme studio", "acme_studio", "acme.studio", "a", "x" * 101])
    def test_invalid_slugs(self, slug):
        with pytest.raises(ValueError):
            Org(name="Acme", slug=slug)

    def test_name_is_stripped(self):
        assert Org(name="  Acme Agency  ", slug="acme").name == "Acme Agency"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 201])
    def test_invalid_names(self, name):
        with pytest.raises(ValueError):
            Org(name=name, slug="acme")

    async def test_duplicate_slug_rejected(self, db_session):
        await create_org(db_session, "First", "same-slug")

        db_session.add(Org(name="Second", slug="same-slug"))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_defaults(self, db_session):
        org = await create_org(db_session, "Defaults")

        assert org.is_active is True
        assert org.created_at is not None


class TestUser:

    def test_email_is_lowercased(self):
        assert User(email="Ops@Acme.DE", name="Ops").email == "ops@acme.de"

    def test_invalid_email(self):
        with pytest.raises(ValueError):
            User(email="not-an-email", name="Nobody")

    async def test_new_user_has_no_preference(self, db_session):
        user = await create_user(db_session)

        assert user.active_org_id is None
        assert user.status == "ACTIVE"


class TestMembershipConstraints:

    async def test_one_membership_per_org_and_user(self, db_session, org_a):
        user = await create_user(db_session)
        await add_membership(db_session, user, org_a, OrgRole.MEMBER, day(1))

        db_session.add(Membership(org_id=org_a.id, user_id=user.id, role="ADMIN", joined_at=day(2)))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_unknown_role_rejected(self, db_session, org_a):
        user = await create_user(db_session)

        db_session.add(Membership(org_id=org_a.id, user_id=user.id, role="SUPERUSER", joined_at=day(1)))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()


class TestAuditLogConstraints:

    async def test_tenant_entry_requires_org(self, db_session):
        db_session.add(AuditLog(action="X", resource="y", organization_id=None, is_system=False))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_system_entry_without_org(self, db_session):
        entry = AuditLog(action="X", resource="y", organization_id=None, is_system=True)
        db_session.add(entry)
        await db_session.commit()

        assert entry.id is not None
        assert entry.severity == "INFO"


class TestOrgScopedTables:

    def test_org_scoped_tables(self):
        assert org_scoped_tables() == ["api_key", "provider_credential"]

    def test_org_fk_cascades(self):
        for table in org_scoped_tables():
            column = Base.metadata.tables[table].c.org_id
            (fk,) = column.foreign_keys
            assert column.nullable is False
            assert fk.column.table.name == "org"
            assert fk.ondelete == "CASCADE"
