"""Declarative base and shared column types for AgencyHub models"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, ForeignKey, MetaData, TypeDecorator, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, declared_attr

# Names for constraints and indexes the models leave unnamed
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class PortableJSONB(TypeDecorator):
    """JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)."""
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


class OrgScopedMixin:
    """Rows owned by exactly one organization.

    Every query against an org-scoped model must filter on org_id taken from
    the request's OrgContext. Deleting the org deletes its rows.
    """

    @declared_attr
    def org_id(cls):
        return Column(Uuid, ForeignKey("org.id", ondelete="CASCADE"), nullable=False)


def org_scoped_tables() -> list:
    """Names of all tables whose rows belong to a single organization."""
    return sorted(
        mapper.local_table.name
        for mapper in Base.registry.mappers
        if issubclass(mapper.class_, OrgScopedMixin)
    )
