"""Persistence access for memberships and the active-organization preference."""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.membership import Membership
from models.org import Org
from models.user import User


class MembershipRepository:
    """Reads memberships and reads/writes User.active_org_id.

    set_active_org is called only by ActiveOrgSwitch.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: UUID) -> List[Membership]:
        """All memberships of a user, oldest first (ties broken by id)."""
        result = await self.session.execute(
            select(Membership)
            .where(Membership.user_id == user_id)
            .order_by(Membership.joined_at.asc(), Membership.id.asc())
        )
        return list(result.scalars().all())

    async def list_for_user_with_orgs(self, user_id: UUID) -> List[Tuple[Membership, Org]]:
        result = await self.session.execute(
            select(Membership, Org)
            .join(Org, Org.id == Membership.org_id)
            .where(Membership.user_id == user_id)
            .order_by(Membership.joined_at.asc(), Membership.id.asc())
        )
        return [(membership, org) for membership, org in result.all()]

    async def get(self, org_id: UUID, user_id: UUID) -> Optional[Membership]:
        result = await self.session.execute(
            select(Membership).where(
                Membership.org_id == org_id,
                Membership.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_active_org_id(self, user_id: UUID) -> Optional[UUID]:
        result = await self.session.execute(
            select(User.active_org_id).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def set_active_org(self, user_id: UUID, org_id: UUID) -> None:
        """Persist the durable preference and commit.

        A failed UPDATE or COMMIT is rolled back here; nothing else touches
        the session on failure, so objects loaded before an unrelated error
        stay usable.

        Raises:
            LookupError: If the user profile does not exist
            SQLAlchemyError: If the write or commit failed (already rolled back)
        """
        try:
            result = await self.session.execute(
                update(User).where(User.id == user_id).values(active_org_id=org_id)
            )
            if result.rowcount != 1:
                raise LookupError(f"User profile {user_id} not found")
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def get_org(self, org_id: UUID) -> Optional[Org]:
        result = await self.session.execute(select(Org).where(Org.id == org_id))
        return result.scalar_one_or_none()
