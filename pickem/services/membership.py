"""
Read-only access to group membership.

Groups and memberships are managed outside this service. The reconciliation
engine and standings only need two questions answered, so any object with
``list_members`` and ``group_size`` can stand in for the database directory.
"""

import logging
from collections import namedtuple

from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.errors import MembershipUnavailableError
from pickem.models import GroupMember

logger = logging.getLogger(__name__)

Member = namedtuple("Member", ["user_id", "is_admin"])


class DatabaseMembershipDirectory:
    """Membership directory backed by the group_members table"""

    def list_members(self, group_id):
        try:
            rows = (
                GroupMember.query.filter_by(group_id=group_id, is_active=True)
                .order_by(GroupMember.user_id)
                .all()
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to load members for group {group_id}: {e}")
            raise MembershipUnavailableError(group_id, str(e)) from e

        return [Member(row.user_id, bool(row.is_admin)) for row in rows]

    def group_size(self, group_id):
        try:
            return GroupMember.query.filter_by(group_id=group_id, is_active=True).count()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to count members for group {group_id}: {e}")
            raise MembershipUnavailableError(group_id, str(e)) from e
