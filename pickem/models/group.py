from datetime import datetime, timezone

from pickem import db


class Group(db.Model):
    """Minimal group record; group management lives outside this service"""

    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    max_members = db.Column(db.Integer, default=10)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    members = db.relationship(
        "GroupMember", backref="group", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Group {self.name}>"

    def get_member_count(self):
        """Get count of active members"""
        return self.members.filter_by(is_active=True).count()

    def is_full(self):
        return self.get_member_count() >= self.max_members

    def add_member(self, user_id, is_admin=False):
        """Add a user to the group"""
        from .group_member import GroupMember

        existing = self.members.filter_by(user_id=user_id).first()
        if existing:
            if existing.is_active:
                return False, "User is already a member"
            if self.is_full():
                return False, "Group is full"
            existing.reactivate()
            return True, "Membership reactivated"

        if self.is_full():
            return False, "Group is full"

        membership = GroupMember(user_id=user_id, group_id=self.id, is_admin=is_admin)
        db.session.add(membership)
        return True, "User added successfully"
