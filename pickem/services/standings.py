from collections import namedtuple

from pickem import db
from pickem.models import Pick, PickStatus
from pickem.services.membership import DatabaseMembershipDirectory

StandingsRow = namedtuple(
    "StandingsRow",
    ["user_id", "total_score", "correct_picks", "incorrect_picks", "pending_picks"],
)


def standings(group_id, directory=None):
    """Season standings for a group, highest total first.

    Active members without any picks are listed with zero. Ties are broken by
    user id.
    """
    directory = directory or DatabaseMembershipDirectory()

    totals = {}
    for member in directory.list_members(group_id):
        totals[member.user_id] = [0, 0, 0, 0]

    rows = (
        db.session.query(Pick.user_id, Pick.status, Pick.score)
        .filter(Pick.group_id == group_id, Pick.team_id.isnot(None))
        .all()
    )
    for user_id, status, score in rows:
        entry = totals.setdefault(user_id, [0, 0, 0, 0])
        entry[0] += score or 0
        if status == PickStatus.CORRECT:
            entry[1] += 1
        elif status == PickStatus.INCORRECT:
            entry[2] += 1
        else:
            entry[3] += 1

    table = [StandingsRow(user_id, *counts) for user_id, counts in totals.items()]
    table.sort(key=lambda row: (-row.total_score, row.user_id))
    return table
