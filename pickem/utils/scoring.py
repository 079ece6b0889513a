"""
Scoring table for the pick'em game.

A correct pick is worth more the fewer group members picked the same winning
team. Points depend on the group size bucket and on the shared pick count
(the number of members, including you, who picked that team that week):

    shared picks | <4  | 4-5 | 6-7 | 8-10
    -------------+-----+-----+-----+-----
    1 (only you) | 10  | 10  | 10  | 10
    2            |  6  |  7  |  8  |  9
    3            |  4  |  5  |  6  |  7
    4            |  -  |  3  |  5  |  6
    5+           |  -  |  2  |  4  |  5

A losing pick always scores 0.
"""

from pickem.errors import ScoringTableError

MIN_GROUP_SIZE = 1
MAX_GROUP_SIZE = 10
MAX_SHARED_ROW = 5  # "5+" row

SMALL = "<4"
MEDIUM = "4-5"
LARGE = "6-7"
XLARGE = "8-10"

SCORING_TABLE = {
    SMALL: {1: 10, 2: 6, 3: 4},
    MEDIUM: {1: 10, 2: 7, 3: 5, 4: 3, 5: 2},
    LARGE: {1: 10, 2: 8, 3: 6, 4: 5, 5: 4},
    XLARGE: {1: 10, 2: 9, 3: 7, 4: 6, 5: 5},
}

LOSING_SCORE = 0


def group_size_bucket(group_size):
    """Map a group size onto its scoring table column"""
    if group_size is None or group_size < MIN_GROUP_SIZE:
        raise ScoringTableError(f"Invalid group size: {group_size}")
    if group_size < 4:
        return SMALL
    if group_size <= 5:
        return MEDIUM
    if group_size <= 7:
        return LARGE
    if group_size <= MAX_GROUP_SIZE:
        return XLARGE
    raise ScoringTableError(
        f"Group size {group_size} exceeds the scoring table maximum of {MAX_GROUP_SIZE}"
    )


def score_for(group_size, shared_pick_count):
    """Points for a correct pick.

    Raises ScoringTableError if the lookup falls outside the table, including
    a shared pick count larger than the group itself.
    """
    bucket = group_size_bucket(group_size)

    if shared_pick_count is None or shared_pick_count < 1:
        raise ScoringTableError(f"Invalid shared pick count: {shared_pick_count}")
    if shared_pick_count > group_size:
        raise ScoringTableError(
            f"Shared pick count {shared_pick_count} exceeds group size {group_size}"
        )

    row = min(shared_pick_count, MAX_SHARED_ROW)
    points = SCORING_TABLE[bucket].get(row)
    if points is None:
        raise ScoringTableError(
            f"No score for {shared_pick_count} shared picks in a {bucket} group"
        )
    return points


def calculate_pick_score(is_correct, group_size, shared_pick_count):
    """Score a resolved pick"""
    if not is_correct:
        return LOSING_SCORE
    return score_for(group_size, shared_pick_count)
