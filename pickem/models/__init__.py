from pickem import db  # noqa: F401 - imported for model imports

from .game import GameStatus, ScheduledGame
from .group import Group
from .group_member import GroupMember
from .pick import Pick, PickStatus
from .team import Team

__all__ = [
    "Team",
    "ScheduledGame",
    "GameStatus",
    "Pick",
    "PickStatus",
    "Group",
    "GroupMember",
]
