from typing import List

from .models import Participant

LEADERBOARD_SIZE = 5


def sort_leaderboard(participants: List[Participant], limit: int = LEADERBOARD_SIZE) -> List[Participant]:
    # sorted() is stable, so equal scores keep join order
    return sorted(participants, key=lambda p: -p.score)[:limit]
