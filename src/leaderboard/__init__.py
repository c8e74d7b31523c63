"""Leaderboard module.

Provides:
- Weekly and monthly rankings per department and overall
- Rank change against the previous closed window
"""

from .models import LeaderboardEntry, LeaderboardPeriod, LeaderboardSnapshot


__all__ = ["LeaderboardEntry", "LeaderboardPeriod", "LeaderboardSnapshot"]
