"""
Local mirrors of remote state.

Owned by the sync engine: subscriptions and mutations write here, everything
else only reads.
"""

from typing import Dict, List, Optional, Set

from audiolog.models import Comment, JourneySettings, Log


class MirrorState:

    def __init__(self):
        # Public logs, newest first
        self.logs: List[Log] = []

        # Comment threads for logs with an open thread, oldest first
        self.comments: Dict[str, List[Comment]] = {}

        # Signed-in user's journey settings
        self.settings: JourneySettings = JourneySettings()

        # Presentation-only weekly recap, never persisted
        self.recap: Optional[str] = None

        # In-progress indicators: "like:<log>", "insight:<log>", "title", "recap", "persona"
        self.busy: Set[str] = set()

    def find_log(self, log_id: str) -> Optional[Log]:
        return next((log for log in self.logs if log.id == log_id), None)

    def logs_by(self, user_id: str) -> List[Log]:
        return [log for log in self.logs if log.user_id == user_id]

    def logs_in_circle(self, category: Optional[str]) -> List[Log]:
        return [log for log in self.logs if log.category == category]
