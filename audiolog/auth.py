"""
Anonymous identity.
"""

import logging
import uuid
from typing import Optional

from audiolog.config import log_event
from audiolog.errors import Unauthenticated


class AnonymousAuth:
    """Hands out one opaque, stable user id per session."""

    def __init__(self, user_id: Optional[str] = None):
        self._preset = user_id
        self.user_id: Optional[str] = None

    def sign_in(self) -> str:
        if self.user_id is None:
            self.user_id = self._preset or uuid.uuid4().hex[:28]
            log_event(logging.INFO, "anonymous_sign_in", user_id=self.user_id)
        return self.user_id

    def require_user(self) -> str:
        if self.user_id is None:
            raise Unauthenticated("No user identity yet")
        return self.user_id
