"""
Optimistic mutations: likes, comments, avatar and settings edits, new logs.

Likes and settings are applied to the mirror before the remote write. Only
the settings path rolls back on failure; likes wait for the next snapshot to
correct them, and comments are never inserted locally at all.
"""

import logging
import random
from typing import Dict

from audiolog import paths
from audiolog.auth import AnonymousAuth
from audiolog.config import log_event, display_name, APP_ID
from audiolog.errors import SyncError, Unauthenticated, ValidationFailed
from audiolog.models import AVATAR_OPTIONS, Analysis, find_circle
from audiolog.services.subscriptions import Scope, SubscriptionManager
from audiolog.state import MirrorState
from audiolog.store.base import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, DocumentStore

# JourneySettings attribute -> stored field
SETTINGS_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "avatar": "avatar",
    "ai_persona": "aiPersona",
}


def log_quiet_failure(event: str, error: SyncError, **data):
    """Log a failure that only resets the affected control."""
    level = logging.WARNING if isinstance(error, (Unauthenticated, ValidationFailed)) else logging.ERROR
    log_event(level, event, kind=error.kind, error=str(error), **data)


class MutationCoordinator:

    def __init__(
        self,
        store: DocumentStore,
        auth: AnonymousAuth,
        mirror: MirrorState,
        subscriptions: SubscriptionManager,
        app_id: str = APP_ID,
    ):
        self.store = store
        self.auth = auth
        self.mirror = mirror
        self.subscriptions = subscriptions
        self.app_id = app_id

    # --- LIKES ---

    async def toggle_like(self, log_id: str) -> bool:
        """
        Toggle the signed-in user's like on a log.

        A second toggle for the same log while one is in flight is dropped.
        Returns True when a remote write was issued and succeeded.
        """
        key = f"like:{log_id}"
        if key in self.mirror.busy:
            log_event(logging.WARNING, "like_toggle_dropped", log_id=log_id)
            return False

        try:
            user_id = self.auth.require_user()
            log = self.mirror.find_log(log_id)
            if log is None:
                raise ValidationFailed(f"Unknown log: {log_id}")
        except SyncError as e:
            log_quiet_failure("like_toggle_rejected", e, log_id=log_id)
            return False

        self.mirror.busy.add(key)
        liked = log.liked_by(user_id)
        if liked:
            log.likes = [uid for uid in log.likes if uid != user_id]
        else:
            log.likes = log.likes + [user_id]
        self.subscriptions.notify(Scope.public_logs())

        try:
            change = ArrayRemove([user_id]) if liked else ArrayUnion([user_id])
            await self.store.update(paths.log_doc(log_id, self.app_id), {"likes": change})
            log_event(logging.INFO, "like_toggled", log_id=log_id, liked=not liked)
            return True
        except SyncError as e:
            # No rollback: the logs feed brings the mirror back in line
            log_quiet_failure("like_toggle_failed", e, log_id=log_id)
            return False
        finally:
            self.mirror.busy.discard(key)

    # --- COMMENTS ---

    async def submit_comment(self, log_id: str, text: str) -> bool:
        """Append a comment; the thread's feed shows it once the store confirms."""
        try:
            user_id = self.auth.require_user()
            body = (text or "").strip()
            if not body:
                raise ValidationFailed("Comment text is empty")
            await self.store.add(paths.comments_col(log_id, self.app_id), {
                "userId": user_id,
                "userName": display_name(user_id),
                "text": body,
                "timestamp": SERVER_TIMESTAMP,
            })
        except SyncError as e:
            log_quiet_failure("comment_submit_failed", e, log_id=log_id)
            return False

        log_event(logging.INFO, "comment_submitted", log_id=log_id, chars=len(body))
        return True

    # --- SETTINGS ---

    async def merge_settings(self, **changes) -> bool:
        """
        Apply settings changes locally, then merge-write them.
        On write failure the changed fields go back to their prior values.
        """
        try:
            user_id = self.auth.require_user()
            unknown = [name for name in changes if name not in SETTINGS_FIELDS]
            if unknown:
                raise ValidationFailed(f"Unknown settings fields: {', '.join(unknown)}")
        except SyncError as e:
            log_quiet_failure("settings_merge_rejected", e)
            return False

        settings = self.mirror.settings
        previous = {name: getattr(settings, name) for name in changes}
        for name, value in changes.items():
            setattr(settings, name, value)
        scope = Scope.settings(user_id)
        self.subscriptions.notify(scope)

        stored = settings.to_doc()
        data = {SETTINGS_FIELDS[name]: stored[SETTINGS_FIELDS[name]] for name in changes}
        try:
            await self.store.set(paths.settings_doc(user_id, self.app_id), data, merge=True)
        except SyncError as e:
            log_quiet_failure("settings_merge_failed", e, fields=",".join(changes))
            current = self.mirror.settings
            for name, value in previous.items():
                setattr(current, name, value)
            log_event(logging.INFO, "settings_merge_reverted", fields=",".join(changes))
            self.subscriptions.notify(scope)
            return False

        log_event(logging.INFO, "settings_merged", fields=",".join(changes))
        return True

    async def update_avatar(self, parts: Dict[str, str]) -> bool:
        """Merge avatar parts over the current avatar; other parts are kept."""
        try:
            avatar = self.mirror.settings.avatar.merged(parts)
        except ValidationFailed as e:
            log_quiet_failure("avatar_update_rejected", e)
            return False
        return await self.merge_settings(avatar=avatar)

    async def randomize_avatar(self) -> bool:
        parts = {name: random.choice(options) for name, options in AVATAR_OPTIONS.items()}
        return await self.update_avatar(parts)

    async def choose_circle(self, circle_id: str) -> bool:
        """Join a circle at onboarding, or switch to another one."""
        circle = find_circle(circle_id)
        if circle is None:
            log_quiet_failure("circle_choice_rejected", ValidationFailed(f"Unknown circle: {circle_id}"))
            return False
        return await self.merge_settings(
            category=circle.id,
            title=circle.label,
            description=f"Documenting {circle.label}",
        )

    # --- LOGS ---

    async def create_log(self, analysis: Analysis, audio_data: str) -> str:
        """
        Append a new log for the signed-in user and return its id.

        dayNumber is the user's mirrored log count plus one at this instant;
        concurrent creations from other devices can share a number.
        """
        user_id = self.auth.require_user()
        day_number = len(self.mirror.logs_by(user_id)) + 1
        log_id = await self.store.add(paths.logs_col(self.app_id), {
            "userId": user_id,
            "userName": display_name(user_id),
            "transcript": analysis.transcript,
            "milestone": analysis.milestone,
            "summary": analysis.summary,
            "audioData": audio_data,
            "dayNumber": day_number,
            "category": self.mirror.settings.category,
            "likes": [],
            "aiInsight": None,
            "createdAt": SERVER_TIMESTAMP,
        })
        log_event(logging.INFO, "log_created", log_id=log_id, day_number=day_number)
        return log_id
