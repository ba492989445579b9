"""
AI-backed journey flows: magic title, weekly recap, persona, and per-log
advice ("gentle nudge").
"""

import logging
from typing import Optional

from audiolog import paths
from audiolog.auth import AnonymousAuth
from audiolog.config import log_event, APP_ID, TITLE_LOG_LIMIT, RECAP_LOG_LIMIT
from audiolog.errors import SyncError, ValidationFailed
from audiolog.services.mutations import MutationCoordinator, log_quiet_failure
from audiolog.services.proxy_client import ProxyClient
from audiolog.state import MirrorState
from audiolog.store.base import DocumentStore


class JourneyFlows:

    def __init__(
        self,
        store: DocumentStore,
        auth: AnonymousAuth,
        proxy: ProxyClient,
        mirror: MirrorState,
        mutations: MutationCoordinator,
        app_id: str = APP_ID,
    ):
        self.store = store
        self.auth = auth
        self.proxy = proxy
        self.mirror = mirror
        self.mutations = mutations
        self.app_id = app_id

    def _my_transcripts(self, user_id: str, limit: Optional[int] = None):
        logs = self.mirror.logs_by(user_id)
        if limit is not None:
            logs = logs[:limit]
        return [log.transcript for log in logs]

    async def suggest_title(self) -> bool:
        """Ask for a title/subtitle from the latest logs and store it in settings."""
        if "title" in self.mirror.busy:
            return False
        self.mirror.busy.add("title")
        try:
            user_id = self.auth.require_user()
            text = " ".join(self._my_transcripts(user_id, TITLE_LOG_LIMIT))
            suggestion = await self.proxy.suggest_title(text)
            await self.store.set(
                paths.settings_doc(user_id, self.app_id),
                {"title": suggestion["title"], "description": suggestion["subtitle"]},
                merge=True,
            )
            log_event(logging.INFO, "title_suggested", title=suggestion["title"])
            return True
        except SyncError as e:
            log_quiet_failure("title_suggestion_failed", e)
            return False
        finally:
            self.mirror.busy.discard("title")

    async def weekly_recap(self) -> Optional[str]:
        """Summarize the latest week of logs; the result is kept only in memory."""
        if "recap" in self.mirror.busy:
            return None
        self.mirror.busy.add("recap")
        try:
            user_id = self.auth.require_user()
            text = "\n\n".join(self._my_transcripts(user_id, RECAP_LOG_LIMIT))
            self.mirror.recap = await self.proxy.recap(text)
            log_event(logging.INFO, "recap_generated", chars=len(self.mirror.recap))
            return self.mirror.recap
        except SyncError as e:
            log_quiet_failure("recap_failed", e)
            return None
        finally:
            self.mirror.busy.discard("recap")

    async def analyze_persona(self) -> Optional[str]:
        """Describe the user's learning persona; no-op until they have a log."""
        user_id = self.auth.user_id
        if user_id is None or not self.mirror.logs_by(user_id):
            return None
        if "persona" in self.mirror.busy:
            return None
        self.mirror.busy.add("persona")
        try:
            text = await self.proxy.persona("\n".join(self._my_transcripts(user_id)))
        except SyncError as e:
            log_quiet_failure("persona_failed", e)
            return None
        finally:
            self.mirror.busy.discard("persona")

        log_event(logging.INFO, "persona_analyzed", chars=len(text))
        if not await self.mutations.merge_settings(ai_persona=text):
            return None
        return text

    async def request_insight(self, log_id: str) -> Optional[str]:
        """Fetch advice for one of the user's own logs; each log gets it once."""
        key = f"insight:{log_id}"
        if key in self.mirror.busy:
            log_event(logging.WARNING, "insight_request_dropped", log_id=log_id)
            return None
        self.mirror.busy.add(key)
        try:
            user_id = self.auth.require_user()
            log = self.mirror.find_log(log_id)
            if log is None:
                raise ValidationFailed(f"Unknown log: {log_id}")
            if log.user_id != user_id:
                raise ValidationFailed("Advice is only available on your own logs")
            if log.ai_insight:
                raise ValidationFailed("Log already has advice")
            text = await self.proxy.insight(log.transcript)
            await self.store.update(paths.log_doc(log_id, self.app_id), {"aiInsight": text})
            log_event(logging.INFO, "insight_stored", log_id=log_id)
            return text
        except SyncError as e:
            log_quiet_failure("insight_failed", e, log_id=log_id)
            return None
        finally:
            self.mirror.busy.discard(key)
