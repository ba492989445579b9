"""
Sync engine: local mirrors of the public logs, the user's settings and any
open comment threads, plus the intents that mutate them.
"""

import logging
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from audiolog.auth import AnonymousAuth
from audiolog.config import log_event, APP_ID, MAX_OPEN_THREADS
from audiolog.errors import RemoteReadFailed
from audiolog.models import Comment, JourneySettings, Log
from audiolog.services.journey import JourneyFlows
from audiolog.services.mutations import MutationCoordinator
from audiolog.services.proxy_client import ProxyClient
from audiolog.services.subscriptions import Scope, Subscription, SubscriptionManager
from audiolog.state import MirrorState
from audiolog.store.base import DocumentStore


class SyncEngine:

    def __init__(
        self,
        store: DocumentStore,
        auth: AnonymousAuth,
        proxy: ProxyClient,
        app_id: str = APP_ID,
        max_open_threads: int = MAX_OPEN_THREADS,
    ):
        self.auth = auth
        self.mirror = MirrorState()
        self.subscriptions = SubscriptionManager(store, self.mirror, app_id)
        self.mutations = MutationCoordinator(store, auth, self.mirror, self.subscriptions, app_id)
        self.journey = JourneyFlows(store, auth, proxy, self.mirror, self.mutations, app_id)
        self.max_open_threads = max_open_threads
        # Open comment threads, least recently opened first
        self._threads: "OrderedDict[str, Subscription]" = OrderedDict()

    # --- LIFECYCLE ---

    async def start(self) -> str:
        """Sign in and open the public logs and settings feeds."""
        user_id = self.auth.sign_in()
        for scope in (Scope.public_logs(), Scope.settings(user_id)):
            try:
                self.subscriptions.subscribe(scope)
            except RemoteReadFailed as e:
                log_event(logging.ERROR, "sync_subscribe_failed", scope=scope, error=str(e))
        log_event(logging.INFO, "sync_started", user_id=user_id)
        return user_id

    def stop(self):
        self._threads.clear()
        self.subscriptions.close_all()
        log_event(logging.INFO, "sync_stopped")

    def add_listener(self, callback: Callable[[Scope], None]):
        self.subscriptions.add_listener(callback)

    # --- COMMENT THREADS ---

    def open_thread(self, log_id: str) -> Optional[Subscription]:
        """Start following a log's comments while a view shows them."""
        cached = self._threads.get(log_id)
        if cached is not None:
            if self.subscriptions.get(Scope.comments(log_id)) is cached:
                self._threads.move_to_end(log_id)
                return cached
            # Feed failed since it was opened; subscribe afresh
            del self._threads[log_id]
        try:
            subscription = self.subscriptions.subscribe(Scope.comments(log_id))
        except RemoteReadFailed as e:
            log_event(logging.ERROR, "thread_open_failed", log_id=log_id, error=str(e))
            return None
        self._threads[log_id] = subscription
        while len(self._threads) > self.max_open_threads:
            oldest = next(iter(self._threads))
            log_event(logging.INFO, "thread_evicted", log_id=oldest)
            self.close_thread(oldest)
        return subscription

    def close_thread(self, log_id: str) -> bool:
        self._threads.pop(log_id, None)
        return self.subscriptions.unsubscribe(Scope.comments(log_id))

    @property
    def open_threads(self) -> List[str]:
        return list(self._threads)

    # --- READ-ONLY VIEWS ---

    @property
    def user_id(self) -> Optional[str]:
        return self.auth.user_id

    @property
    def logs(self) -> List[Log]:
        return list(self.mirror.logs)

    @property
    def my_logs(self) -> List[Log]:
        if self.user_id is None:
            return []
        return self.mirror.logs_by(self.user_id)

    @property
    def circle_logs(self) -> List[Log]:
        return self.mirror.logs_in_circle(self.mirror.settings.category)

    @property
    def settings(self) -> JourneySettings:
        return self.mirror.settings

    @property
    def needs_onboarding(self) -> bool:
        return self.user_id is not None and self.mirror.settings.category is None

    @property
    def recap(self) -> Optional[str]:
        return self.mirror.recap

    def comments(self, log_id: str) -> List[Comment]:
        return list(self.mirror.comments.get(log_id, []))

    def is_busy(self, key: str) -> bool:
        return key in self.mirror.busy

    def stats(self) -> Dict[str, int]:
        mine = self.my_logs
        return {"logs": len(mine), "milestones": sum(1 for log in mine if log.milestone)}

    # --- INTENTS ---

    async def toggle_like(self, log_id: str) -> bool:
        return await self.mutations.toggle_like(log_id)

    async def submit_comment(self, log_id: str, text: str) -> bool:
        return await self.mutations.submit_comment(log_id, text)

    async def update_avatar(self, parts: Dict[str, str]) -> bool:
        return await self.mutations.update_avatar(parts)

    async def randomize_avatar(self) -> bool:
        return await self.mutations.randomize_avatar()

    async def choose_circle(self, circle_id: str) -> bool:
        return await self.mutations.choose_circle(circle_id)

    async def suggest_title(self) -> bool:
        return await self.journey.suggest_title()

    async def weekly_recap(self) -> Optional[str]:
        return await self.journey.weekly_recap()

    async def analyze_persona(self) -> Optional[str]:
        return await self.journey.analyze_persona()

    async def request_insight(self, log_id: str) -> Optional[str]:
        return await self.journey.request_insight(log_id)
