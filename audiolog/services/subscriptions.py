"""
Live subscriptions: one feed per scope, each snapshot replacing the local
mirror for that scope.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from audiolog import paths
from audiolog.config import log_event, APP_ID
from audiolog.errors import RemoteReadFailed
from audiolog.models import Comment, JourneySettings, Log
from audiolog.state import MirrorState
from audiolog.store.base import CollectionSnapshot, DocumentSnapshot, DocumentStore, Feed


@dataclass(frozen=True)
class Scope:
    """Logical subscription target."""
    kind: str  # "logs", "comments" or "settings"
    key: Optional[str] = None

    @classmethod
    def public_logs(cls) -> "Scope":
        return cls("logs")

    @classmethod
    def comments(cls, log_id: str) -> "Scope":
        return cls("comments", log_id)

    @classmethod
    def settings(cls, user_id: str) -> "Scope":
        return cls("settings", user_id)

    def __str__(self):
        return f"{self.kind}:{self.key}" if self.key else self.kind


class Subscription:
    """Handle for one open scope. Cancelled handles never touch the mirror."""

    def __init__(self, scope: Scope, feed: Feed, apply: Callable):
        self.scope = scope
        self.feed = feed
        self.active = True
        self.applied = 0
        self.task: Optional[asyncio.Task] = None
        self._apply = apply

    def deliver(self, snapshot) -> bool:
        if not self.active:
            log_event(logging.DEBUG, "snapshot_after_cancel_dropped", scope=self.scope)
            return False
        self._apply(self.scope, snapshot)
        self.applied += 1
        return True

    def cancel(self):
        self.active = False
        self.feed.close()
        if self.task is not None and not self.task.done():
            self.task.cancel()


class SubscriptionManager:

    def __init__(self, store: DocumentStore, mirror: MirrorState, app_id: str = APP_ID):
        self.store = store
        self.mirror = mirror
        self.app_id = app_id
        self._subscriptions: Dict[Scope, Subscription] = {}
        self._listeners: List[Callable[[Scope], None]] = []

    # --- LISTENERS ---

    def add_listener(self, callback: Callable[[Scope], None]):
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Scope], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def notify(self, scope: Scope):
        """Tell every listener that the mirror for `scope` changed."""
        for callback in list(self._listeners):
            try:
                callback(scope)
            except Exception as e:
                log_event(logging.ERROR, "mirror_listener_failed", scope=scope, error=str(e))

    # --- LIFECYCLE ---

    def is_open(self, scope: Scope) -> bool:
        return scope in self._subscriptions

    def get(self, scope: Scope) -> Optional[Subscription]:
        return self._subscriptions.get(scope)

    @property
    def open_scopes(self) -> List[Scope]:
        return list(self._subscriptions)

    def subscribe(self, scope: Scope) -> Subscription:
        """
        Open a live feed for `scope`.
        An already-open scope returns its existing handle untouched.
        """
        existing = self._subscriptions.get(scope)
        if existing is not None:
            log_event(logging.DEBUG, "subscription_reused", scope=scope)
            return existing

        try:
            feed = self._open_feed(scope)
        except RemoteReadFailed:
            raise
        except Exception as e:
            raise RemoteReadFailed(f"Could not subscribe to {scope}: {e}") from e

        subscription = Subscription(scope, feed, self._apply)
        self._subscriptions[scope] = subscription
        subscription.task = asyncio.get_running_loop().create_task(self._pump(subscription))
        log_event(logging.INFO, "subscription_opened", scope=scope, open=len(self._subscriptions))
        return subscription

    def unsubscribe(self, scope: Scope) -> bool:
        """Tear down the feed and discard the mirror for `scope`, synchronously."""
        subscription = self._subscriptions.pop(scope, None)
        if subscription is None:
            return False
        subscription.cancel()
        self._discard(scope)
        log_event(logging.INFO, "subscription_closed", scope=scope, open=len(self._subscriptions))
        self.notify(scope)
        return True

    def close_all(self):
        for scope in list(self._subscriptions):
            self.unsubscribe(scope)

    def _open_feed(self, scope: Scope) -> Feed:
        if scope.kind == "logs":
            return self.store.listen_collection(paths.logs_col(self.app_id))
        if scope.kind == "comments":
            return self.store.listen_collection(paths.comments_col(scope.key, self.app_id))
        if scope.kind == "settings":
            return self.store.listen_document(paths.settings_doc(scope.key, self.app_id))
        raise ValueError(f"Unknown scope kind: {scope.kind}")

    async def _pump(self, subscription: Subscription):
        try:
            async for snapshot in subscription.feed:
                subscription.deliver(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_event(logging.ERROR, "subscription_feed_failed", scope=subscription.scope, error=str(e))
            # Free the scope so the caller can subscribe again
            if self._subscriptions.get(subscription.scope) is subscription:
                self._subscriptions.pop(subscription.scope)
            subscription.active = False
            subscription.feed.close()
            self._discard(subscription.scope)
            self.notify(subscription.scope)

    # --- MATERIALIZATION ---

    def _apply(self, scope: Scope, snapshot):
        if scope.kind == "logs":
            self.mirror.logs = materialize_logs(snapshot)
        elif scope.kind == "comments":
            self.mirror.comments[scope.key] = materialize_comments(scope.key, snapshot)
        elif scope.kind == "settings":
            if not snapshot.exists:
                return
            self.mirror.settings = self.mirror.settings.merged(snapshot.data)
        log_event(logging.DEBUG, "mirror_replaced", scope=scope)
        self.notify(scope)

    def _discard(self, scope: Scope):
        if scope.kind == "logs":
            self.mirror.logs = []
        elif scope.kind == "comments":
            self.mirror.comments.pop(scope.key, None)
        elif scope.kind == "settings":
            self.mirror.settings = JourneySettings()


def materialize_logs(snapshot: CollectionSnapshot) -> List[Log]:
    """Newest first; logs without a confirmed timestamp sort as 0."""
    logs = [Log.from_doc(doc.id, doc.data) for doc in snapshot.docs if doc.exists]
    return sorted(logs, key=lambda log: log.created_at or 0, reverse=True)


def materialize_comments(log_id: str, snapshot: CollectionSnapshot) -> List[Comment]:
    """Oldest first; equal timestamps keep the store's id order."""
    comments = [Comment.from_doc(log_id, doc.id, doc.data) for doc in snapshot.docs if doc.exists]
    return sorted(comments, key=lambda comment: comment.timestamp or 0)
