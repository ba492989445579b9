"""Services package for AudioLog."""

from audiolog.services.subscriptions import (
    Scope,
    Subscription,
    SubscriptionManager,
)

from audiolog.services.mutations import MutationCoordinator

from audiolog.services.journey import JourneyFlows

from audiolog.services.proxy_client import ProxyClient

from audiolog.services.recording import (
    AudioSource,
    RecordingPipeline,
    RecordingState,
)

from audiolog.services.sync import SyncEngine

__all__ = [
    # Subscriptions
    "Scope",
    "Subscription",
    "SubscriptionManager",
    # Mutations
    "MutationCoordinator",
    # Journey
    "JourneyFlows",
    # Proxy
    "ProxyClient",
    # Recording
    "AudioSource",
    "RecordingPipeline",
    "RecordingState",
    # Sync
    "SyncEngine",
]
