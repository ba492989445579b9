"""
Recording pipeline: microphone capture -> encoding -> transcription -> log.

    IDLE -> RECORDING -> STOPPED -> ENCODING -> TRANSCRIBING -> PERSISTED
                                                              `-> FAILED

A failed recording is discarded; nothing is retried.
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Tuple

from audiolog.config import log_event, RECORDING_TICK_SECONDS
from audiolog.errors import SyncError, ValidationFailed
from audiolog.services.mutations import MutationCoordinator
from audiolog.services.proxy_client import ProxyClient


class RecordingState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    ENCODING = "encoding"
    TRANSCRIBING = "transcribing"
    PERSISTED = "persisted"
    FAILED = "failed"


# States a new recording may start from
READY_STATES = (RecordingState.IDLE, RecordingState.PERSISTED, RecordingState.FAILED)


class AudioSource(ABC):
    """A microphone, or anything else that yields encoded audio chunks."""

    @abstractmethod
    def start(self):
        """Begin capturing."""

    @abstractmethod
    def stop(self) -> Tuple[List[bytes], str]:
        """Stop capturing and return (chunks, mime_type)."""


def encode_audio(chunks: List[bytes]) -> str:
    """Concatenate chunks into one blob and base64 it for transport."""
    return base64.b64encode(b"".join(chunks)).decode("ascii")


class RecordingPipeline:

    def __init__(
        self,
        source: AudioSource,
        proxy: ProxyClient,
        mutations: MutationCoordinator,
        tick_seconds: float = RECORDING_TICK_SECONDS,
    ):
        self.source = source
        self.proxy = proxy
        self.mutations = mutations
        self.tick_seconds = tick_seconds
        self.state = RecordingState.IDLE
        self.elapsed_seconds = 0
        self.last_log_id: Optional[str] = None
        self.last_error: Optional[Exception] = None
        self._ticker: Optional[asyncio.Task] = None

    @property
    def is_recording(self) -> bool:
        return self.state == RecordingState.RECORDING

    @property
    def is_busy(self) -> bool:
        return self.state not in READY_STATES

    async def _tick(self):
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.elapsed_seconds += 1

    def _stop_ticker(self):
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def start(self) -> bool:
        if self.state not in READY_STATES:
            log_event(logging.WARNING, "recording_start_ignored", state=self.state.value)
            return False
        try:
            self.source.start()
        except Exception as e:
            # Microphone unavailable or permission denied
            log_event(logging.ERROR, "recording_start_failed", error=str(e))
            self.last_error = e
            return False

        self.elapsed_seconds = 0
        self.last_error = None
        self.state = RecordingState.RECORDING
        self._ticker = asyncio.get_running_loop().create_task(self._tick())
        log_event(logging.INFO, "recording_started")
        return True

    async def stop(self) -> Optional[str]:
        """Finish the recording and persist it; returns the new log id, or None."""
        if self.state != RecordingState.RECORDING:
            log_event(logging.WARNING, "recording_stop_ignored", state=self.state.value)
            return None

        self._stop_ticker()
        self.state = RecordingState.STOPPED
        try:
            chunks, mime_type = self.source.stop()
        except Exception as e:
            self.state = RecordingState.FAILED
            self.last_error = e
            log_event(logging.ERROR, "recording_capture_failed", error=str(e))
            return None
        log_event(logging.INFO, "recording_stopped", seconds=self.elapsed_seconds, chunks=len(chunks))

        try:
            if not any(chunks):
                raise ValidationFailed("Nothing was recorded")

            self.state = RecordingState.ENCODING
            audio_base64 = await asyncio.to_thread(encode_audio, chunks)

            self.state = RecordingState.TRANSCRIBING
            analysis = await self.proxy.transcribe(audio_base64, mime_type)

            audio_data = f"data:{mime_type};base64,{audio_base64}"
            log_id = await self.mutations.create_log(analysis, audio_data)
        except SyncError as e:
            self.state = RecordingState.FAILED
            self.last_error = e
            log_event(logging.ERROR, "recording_failed", kind=e.kind, error=str(e))
            return None

        self.state = RecordingState.PERSISTED
        self.last_log_id = log_id
        log_event(logging.INFO, "recording_persisted", log_id=log_id, milestone=analysis.milestone)
        return log_id
