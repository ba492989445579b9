"""
Microphone capture with sounddevice, encoded to WAV with soundfile.
"""

import io
import logging
from typing import List, Optional, Tuple

import numpy as np
import sounddevice as sd
import soundfile as sf

from audiolog.config import log_event
from audiolog.services.recording import AudioSource


class SoundDeviceSource(AudioSource):
    """Records the default (or given) input device into one WAV blob."""

    mime_type = "audio/wav"

    def __init__(self, samplerate: int = 16000, channels: int = 1, device: Optional[int] = None):
        self.samplerate = samplerate
        self.channels = channels
        self.device = device
        self.stream: Optional[sd.InputStream] = None
        self._frames: List[np.ndarray] = []

    def _callback(self, indata, frames, time_info, status):
        if status:
            log_event(logging.WARNING, "capture_status", status=str(status))
        self._frames.append(indata.copy())

    def start(self):
        self._frames = []
        self.stream = sd.InputStream(
            samplerate=self.samplerate,
            channels=self.channels,
            dtype="int16",
            device=self.device,
            callback=self._callback,
        )
        self.stream.start()
        log_event(logging.INFO, "capture_started", samplerate=self.samplerate, device=self.device)

    def stop(self) -> Tuple[List[bytes], str]:
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None

        if not self._frames:
            return [], self.mime_type

        audio = np.concatenate(self._frames)
        buffer = io.BytesIO()
        sf.write(buffer, audio, self.samplerate, format="WAV", subtype="PCM_16")
        self._frames = []
        log_event(logging.INFO, "capture_encoded", bytes=buffer.tell())
        return [buffer.getvalue()], self.mime_type
