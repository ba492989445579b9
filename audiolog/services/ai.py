"""
AI operations: Gemini analysis and Groq Whisper transcription.

Runs behind the proxy so API keys never reach clients.
"""

import io
import json
import base64
import binascii
import logging
from typing import Dict

from audiolog.config import log_event, DEFAULT_MIME_TYPE, WHISPER_MODEL
from audiolog.errors import ProxyFailed, ValidationFailed
from audiolog.models import Analysis


# --- PROMPTS ---

TRANSCRIBE_PROMPT = """Transcribe this audio log exactly. Also, generate a short 1-sentence summary and determine if it's a 'Milestone' breakthrough.
Format strictly as JSON: { "transcript": string, "milestone": boolean, "summary": string }"""

ANALYZE_PROMPT = """Here is the exact transcript of an audio log:
"{transcript}"

Generate a short 1-sentence summary and determine if it's a 'Milestone' breakthrough.
Format strictly as JSON: {{ "milestone": boolean, "summary": string }}"""

TITLE_PROMPT = """Based on these voice logs, suggest a creative 2-3 word title and a 4-5 word subtitle for this person's learning journey.
Logs: {logs}
Format strictly as JSON: {{ "title": string, "subtitle": string }}"""

RECAP_PROMPT = """Summarize the following learning journey logs into a single inspirational "Weekly Recap" paragraph.
Focus on the narrative arc of their effort.
Logs: {logs}"""

INSIGHT_PROMPT = """The user recorded this log: "{transcript}".
Give them a one-sentence piece of personalized encouragement or a relevant "next step" tip.
Be warm, human, and specific."""

PERSONA_PROMPT = """Based on these learning journals, describe the user's "Learning Persona" in 3 sentences.
Focus on their attitude, their strengths in overcoming obstacles, and their emotional tone.
Logs: {logs}"""


# --- HELPERS ---

def clean_json(text: str) -> Dict:
    """Parse a JSON reply, stripping Markdown code fences if Gemini adds them."""
    cleaned = text.replace("```json", "").replace("```", "").strip()
    try:
        data = json.loads(cleaned)
    except ValueError as e:
        log_event(logging.ERROR, "gemini_invalid_json", preview=cleaned[:80])
        raise ProxyFailed("Model returned invalid JSON") from e
    if not isinstance(data, dict):
        raise ProxyFailed("Model returned JSON that is not an object")
    return data


def base_mime_type(mime_type: str) -> str:
    """'audio/webm;codecs=opus' -> 'audio/webm'."""
    return (mime_type or DEFAULT_MIME_TYPE).split(";")[0].strip()


# --- BACKEND ---

class GenerativeBackend:
    """
    Wraps the Gemini model and, when configured, the Groq client.

    With Groq available, speech-to-text goes through Whisper and Gemini only
    classifies the transcript; otherwise Gemini receives the audio inline.
    """

    def __init__(self, model, groq_client=None, whisper_model: str = WHISPER_MODEL):
        self.model = model
        self.groq_client = groq_client
        self.whisper_model = whisper_model

    def _generate(self, contents) -> str:
        if self.model is None:
            log_event(logging.WARNING, "gemini_unavailable")
            raise ProxyFailed("Gemini is not configured")
        try:
            response = self.model.generate_content(contents)
            return response.text.strip()
        except Exception as e:
            log_event(logging.ERROR, "gemini_error", error=str(e))
            raise ProxyFailed(str(e)) from e

    def _whisper(self, audio: bytes, mime_type: str) -> str:
        try:
            audio_file = io.BytesIO(audio)
            audio_file.name = f"audio.{mime_type.split('/')[-1]}"

            transcription = self.groq_client.audio.transcriptions.create(
                file=audio_file,
                model=self.whisper_model,
                response_format="text"
            )

            text = transcription.strip()
            log_event(logging.INFO, "audio_transcribed", chars=len(text))
            return text
        except Exception as e:
            log_event(logging.ERROR, "transcription_error", error=str(e))
            raise ProxyFailed(str(e)) from e

    def process_audio_log(self, audio_base64: str, mime_type: str) -> Analysis:
        """Transcribe a base64 audio log and classify it."""
        try:
            audio = base64.b64decode(audio_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationFailed("audioBase64 is not valid base64") from e
        mime_type = base_mime_type(mime_type)
        log_event(logging.INFO, "process_audio_log", bytes=len(audio), mime_type=mime_type, whisper=bool(self.groq_client))

        if self.groq_client is not None:
            transcript = self._whisper(audio, mime_type)
            data = clean_json(self._generate(ANALYZE_PROMPT.format(transcript=transcript)))
            data["transcript"] = transcript
        else:
            data = clean_json(self._generate([
                TRANSCRIBE_PROMPT,
                {"mime_type": mime_type, "data": audio},
            ]))
        return Analysis.from_dict(data)

    def magic_title(self, logs: str) -> Dict[str, str]:
        data = clean_json(self._generate(TITLE_PROMPT.format(logs=logs)))
        if not isinstance(data.get("title"), str) or not isinstance(data.get("subtitle"), str):
            raise ProxyFailed("Title reply is missing fields")
        return {"title": data["title"], "subtitle": data["subtitle"]}

    def recap(self, logs: str) -> str:
        return self._generate(RECAP_PROMPT.format(logs=logs))

    def insight(self, transcript: str) -> str:
        return self._generate(INSIGHT_PROMPT.format(transcript=transcript))

    def persona(self, logs: str) -> str:
        return self._generate(PERSONA_PROMPT.format(logs=logs))
