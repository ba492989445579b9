import base64
from types import SimpleNamespace

import pytest

from audiolog.app import create_app
from audiolog.services.ai import GenerativeBackend, base_mime_type, clean_json
from audiolog.errors import ProxyFailed

AUDIO = base64.b64encode(b"fake audio bytes").decode("ascii")
HEADERS = {"X-User-Id": "user-alice"}


class FakeModel:
    """Mimics GenerativeModel.generate_content; replies are consumed in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    def generate_content(self, contents):
        self.prompts.append(contents)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


class FakeGroq:

    def __init__(self, transcript):
        self.uploads = []
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._create))
        self._transcript = transcript

    def _create(self, file, model, response_format):
        self.uploads.append((file.name, file.read(), model, response_format))
        return f"  {self._transcript}\n"


def _client(model=None, groq=None):
    app = create_app(GenerativeBackend(model, groq))
    app.config["TESTING"] = True
    return app.test_client()


def test_health_reports_configured_backends():
    response = _client(model=FakeModel()).get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "gemini_available": True, "groq_available": False}


def test_missing_identity_is_rejected():
    model = FakeModel()
    response = _client(model).post("/api/recap", json={"logs": "x"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthenticated"
    assert model.prompts == []


def test_process_audio_with_inline_gemini_audio():
    model = FakeModel('```json\n{"transcript": "hello world", "milestone": true, "summary": "greeting"}\n```')
    response = _client(model).post(
        "/api/process-audio",
        json={"audioBase64": AUDIO, "mimeType": "audio/webm;codecs=opus"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.get_json() == {"transcript": "hello world", "milestone": True, "summary": "greeting"}
    prompt, audio = model.prompts[0]
    assert audio == {"mime_type": "audio/webm", "data": b"fake audio bytes"}


def test_process_audio_with_whisper_transcription():
    model = FakeModel('{"milestone": false, "summary": "a short note"}')
    groq = FakeGroq("first try at scales")
    response = _client(model, groq).post(
        "/api/process-audio",
        json={"audioBase64": AUDIO, "mimeType": "audio/wav"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.get_json() == {"transcript": "first try at scales", "milestone": False, "summary": "a short note"}
    name, data, _, response_format = groq.uploads[0]
    assert name == "audio.wav"
    assert data == b"fake audio bytes"
    assert response_format == "text"
    assert "first try at scales" in model.prompts[0]


def test_process_audio_rejects_bad_base64():
    model = FakeModel()
    response = _client(model).post(
        "/api/process-audio",
        json={"audioBase64": "***not base64***", "mimeType": "audio/webm"},
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid-argument"
    assert model.prompts == []


def test_process_audio_failure_reports_fixed_message():
    model = FakeModel(RuntimeError("quota exceeded"))
    response = _client(model).post(
        "/api/process-audio",
        json={"audioBase64": AUDIO, "mimeType": "audio/webm"},
        headers=HEADERS,
    )
    assert response.status_code == 500
    assert response.get_json() == {"error": "internal", "message": "Failed to process audio."}


def test_unparseable_model_reply_is_an_internal_error():
    model = FakeModel("I think this was a milestone!")
    response = _client(model).post(
        "/api/process-audio",
        json={"audioBase64": AUDIO, "mimeType": "audio/webm"},
        headers=HEADERS,
    )
    assert response.status_code == 500


def test_magic_title():
    model = FakeModel('{"title": "Scale Climber", "subtitle": "one octave at a time"}')
    response = _client(model).post("/api/magic-title", json={"logs": "day one day two"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.get_json() == {"title": "Scale Climber", "subtitle": "one octave at a time"}
    assert "day one day two" in model.prompts[0]


@pytest.mark.parametrize("route,field", [
    ("/api/recap", "logs"),
    ("/api/insight", "transcript"),
    ("/api/persona", "logs"),
])
def test_text_routes(route, field):
    model = FakeModel("  You showed up every day.  ")
    response = _client(model).post(route, json={field: "practiced"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.get_json() == {"text": "You showed up every day."}


def test_missing_field_is_invalid_argument():
    response = _client(FakeModel()).post("/api/insight", json={"logs": "wrong field"}, headers=HEADERS)
    assert response.status_code == 400


def test_unconfigured_gemini_is_an_internal_error():
    response = _client(model=None).post("/api/recap", json={"logs": "x"}, headers=HEADERS)
    assert response.status_code == 500
    assert response.get_json()["message"] == "Failed to generate recap."


def test_clean_json_strips_fences_and_rejects_non_objects():
    assert clean_json('```json\n{"a": 1}\n```') == {"a": 1}
    with pytest.raises(ProxyFailed):
        clean_json("[1, 2]")


def test_base_mime_type():
    assert base_mime_type("audio/webm;codecs=opus") == "audio/webm"
    assert base_mime_type("") == "audio/webm"
