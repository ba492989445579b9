"""
Flask routes for the AudioLog AI proxy.
"""

import logging
from dataclasses import asdict

from flask import Blueprint, current_app, jsonify, request

from audiolog.config import log_event
from audiolog.errors import ProxyFailed, Unauthenticated, ValidationFailed
from audiolog.services.ai import GenerativeBackend

USER_HEADER = "X-User-Id"

# Create blueprint
api = Blueprint('api', __name__)


def _backend() -> GenerativeBackend:
    return current_app.extensions["audiolog_ai"]


def _caller() -> str:
    """Every proxy call needs a signed-in caller."""
    user_id = request.headers.get(USER_HEADER, "").strip()
    if not user_id:
        raise Unauthenticated("User must be logged in.")
    return user_id


def _field(name: str) -> str:
    data = request.get_json(silent=True) or {}
    value = data.get(name)
    if not isinstance(value, str):
        raise ValidationFailed(f"'{name}' must be a string")
    return value


def _generate(message: str, fn, *args):
    """Run a backend call, reporting any failure with a fixed message."""
    try:
        return fn(*args)
    except ProxyFailed as e:
        log_event(logging.ERROR, "proxy_call_failed", route=request.path, error=str(e))
        raise ProxyFailed(message) from e


# --- ERROR HANDLERS ---

@api.errorhandler(Unauthenticated)
def handle_unauthenticated(exc):
    log_event(logging.WARNING, "proxy_unauthenticated", route=request.path)
    return jsonify({"error": "unauthenticated", "message": str(exc)}), 401


@api.errorhandler(ValidationFailed)
def handle_invalid(exc):
    return jsonify({"error": "invalid-argument", "message": str(exc)}), 400


@api.errorhandler(ProxyFailed)
def handle_proxy_failed(exc):
    return jsonify({"error": "internal", "message": str(exc)}), 500


# --- ROUTES ---

@api.route('/health')
def health():
    """Health check endpoint."""
    backend = _backend()
    return jsonify({
        "status": "ok",
        "gemini_available": backend.model is not None,
        "groq_available": backend.groq_client is not None,
    })


@api.route('/api/process-audio', methods=['POST'])
def process_audio():
    """Transcribe and analyze an audio log."""
    user_id = _caller()
    audio_base64 = _field("audioBase64")
    data = request.get_json(silent=True) or {}
    mime_type = data.get("mimeType") or ""
    log_event(logging.INFO, "api_process_audio", user_id=user_id, chars=len(audio_base64))

    analysis = _generate("Failed to process audio.", _backend().process_audio_log, audio_base64, mime_type)
    return jsonify(asdict(analysis))


@api.route('/api/magic-title', methods=['POST'])
def magic_title():
    """Suggest a journey title and subtitle."""
    _caller()
    suggestion = _generate("Failed to generate title.", _backend().magic_title, _field("logs"))
    return jsonify(suggestion)


@api.route('/api/recap', methods=['POST'])
def recap():
    """Weekly recap paragraph."""
    _caller()
    text = _generate("Failed to generate recap.", _backend().recap, _field("logs"))
    return jsonify({"text": text})


@api.route('/api/insight', methods=['POST'])
def insight():
    """One-sentence encouragement for a single log."""
    _caller()
    text = _generate("Failed to generate insight.", _backend().insight, _field("transcript"))
    return jsonify({"text": text})


@api.route('/api/persona', methods=['POST'])
def persona():
    """Learning persona from all of a user's logs."""
    _caller()
    text = _generate("Failed to analyze persona.", _backend().persona, _field("logs"))
    return jsonify({"text": text})
