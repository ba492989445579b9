"""
Configuration, constants, and service factories.
"""

import os
import logging
from typing import Optional

from dotenv import load_dotenv

# --- LOAD ENV ---
load_dotenv()

# --- LOGGING ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("audiolog")


def log_event(level: int, message: str, **data):
    """Lightweight structured logging helper."""
    try:
        serialized = " | ".join(f"{k}={v}" for k, v in data.items())
        logger.log(level, f"{message}{' | ' + serialized if serialized else ''}")
    except Exception:
        logger.log(level, message)


# --- CONSTANTS ---
APP_ID = os.getenv("AUDIOLOG_APP_ID", "audio-log-demo")
DEFAULT_USER_PREFIX = "Maker"
DEFAULT_MIME_TYPE = "audio/webm"
TITLE_LOG_LIMIT = 10
RECAP_LOG_LIMIT = 7
RECORDING_TICK_SECONDS = 1.0
MAX_OPEN_THREADS = 20

# --- ENDPOINTS ---
PROXY_URL = os.getenv("AUDIOLOG_PROXY_URL", "http://localhost:5050")
STORE_BACKEND = os.getenv("AUDIOLOG_STORE", "memory").lower()
FIRESTORE_PROJECT = os.getenv("FIRESTORE_PROJECT")
PORT = int(os.getenv("PORT", 5050))

# --- API KEYS ---
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
WHISPER_MODEL = os.getenv("WHISPER_MODEL", "whisper-large-v3")


# --- SERVICE FACTORIES ---
# Built once by the composition root and passed down; never at import time.

def create_gemini_model(api_key: Optional[str] = None):
    """Gemini model for transcription analysis and journaling prompts."""
    api_key = api_key or GEMINI_API_KEY
    if not api_key:
        log_event(logging.WARNING, "gemini_unconfigured")
        return None

    import google.generativeai as genai

    genai.configure(api_key=api_key)
    log_event(logging.INFO, "gemini_configured", model=GEMINI_MODEL)
    return genai.GenerativeModel(GEMINI_MODEL)


def create_groq_client(api_key: Optional[str] = None):
    """Groq client for Whisper transcription, or None when no key is set."""
    api_key = api_key or GROQ_API_KEY
    if not api_key:
        return None

    from groq import Groq

    log_event(logging.INFO, "groq_configured", model=WHISPER_MODEL)
    return Groq(api_key=api_key)


def display_name(user_id: str) -> str:
    """Public handle shown next to a user's logs and comments."""
    return f"{DEFAULT_USER_PREFIX} {user_id[:4]}"
