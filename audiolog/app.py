"""
AudioLog AI proxy server.

Holds the Gemini (and optional Groq) keys and exposes one stateless POST
endpoint per AI call.
"""

import logging
from typing import Optional

from flask import Flask
from flask_cors import CORS

from audiolog.config import (
    log_event,
    create_gemini_model,
    create_groq_client,
    PORT,
)
from audiolog.routes import api
from audiolog.services.ai import GenerativeBackend


def create_app(backend: Optional[GenerativeBackend] = None) -> Flask:
    """Application factory; builds the AI backend from the environment by default."""
    app = Flask(__name__)
    CORS(app)

    if backend is None:
        backend = GenerativeBackend(create_gemini_model(), create_groq_client())
    app.extensions["audiolog_ai"] = backend
    app.register_blueprint(api)
    return app


def main():
    app = create_app()
    backend = app.extensions["audiolog_ai"]
    log_event(
        logging.INFO,
        "server_startup",
        groq_ready=bool(backend.groq_client),
        gemini_ready=bool(backend.model),
        port=PORT,
    )

    print(f"""
    ╔═══════════════════════════════════════════════════╗
    ║           🎙  AUDIOLOG - AI Proxy                  ║
    ╠═══════════════════════════════════════════════════╣
    ║   Gemini:          {'✅ Ready' if backend.model else '❌ No API Key'}                    ║
    ║   Groq (Whisper):  {'✅ Ready' if backend.groq_client else '➖ Gemini audio'}                    ║
    ╠═══════════════════════════════════════════════════╣
    ║   Server: http://localhost:{PORT}                    ║
    ╚═══════════════════════════════════════════════════╝
    """)
    app.run(port=PORT, threaded=True)


if __name__ == '__main__':
    main()
