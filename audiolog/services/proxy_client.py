"""
HTTP client for the AI proxy.

Requests carry the caller's identity and have no timeout: a hung proxy call
leaves its in-progress indicator set until the call returns.
"""

import logging
from typing import Dict, Optional

import httpx

from audiolog.auth import AnonymousAuth
from audiolog.config import log_event, PROXY_URL
from audiolog.errors import ProxyFailed, Unauthenticated
from audiolog.models import Analysis

USER_HEADER = "X-User-Id"


class ProxyClient:

    def __init__(
        self,
        auth: AnonymousAuth,
        base_url: str = PROXY_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.auth = auth
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=None)

    async def aclose(self):
        await self._http.aclose()

    async def _call(self, route: str, payload: Dict) -> Dict:
        user_id = self.auth.require_user()
        try:
            response = await self._http.post(route, json=payload, headers={USER_HEADER: user_id})
        except httpx.HTTPError as e:
            log_event(logging.ERROR, "proxy_transport_error", route=route, error=str(e))
            raise ProxyFailed(f"{route} unreachable: {e}") from e

        if response.status_code == 401:
            raise Unauthenticated("Proxy rejected the caller identity")
        if response.is_error:
            log_event(logging.ERROR, "proxy_error_status", route=route, status=response.status_code)
            raise ProxyFailed(f"{route} returned {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ProxyFailed(f"{route} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise ProxyFailed(f"{route} returned {type(body).__name__}, expected an object")
        log_event(logging.DEBUG, "proxy_call_ok", route=route)
        return body

    async def _text(self, route: str, payload: Dict) -> str:
        body = await self._call(route, payload)
        text = body.get("text")
        if not isinstance(text, str):
            raise ProxyFailed(f"{route} returned no text")
        return text

    async def transcribe(self, audio_payload: str, mime_hint: str) -> Analysis:
        """Transcribe base64 audio and classify it as a milestone or not."""
        body = await self._call("/api/process-audio", {"audioBase64": audio_payload, "mimeType": mime_hint})
        return Analysis.from_dict(body)

    async def suggest_title(self, logs_text: str) -> Dict[str, str]:
        body = await self._call("/api/magic-title", {"logs": logs_text})
        if not isinstance(body.get("title"), str) or not isinstance(body.get("subtitle"), str):
            raise ProxyFailed("Title suggestion is missing fields")
        return {"title": body["title"], "subtitle": body["subtitle"]}

    async def recap(self, logs_text: str) -> str:
        return await self._text("/api/recap", {"logs": logs_text})

    async def insight(self, transcript_text: str) -> str:
        return await self._text("/api/insight", {"transcript": transcript_text})

    async def persona(self, logs_text: str) -> str:
        return await self._text("/api/persona", {"logs": logs_text})
