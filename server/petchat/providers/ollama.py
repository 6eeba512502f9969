from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from petchat.core.errors import ProviderError, ServerError
from petchat.providers.base import StreamingProvider
from petchat.providers.decoders import NDJSONDecoder
from petchat.providers.session import StreamSession
from petchat.schemas.chat import CanonicalRequest, HTTPRequestSpec
from petchat.schemas.provider import ProviderType

logger = logging.getLogger(__name__)

ALLOWED_ROLES = ("system", "user", "assistant")


class OllamaProvider(StreamingProvider):
    provider_type = ProviderType.OLLAMA

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_chat_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        messages: List[Dict[str, str]] = [{"role": "system", "content": request.system_prompt}]
        for turn in request.history:
            # Role vocabulary is system/user/assistant only
            if turn.role in ALLOWED_ROLES:
                messages.append(turn.as_message())
        messages.append({"role": "user", "content": request.message})
        return HTTPRequestSpec(
            url=f"{self.base_url}/api/chat",
            headers=self._headers(),
            body={"model": self.model, "messages": messages, "stream": True},
        )

    def build_image_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        # /api/generate takes a flat prompt plus a list of base64 images
        prompt = f"{request.system_prompt}\n\nPlease analyze this image and answer: {request.message}"
        return HTTPRequestSpec(
            url=f"{self.base_url}/api/generate",
            headers=self._headers(),
            body={
                "model": self.model,
                "prompt": prompt.strip(),
                "images": [request.image_base64],
                "stream": True,
            },
        )

    def new_decoder(self) -> NDJSONDecoder:
        return NDJSONDecoder()

    def handle_frame(self, session: StreamSession, frame: Dict[str, Any]) -> Optional[ProviderError]:
        error = frame.get("error")
        if error:
            return ServerError(str(error))
        # /api/generate: {"response": "..."}; /api/chat: {"message": {"content": "..."}}
        token = frame.get("response")
        if not isinstance(token, str):
            message = frame.get("message")
            token = message.get("content") if isinstance(message, dict) else None
        if isinstance(token, str):
            session.append(token)
        return None

    async def probe_health(self) -> bool:
        async with self._health_client() as client:
            resp = await client.get(f"{self.base_url}/api/tags")
            return resp.status_code == 200

    async def list_models(self) -> List[str]:
        """Names of the models pulled into the local server; empty on any failure."""
        try:
            async with self._health_client() as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                resp.raise_for_status()
                models = resp.json().get("models") or []
        except Exception as exc:
            logger.warning("Could not list local models: %r", exc)
            return []
        return [m["name"] for m in models if isinstance(m, dict) and isinstance(m.get("name"), str)]
