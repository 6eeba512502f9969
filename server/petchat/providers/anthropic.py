from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from petchat.core.errors import ProviderError, ServerError, extract_error_message
from petchat.providers.base import StreamingProvider
from petchat.providers.decoders import SSEDecoder
from petchat.providers.session import StreamSession
from petchat.schemas.chat import CanonicalRequest, ConversationTurn, GenerationConfig, HTTPRequestSpec
from petchat.schemas.provider import ProviderType

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
FALLBACK_MAX_TOKENS = ProviderType.ANTHROPIC.default_max_tokens
WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 3}


def anthropic_role(role: str) -> str:
    # Messages may only alternate user/assistant; anything else is coerced
    return "user" if role == "user" else "assistant"


def anthropic_messages(history: List[ConversationTurn]) -> List[Dict[str, Any]]:
    return [{"role": anthropic_role(t.role), "content": t.content} for t in history]


def resolve_max_tokens(max_tokens: int, fallback: int = FALLBACK_MAX_TOKENS) -> int:
    # max_tokens is mandatory on every Messages API call
    return max_tokens if max_tokens > 0 else fallback


class AnthropicProvider(StreamingProvider):
    provider_type = ProviderType.ANTHROPIC

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
            "accept": "text/event-stream",
        }

    def _body(self, messages: List[Dict[str, Any]], system_prompt: str, gen: GenerationConfig) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": resolve_max_tokens(gen.max_tokens),
            "messages": messages,
            "stream": True,
            "temperature": gen.temperature,
            "top_p": gen.top_p,
        }
        # System prompt is a top-level field, never a message
        if system_prompt.strip():
            payload["system"] = system_prompt
        if gen.enable_web_search:
            payload["tools"] = [dict(WEB_SEARCH_TOOL)]
        return payload

    def build_chat_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        messages = anthropic_messages(request.history)
        messages.append({"role": "user", "content": request.message})
        return HTTPRequestSpec(
            url=f"{self.base_url}/v1/messages",
            headers=self._headers(),
            body=self._body(messages, request.system_prompt, request.generation_config),
        )

    def build_image_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        content = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": "image/png", "data": request.image_base64},
            },
            {"type": "text", "text": request.message},
        ]
        return HTTPRequestSpec(
            url=f"{self.base_url}/v1/messages",
            headers=self._headers(),
            body=self._body([{"role": "user", "content": content}], request.system_prompt, request.generation_config),
        )

    def new_decoder(self) -> SSEDecoder:
        return SSEDecoder(accept_bare_json=True)

    def handle_frame(self, session: StreamSession, frame: Dict[str, Any]) -> Optional[ProviderError]:
        etype = frame.get("type")
        if etype == "error" or "error" in frame:
            return ServerError(extract_error_message(frame) or "stream error")
        # message_start, content_block_start, ... carry no text
        if etype == "content_block_delta":
            delta = frame.get("delta") or {}
            text = delta.get("text")
            if isinstance(text, str):
                session.append(text)
        return None

    async def probe_health(self) -> bool:
        body = {
            "model": self.model,
            "max_tokens": 1,
            "messages": [{"role": "user", "content": "hi"}],
        }
        headers = {k: v for k, v in self._headers().items() if k != "accept"}
        async with self._health_client() as client:
            resp = await client.post(f"{self.base_url}/v1/messages", headers=headers, json=body)
        status = resp.status_code
        if status == 200:
            logger.info("Anthropic model '%s' verified", self.model)
            return True
        if status >= 500:
            return False
        error: Dict[str, Any] = {}
        try:
            payload = resp.json()
            if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
                error = payload["error"]
        except ValueError:
            pass
        message = str(error.get("message") or "")
        if error.get("type") == "invalid_request_error" and (self.model in message or "model" in message.lower()):
            logger.warning("Anthropic model '%s' not found: %s", self.model, message)
            return False
        # Out of credits, rate limited and similar still mean the model exists
        logger.info("Anthropic returned HTTP %s but model likely valid", status)
        return True
