from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from petchat.core.errors import ProviderError, ServerError, extract_error_message
from petchat.providers.anthropic import resolve_max_tokens
from petchat.providers.base import StreamingProvider
from petchat.providers.decoders import SSEDecoder
from petchat.providers.session import StreamSession
from petchat.schemas.chat import CanonicalRequest, HTTPRequestSpec
from petchat.schemas.provider import ProviderType

logger = logging.getLogger(__name__)

ALLOWED_ROLES = ("system", "user", "assistant")
CLAUDE_FALLBACK_MAX_TOKENS = 4096


def extract_delta_text(frame: Dict[str, Any]) -> Optional[str]:
    """Delta text from an OpenAI-style chunk or an Anthropic passthrough chunk.

    Precedence: choices[0].delta.content, choices[0].delta.text, delta.text.
    """
    choices = frame.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict):
            for key in ("content", "text"):
                value = delta.get(key)
                if isinstance(value, str):
                    return value
    delta = frame.get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
        return delta["text"]
    return None


class OpenAICompatibleProvider(StreamingProvider):
    """OpenAI, Qwen and arbitrary OpenAI-compatible gateways."""

    read_timeout = 60.0

    def __init__(self, config, api_key=None, **kwargs) -> None:
        super().__init__(config, api_key, **kwargs)
        self.provider_type = config.type

    @property
    def is_claude(self) -> bool:
        return "claude" in self.model.lower()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def apply_web_search_trigger(self, message: str, enable_web_search: bool) -> str:
        # Gateways (e.g. API2D) switch on search when the message starts with an operator-defined token
        if self.provider_type is ProviderType.CUSTOM and enable_web_search and not self.is_claude:
            trigger = self.settings.web_search_trigger.strip()
            if trigger:
                return f"{trigger} {message}"
        return message

    def build_chat_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        gen = request.generation_config
        messages: List[Dict[str, Any]] = []
        system = request.system_prompt.strip()
        if system:
            messages.append({"role": "system", "content": system})
        for turn in request.history:
            # function/tool artifacts left by gateway searches are dropped
            if turn.role in ALLOWED_ROLES:
                messages.append(turn.as_message())
        messages.append({"role": "user", "content": self.apply_web_search_trigger(request.message, gen.enable_web_search)})
        return self._spec(messages, request)

    def build_image_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        content = [
            {"type": "text", "text": request.message},
            {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{request.image_base64}"}},
        ]
        messages: List[Dict[str, Any]] = []
        system = request.system_prompt.strip()
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": content})
        return self._spec(messages, request)

    def _spec(self, messages: List[Dict[str, Any]], request: CanonicalRequest) -> HTTPRequestSpec:
        gen = request.generation_config
        payload: Dict[str, Any] = {"model": self.model, "stream": True}

        if self.provider_type is not ProviderType.CUSTOM:
            if gen.max_tokens > 0:
                payload["max_tokens"] = gen.max_tokens
            if gen.temperature != 1.0:
                payload["temperature"] = gen.temperature
            if gen.enable_web_search:
                if self.provider_type is ProviderType.OPENAI:
                    payload["tools"] = [{"type": "web_search"}]
                elif self.provider_type is ProviderType.QWEN:
                    payload["enable_search"] = True
        # Custom gateways get no generation parameters; search is the message trigger

        if self.is_claude:
            # Claude behind an OpenAI-style transport still wants Anthropic's schema
            system_parts = []
            filtered = []
            for msg in messages:
                if msg["role"] == "system":
                    if isinstance(msg["content"], str) and msg["content"].strip():
                        system_parts.append(msg["content"].strip())
                else:
                    filtered.append(msg)
            if system_parts:
                payload["system"] = "\n".join(system_parts)
            payload["messages"] = filtered
            payload["max_tokens"] = resolve_max_tokens(gen.max_tokens, CLAUDE_FALLBACK_MAX_TOKENS)
        else:
            payload["messages"] = messages

        return HTTPRequestSpec(
            url=f"{self.base_url}/v1/chat/completions",
            headers=self._headers(),
            body=payload,
        )

    def new_decoder(self) -> SSEDecoder:
        return SSEDecoder(accept_bare_json=True)

    def handle_frame(self, session: StreamSession, frame: Dict[str, Any]) -> Optional[ProviderError]:
        if frame.get("error"):
            return ServerError(extract_error_message(frame) or "stream error")
        text = extract_delta_text(frame)
        if text:
            session.append(text)
        return None

    async def probe_health(self) -> bool:
        async with self._health_client() as client:
            try:
                resp = await client.get(f"{self.base_url}/v1/models", headers=self._headers())
                if resp.status_code == 200:
                    return True
            except Exception as exc:
                logger.info("%s model list failed: %r", self.name, exc)
            # Some gateways have no /v1/models, a 1-token completion proves the key works
            logger.info("%s /v1/models unavailable, trying dry-run chat", self.name)
            resp = await client.post(
                f"{self.base_url}/v1/chat/completions",
                headers=self._headers(),
                json={"model": self.model, "messages": [{"role": "user", "content": "hi"}], "max_tokens": 1},
            )
            logger.info("%s dry-run status: %s", self.name, resp.status_code)
            return 200 <= resp.status_code < 300
