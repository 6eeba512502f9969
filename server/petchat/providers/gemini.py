from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from petchat.core.errors import InvalidResponseError, ProviderError, ServerError, extract_error_message
from petchat.providers.base import StreamingProvider, clean_model_output
from petchat.providers.decoders import JSONArrayDecoder
from petchat.providers.session import StreamSession
from petchat.schemas.chat import CanonicalRequest, GenerationConfig, HTTPRequestSpec
from petchat.schemas.provider import ProviderType

logger = logging.getLogger(__name__)

API_VERSION = "v1beta"


def gemini_role(role: str) -> str:
    # Gemini roles: "user" and "model"
    return "user" if role == "user" else "model"


def extract_text(items: List[Any]) -> str:
    """Concatenate the first candidate's text parts across every array element."""
    out = []
    for item in items:
        if not isinstance(item, dict):
            continue
        candidates = item.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            continue
        parts = (candidates[0].get("content") or {}).get("parts") or []
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                out.append(part["text"])
    return "".join(out)


class GeminiProvider(StreamingProvider):
    provider_type = ProviderType.GEMINI

    def _model_url(self, suffix: str = "") -> str:
        return f"{self.base_url}/{API_VERSION}/models/{self.model}{suffix}?key={quote(self.api_key, safe='')}"

    def _body(self, contents: List[Dict[str, Any]], system_prompt: str, gen: GenerationConfig) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"contents": contents}
        if system_prompt.strip():
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        payload["generationConfig"] = {
            "maxOutputTokens": gen.max_tokens,
            "temperature": gen.temperature,
            "topP": gen.top_p,
            "topK": 40,
        }
        if gen.max_tokens <= 0:
            del payload["generationConfig"]["maxOutputTokens"]
        if gen.enable_web_search:
            payload["tools"] = [{"google_search": {}}]
        return payload

    def _spec(self, body: Dict[str, Any]) -> HTTPRequestSpec:
        return HTTPRequestSpec(
            url=self._model_url(":streamGenerateContent"),
            headers={"Content-Type": "application/json"},
            body=body,
        )

    def build_chat_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        contents = [
            {"role": gemini_role(t.role), "parts": [{"text": t.content}]}
            for t in request.history
        ]
        contents.append({"role": "user", "parts": [{"text": request.message}]})
        return self._spec(self._body(contents, request.system_prompt, request.generation_config))

    def build_image_request(self, request: CanonicalRequest) -> HTTPRequestSpec:
        contents = [
            {
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": "image/png", "data": request.image_base64}},
                    {"text": request.message},
                ],
            }
        ]
        return self._spec(self._body(contents, request.system_prompt, request.generation_config))

    def new_decoder(self) -> JSONArrayDecoder:
        return JSONArrayDecoder(max_bytes=self.settings.max_array_buffer_bytes)

    def handle_frame(self, session: StreamSession, frame: List[Any]) -> Optional[ProviderError]:
        # Each frame is the whole array parsed so far, so publish snapshots rather than deltas
        message = extract_error_message(frame)
        if message:
            return ServerError(message)
        text = extract_text(frame)
        if text and text != session.text:
            session.replace(text)
        return None

    def finish_stream(self, session: StreamSession, decoder: JSONArrayDecoder) -> None:
        final = decoder.finish()
        message = extract_error_message(final) if final is not None else None
        if message:
            session.fail(ServerError(message))
            return
        if isinstance(final, list):
            text = extract_text(final)
            if text:
                session.replace(text)
        elif decoder.failed and not session.text:
            logger.warning("Gemini stream ended without a parseable array: %.200s", decoder.text)
            session.fail(InvalidResponseError("unparseable streaming array"))
            return
        session.succeed(clean_model_output(session.text))

    async def probe_health(self) -> bool:
        async with self._health_client() as client:
            resp = await client.get(self._model_url())
        if resp.status_code == 200:
            logger.info("Gemini model '%s' verified", self.model)
            return True
        if resp.status_code == 404:
            logger.warning("Gemini model '%s' not found", self.model)
        else:
            logger.warning("Gemini health check returned HTTP %s", resp.status_code)
        return False
