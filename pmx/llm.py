"""
Gemini client (REST, via requests).

Thin wrapper over the generateContent endpoint. The only resilience is
generate_with_retry(): HTTP 503 (model overloaded) is retried a few
times with linearly growing waits; every other failure is raised at once.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

OVERLOADED = 503
OVERLOADED_MESSAGE = "All available AI models are temporarily overloaded. Please try again later."

# Conversation opener sent ahead of the user's history
CHAT_PREAMBLE = [
    {"role": "user", "text": "You are PMX Assistant. Acknowledge briefly."},
    {"role": "model", "text": "I'm PMX Assistant, ready to help with your project management needs. What can I help you with?"},
]


class LLMError(Exception):
    """Provider failure. status mirrors the HTTP status to report upstream."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    @property
    def http_status(self) -> int:
        return OVERLOADED if self.status == OVERLOADED else 500


def text_part(text: str) -> Dict[str, Any]:
    return {"text": text}


def inline_part(data_base64: str, mime_type: str = "application/pdf") -> Dict[str, Any]:
    return {"inlineData": {"mimeType": mime_type, "data": data_base64}}


class GeminiClient:
    """Minimal generateContent client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        retry_attempts: int = 3,
        retry_delay_secs: float = 1.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay_secs = retry_delay_secs
        self.session = session or requests.Session()
        self.sleep = sleep

    @classmethod
    def from_config(cls, cfg) -> "GeminiClient":
        return cls(
            api_key=cfg.gemini_api_key,
            model=cfg.model,
            api_base=cfg.api_base,
            timeout=float(cfg.request_timeout),
            retry_attempts=int(cfg.retry_attempts),
            retry_delay_secs=float(cfg.retry_delay_secs),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def _post(self, body: Dict[str, Any]) -> str:
        if not self.api_key:
            raise LLMError(500, "GEMINI_API_KEY is not configured")
        try:
            r = self.session.post(
                self.endpoint,
                json=body,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Gemini request failed: {e}")
            raise LLMError(500, f"AI provider unreachable: {e}") from e

        if not r.ok:
            raise LLMError(r.status_code, _error_message(r))

        try:
            data = r.json()
        except ValueError as e:
            raise LLMError(500, "AI provider returned a non-JSON response") from e
        return _response_text(data)

    def generate(self, parts: List[Dict[str, Any]], system_prompt: str = "") -> str:
        """Single-turn generation. parts: text_part()/inline_part() dicts."""
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if system_prompt:
            body["systemInstruction"] = {"parts": [text_part(system_prompt)]}
        return self._post(body)

    def generate_with_retry(self, prompt: str) -> str:
        """generate() with retry on 503, waiting attempt * retry_delay_secs between tries."""
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return self.generate([text_part(prompt)])
            except LLMError as e:
                if e.status != OVERLOADED:
                    raise
                if attempt < self.retry_attempts:
                    delay = attempt * self.retry_delay_secs
                    logger.warning(f"Model overloaded (attempt {attempt}/{self.retry_attempts}), retrying in {delay}s")
                    self.sleep(delay)
        raise LLMError(OVERLOADED, OVERLOADED_MESSAGE)

    def chat(self, message: str, history: Optional[List[Dict[str, Any]]] = None, system_prompt: str = "") -> str:
        """One chat turn. history items: {"role": "user"|"assistant", "content": str}."""
        contents = [
            {"role": turn["role"], "parts": [text_part(turn["text"])]} for turn in CHAT_PREAMBLE
        ]
        for msg in history or []:
            if not isinstance(msg, dict):
                continue
            role = "user" if msg.get("role") == "user" else "model"
            contents.append({"role": role, "parts": [text_part(str(msg.get("content", "")))]})
        contents.append({"role": "user", "parts": [text_part(message)]})

        body: Dict[str, Any] = {"contents": contents}
        if system_prompt:
            body["systemInstruction"] = {"parts": [text_part(system_prompt)]}
        return self._post(body)


def _error_message(r: requests.Response) -> str:
    try:
        data = r.json()
        message = data.get("error", {}).get("message")
        if message:
            return message
    except (ValueError, AttributeError):
        pass
    return f"AI provider error (HTTP {r.status_code})"


def _response_text(data: Dict[str, Any]) -> str:
    """Concatenate text parts of the first candidate."""
    candidates = data.get("candidates") or []
    if not candidates:
        raise LLMError(500, "AI provider returned no candidates")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))
