"""AI phishing analysis client (Anthropic or OpenAI)."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..constants import DEFAULT_AI_MODELS, DEFAULT_AI_TIMEOUT
from ..errors import AIAnalysisError, MissingAPIKey
from .prompt import SYSTEM_PROMPT, EmailFields, build_user_message

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
MAX_TOKENS = 1024
PROVIDERS = ("anthropic", "openai")

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_END_RE = re.compile(r"\n?```\s*$")


def label_for_confidence(confidence: int) -> str:
    if confidence <= 30:
        return "safe"
    if confidence <= 60:
        return "caution"
    return "suspicious"


def parse_reply(text: str) -> dict[str, Any]:
    """Parse the model reply, tolerating a surrounding markdown code fence."""
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_END_RE.sub("", _FENCE_START_RE.sub("", cleaned))
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("AI reply is not a JSON object")
    return data


@dataclass
class AIVerdict:
    """Structured result of one AI analysis."""

    confidence: int
    label: str
    pushed: dict[str, dict] = field(default_factory=dict)
    verify: list[dict] = field(default_factory=list)
    reasoning: str = ""

    @property
    def detected_pushed(self) -> list[str]:
        return [name for name, entry in self.pushed.items() if entry.get("detected")]

    @property
    def warnings(self) -> list[dict]:
        return [flag for flag in self.verify if flag.get("status") == "warning"]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AIVerdict":
        try:
            confidence = int(data.get("confidence") or 0)
        except (TypeError, ValueError):
            confidence = 0
        confidence = max(0, min(100, confidence))
        label = str(data.get("label") or "").strip().lower()
        if label not in {"safe", "caution", "suspicious"}:
            label = label_for_confidence(confidence)
        raw_pushed = data.get("pushed")
        if not isinstance(raw_pushed, dict):
            raw_pushed = {}
        pushed = {str(name): entry for name, entry in raw_pushed.items() if isinstance(entry, dict)}
        raw_verify = data.get("verify")
        if not isinstance(raw_verify, list):
            raw_verify = []
        verify = [entry for entry in raw_verify if isinstance(entry, dict)]
        return cls(
            confidence=confidence,
            label=label,
            pushed=pushed,
            verify=verify,
            reasoning=str(data.get("reasoning") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "label": self.label,
            "pushed": self.pushed,
            "verify": self.verify,
            "reasoning": self.reasoning,
        }


class AIAnalyzer:
    """
    Sends a message to the configured provider and parses its verdict.

    A reply that is not valid JSON triggers exactly one more request.
    """

    def __init__(
        self,
        api_key: str,
        provider: str = "anthropic",
        model: str = "",
        timeout: float = DEFAULT_AI_TIMEOUT,
        enabled: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        provider = (provider or "anthropic").strip().lower()
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown AI provider: {provider}")
        self.api_key = api_key
        self.provider = provider
        self.model = model or DEFAULT_AI_MODELS[provider]
        self.timeout = timeout
        self.enabled = enabled
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def analyze(self, email: EmailFields) -> AIVerdict:
        if not self.enabled:
            raise AIAnalysisError("AI analysis is not enabled")
        if not self.api_key:
            raise MissingAPIKey()

        user_message = build_user_message(email)
        reply = await self._request(user_message)
        try:
            data = parse_reply(reply)
        except ValueError:
            logger.warning("AI reply was not valid JSON; retrying once")
            reply = await self._request(user_message)
            try:
                data = parse_reply(reply)
            except ValueError as exc:
                raise AIAnalysisError(f"AI reply was not valid JSON: {exc}") from exc

        verdict = AIVerdict.from_dict(data)
        logger.info(
            "AI verdict for %s: %s (%d)", email.sender_email or "?", verdict.label, verdict.confidence
        )
        return verdict

    async def _request(self, user_message: str) -> str:
        if self.provider == "anthropic":
            url = ANTHROPIC_URL
            headers = {
                "Content-Type": "application/json",
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            }
            payload: dict[str, Any] = {
                "model": self.model,
                "max_tokens": MAX_TOKENS,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": user_message}],
            }
        else:
            url = OPENAI_URL
            headers = {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            }
            payload = {
                "model": self.model,
                "max_tokens": MAX_TOKENS,
                "response_format": {"type": "json_object"},
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_message},
                ],
            }

        client = await self._get_client()
        try:
            resp = await client.post(url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise AIAnalysisError("AI analysis timed out") from exc
        except httpx.HTTPError as exc:
            raise AIAnalysisError(f"AI request failed: {exc}") from exc

        name = "Anthropic" if self.provider == "anthropic" else "OpenAI"
        if resp.status_code == 401:
            raise AIAnalysisError(f"Invalid API key. Check your {name} API key in settings.", 401)
        if resp.status_code == 429:
            raise AIAnalysisError("Rate limited. Please wait a moment and try again.", 429)
        if resp.status_code >= 400:
            raise AIAnalysisError(
                f"{name} API error ({resp.status_code}): {(resp.text or '')[:200]}",
                resp.status_code,
            )

        try:
            data = resp.json()
            if self.provider == "anthropic":
                return str(data["content"][0]["text"])
            return str(data["choices"][0]["message"]["content"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AIAnalysisError(f"Unexpected {name} response shape: {exc}") from exc
