"""Groq chat-completions adapter - implements the NaturalService port."""

import logging
from datetime import datetime

import requests

from towd.core.calendar import Event
from towd.core.errors import UpstreamError
from towd.core.natural import SYSTEM_PROMPT, NaturalOutput, build_natural_input, parse_natural_output

logger = logging.getLogger(__name__)

GROQ_API = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_MODEL = "llama3-8b-8192"


class GroqNaturalService:
    """
    Groq adapter.

    Sends the user's request with a fixed system prompt and asks for a JSON
    object back. No business logic - just I/O.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ):
        if not api_key:
            raise ValueError("Groq API key is blank")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._session = session or requests.Session()

    def _body(self, content: str) -> dict:
        return {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
            "model": self.model,
            "temperature": 1,
            "max_tokens": 1024,
            "top_p": 1,
            "stream": False,
            "response_format": {"type": "json_object"},
        }

    def request(self, text: str, now: datetime, context: Event | None = None) -> NaturalOutput:
        if not text.strip():
            raise UpstreamError("natural-language request text is blank", user_message="Event content is empty.")

        try:
            resp = self._session.post(
                GROQ_API,
                json=self._body(build_natural_input(text, now, context)),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(
                f"natural-language request failed: {e}",
                user_message=f"Can't perform natural request\n```\n{e}\n```",
            ) from e

        if resp.status_code != 200:
            logger.warning(f"Groq returned {resp.status_code}")
            raise UpstreamError(
                f"natural-language service returned {resp.status_code}: {resp.text[:200]}",
                user_message=f"Can't perform natural request\n```\n[{resp.status_code}] {resp.text[:500]}\n```",
            )

        try:
            choices = resp.json().get("choices") or []
        except ValueError as e:
            raise UpstreamError(f"natural-language response is not JSON: {e}") from e
        if not choices:
            raise UpstreamError("natural-language response has no choices")
        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            raise UpstreamError("natural-language response has no content")

        return parse_natural_output(content)
