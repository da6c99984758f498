"""Response generation for ANISHA: remote chat endpoint with canned fallback.

The remote call is blocking (requests) and runs in a worker thread so the
session's event loop keeps serving speech and presence events while a reply
is being generated. Any failure of the remote capability resolves locally to a
canned reply; `ResponseGenerator.generate` never raises.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests

from ..core.errors import GenerationFailure
from ..core.language import Language, parse_language
from ..core.turn import Reply, Turn
from ..persona.anisha import canned_replies, system_preamble
from .emotion import clean_reply_text, detect_emotion

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.deepseek.com/v1/chat/completions"
DEFAULT_MODEL = "deepseek-chat"

# Fixed sampling parameters; not user-tunable so the persona stays consistent.
MAX_TOKENS = 150
TEMPERATURE = 0.7
TOP_P = 0.9
FREQUENCY_PENALTY = 0.3
PRESENCE_PENALTY = 0.3


class ReplyClient(Protocol):
    """Remote text-generation capability."""

    def complete(self, system_preamble: str, prior_turns: Sequence[Turn], new_text: str) -> str:
        """Return raw reply text or raise GenerationFailure."""
        ...


class RemoteReplyClient:
    """OpenAI-compatible chat-completions client."""

    def __init__(
        self,
        api_key: str = "",
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_payload(self, system_preamble: str, prior_turns: Sequence[Turn], new_text: str) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [{"role": "system", "content": system_preamble}]
        messages.extend(t.as_message() for t in prior_turns)
        messages.append({"role": "user", "content": new_text})
        return {
            "model": self.model,
            "messages": messages,
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "top_p": TOP_P,
            "frequency_penalty": FREQUENCY_PENALTY,
            "presence_penalty": PRESENCE_PENALTY,
        }

    def complete(self, system_preamble: str, prior_turns: Sequence[Turn], new_text: str) -> str:
        if not self.api_key:
            raise GenerationFailure("no API key configured")

        payload = self.build_payload(system_preamble, prior_turns, new_text)
        try:
            r = self.session.post(
                self.endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise GenerationFailure(f"request failed: {e}") from e

        if not r.ok:
            raise GenerationFailure(f"API request failed: HTTP {r.status_code}")

        try:
            data = r.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationFailure(f"malformed payload: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise GenerationFailure("empty reply content")
        return content


class ResponseGenerator:
    """Produces a Reply for a new user turn given the memory window."""

    def __init__(self, client: Optional[ReplyClient] = None, rng: Optional[random.Random] = None):
        """Initialize response generator.

        Args:
            client: Remote reply capability; None means always use the canned fallback
            rng: Random source for canned reply selection (seed it in tests)
        """
        self.client = client
        self.rng = rng or random.Random()
        self.stats = {"requests": 0, "remote_ok": 0, "fallbacks": 0, "latencies": []}

    async def generate(self, memory_window: Sequence[Turn], new_user_text: str, language: Language) -> Reply:
        self.stats["requests"] += 1
        if self.client is None:
            return self.fallback(language, reason="no remote client")

        preamble = system_preamble(language)
        t0 = time.perf_counter()
        try:
            raw = await asyncio.to_thread(self.client.complete, preamble, list(memory_window), new_user_text)
        except GenerationFailure as e:
            return self.fallback(language, reason=str(e))
        except Exception as e:
            logger.error(f"[llm] unexpected remote error: {type(e).__name__}: {e}", exc_info=True)
            return self.fallback(language, reason=f"{type(e).__name__}: {e}")

        latency = time.perf_counter() - t0
        self.stats["remote_ok"] += 1
        self.stats["latencies"].append(latency)
        if len(self.stats["latencies"]) > 100:
            self.stats["latencies"] = self.stats["latencies"][-100:]

        text = clean_reply_text(raw)
        if not text:
            return self.fallback(language, reason="reply empty after cleaning")

        emotion = detect_emotion(text)
        logger.info(f"[llm] reply ready ({latency:.2f}s, {len(text)} chars, emotion={emotion.value})")
        return Reply(text=text, language=language, emotion=emotion, fallback=False)

    def fallback(self, language: Language, reason: str = "") -> Reply:
        """Pick a canned reply for the language. Never raises."""
        self.stats["fallbacks"] += 1
        language = parse_language(language)
        text = self.rng.choice(canned_replies(language))
        emotion = detect_emotion(text)
        logger.warning(f"[llm] using canned fallback ({language.value}): {reason}")
        return Reply(text=text, language=language, emotion=emotion, fallback=True)
