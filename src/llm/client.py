"""
Claude API client for Sprout.

Thin wrapper over the Anthropic messages API used by the assessment
provider. Responses can be cached on disk, keyed by model and prompt.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path

from anthropic import Anthropic

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class LLMClient:
    """
    Client for the Claude API.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        cache_dir: Path | None = None,
        enable_cache: bool = False,
    ):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not set")

        self.client = Anthropic(api_key=self.api_key)
        self.model = model or os.environ.get("SPROUT_MODEL") or DEFAULT_MODEL
        self.cache_dir = cache_dir or Path.home() / ".sprout" / "cache"
        self.enable_cache = enable_cache

        if self.enable_cache:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _cache_key(self, system: str, prompt: str) -> str:
        """Generate a cache key for the request."""
        content = json.dumps({
            "model": self.model,
            "system": system,
            "prompt": prompt,
        }, sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    def _get_cached(self, cache_key: str) -> str | None:
        if not self.enable_cache:
            return None
        cache_file = self.cache_dir / f"{cache_key}.txt"
        if cache_file.exists():
            return cache_file.read_text()
        return None

    def _set_cached(self, cache_key: str, response: str) -> None:
        if not self.enable_cache:
            return
        cache_file = self.cache_dir / f"{cache_key}.txt"
        cache_file.write_text(response)

    def generate(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.4,
    ) -> str:
        """
        Generate a free-form text response.
        """
        system = system or "You are a helpful assistant."
        cache_key = self._cache_key(system, prompt)
        cached = self._get_cached(cache_key)
        if cached is not None:
            logger.debug("LLM cache hit %s", cache_key)
            return cached

        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug("LLM response from %s: %d chars", self.model, len(text))
        self._set_cached(cache_key, text)
        return text

    def clear_cache(self) -> int:
        """Clear the response cache. Returns number of files deleted."""
        if not self.cache_dir.exists():
            return 0

        count = 0
        for f in self.cache_dir.glob("*.txt"):
            f.unlink()
            count += 1
        return count


# Singleton client instance
_client: LLMClient | None = None


def is_configured() -> bool:
    """True if a client is set or an API key is available."""
    return _client is not None or bool(os.environ.get("ANTHROPIC_API_KEY"))


def get_client() -> LLMClient:
    """Get the singleton LLM client."""
    global _client
    if _client is None:
        _client = LLMClient()
    return _client


def set_client(client: LLMClient | None) -> None:
    """Set the singleton LLM client (None resets it)."""
    global _client
    _client = client
