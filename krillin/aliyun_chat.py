"""Chat completions through the DashScope OpenAI-compatible endpoint."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from krillin.aliyun_auth import AliyunError

logger = logging.getLogger(__name__)

DASHSCOPE_COMPATIBLE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
CHAT_MODEL = "qwen-plus"
SYSTEM_PROMPT = "You are an assistant that helps with subtitle translation."


class AliyunChatClient:
    """Sends subtitle-translation prompts to the Qwen chat model."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DASHSCOPE_COMPATIBLE_URL,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def chat_completion(self, query: str) -> str:
        """Send ``query`` and return the content of the first reply."""
        payload = {
            "model": CHAT_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        with httpx.Client(timeout=self.timeout, headers=headers) as client:
            response = client.post(f"{self.base_url}/chat/completions", json=payload)
        if response.is_error:
            logger.error("chat completion failed: %s", response.text)
            response.raise_for_status()
        choices = response.json().get("choices") or []
        if not choices:
            raise AliyunError("chat completion returned no choices")
        return (choices[0].get("message") or {}).get("content") or ""