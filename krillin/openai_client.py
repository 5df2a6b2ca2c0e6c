"""Clients for OpenAI-compatible chat completion and Whisper transcription APIs."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Mapping, Optional

import httpx

from krillin.transcription import TranscriptionData, Word

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CHAT_MODEL = "gpt-4o-mini-2024-07-18"
WHISPER_MODEL = "whisper-1"
SYSTEM_PROMPT = "You are an assistant that helps with subtitle translation."
MAX_TOKENS = 8192

_DASH = "—"


def words_from_whisper_response(data: Mapping[str, Any]) -> TranscriptionData:
    """Turn a verbose JSON Whisper response into transcription data.

    Hyphens in the text become spaces; words joined by an em dash are split in two.
    """
    result = TranscriptionData(
        language=str(data.get("language", "")),
        text=str(data.get("text", "")).replace("-", " "),
    )
    num = 0
    for word in data.get("words") or ():
        text = str(word.get("word", ""))
        start = float(word.get("start", 0.0))
        end = float(word.get("end", 0.0))
        if _DASH in text:
            mid = (start + end) / 2
            first, second = text.split(_DASH)[:2]
            result.words.append(Word(num, first, start, mid))
            result.words.append(Word(num + 1, second, mid, end))
            num += 2
        else:
            result.words.append(Word(num, text, start, end))
            num += 1
    return result


class _CompatibleApi:
    def __init__(self, base_url: str = "", api_key: str = "", proxy: Optional[str] = None) -> None:
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.proxy = proxy or None

    def _http(self) -> httpx.Client:
        return httpx.Client(
            proxy=self.proxy,
            timeout=None,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint}"


class OpenAIClient(_CompatibleApi):
    """Streams chat completions from an OpenAI-compatible endpoint."""

    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        proxy: Optional[str] = None,
        model: str = "",
    ) -> None:
        super().__init__(base_url, api_key, proxy)
        self.model = model or DEFAULT_CHAT_MODEL

    def chat_completion(self, query: str) -> str:
        """Send ``query`` with the subtitle-translation system prompt and return the reply."""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
            "stream": True,
            "max_tokens": MAX_TOKENS,
        }
        parts: list[str] = []
        with self._http() as client:
            with client.stream("POST", self._url("chat/completions"), json=payload) as response:
                if response.is_error:
                    response.read()
                    response.raise_for_status()
                for line in response.iter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    body = line[len("data:"):].strip()
                    if body == "[DONE]":
                        break
                    chunk = json.loads(body)
                    choices = chunk.get("choices") or []
                    if not choices:
                        logger.info("stream chunk without choices: %s", chunk)
                        continue
                    parts.append((choices[0].get("delta") or {}).get("content") or "")
        return "".join(parts)


class WhisperClient(_CompatibleApi):
    """Transcribes audio files with the hosted Whisper model."""

    def transcription(self, audio_file: str, language: str, work_dir: str = "") -> TranscriptionData:
        """Transcribe ``audio_file`` with word timestamps; ``work_dir`` is not needed here."""
        form = {
            "model": WHISPER_MODEL,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "word",
        }
        if language:
            form["language"] = language
        with self._http() as client, open(audio_file, "rb") as audio:
            files = {"file": (os.path.basename(audio_file), audio)}
            response = client.post(self._url("audio/transcriptions"), data=form, files=files)
        response.raise_for_status()
        return words_from_whisper_response(response.json())