"""Word-level transcription with locally installed Whisper command-line tools."""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from krillin.util import change_file_extension, clean_punctuation

logger = logging.getLogger(__name__)

_DASH = "—"
_FASTER_WHISPER_DONE = "Subtitles are written to"


@dataclass
class Word:
    """A recognised word with its running number and its time span in seconds."""

    num: int
    text: str
    start: float
    end: float


@dataclass
class TranscriptionData:
    """The full text of a transcription together with its timed words."""

    language: str = ""
    text: str = ""
    words: list[Word] = field(default_factory=list)


def _normalise(text: str) -> str:
    return clean_punctuation(text.strip())


def segments_to_transcription(segments: Iterable[Mapping[str, Any]]) -> TranscriptionData:
    """Build transcription data from Whisper JSON segments.

    Words joined by an em dash are split in two, sharing the time span equally.
    """
    data = TranscriptionData()
    num = 0
    for segment in segments:
        data.text += str(segment.get("text", "")).replace(_DASH, " ")
        for word in segment.get("words") or ():
            text = str(word.get("word", ""))
            start = float(word.get("start", 0.0))
            end = float(word.get("end", 0.0))
            if _DASH in text:
                mid = (start + end) / 2
                first, second = text.split(_DASH)[:2]
                data.words.append(Word(num, _normalise(first), start, mid))
                data.words.append(Word(num + 1, _normalise(second), mid, end))
                num += 2
            else:
                data.words.append(Word(num, _normalise(text), start, end))
                num += 1
    return data


def _run(args: list[str]) -> subprocess.CompletedProcess:
    logger.info("running %s", " ".join(args))
    return subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)


def _load_segments(audio_file: str) -> list[Mapping[str, Any]]:
    with open(change_file_extension(audio_file, ".json"), encoding="utf-8") as handle:
        result = json.load(handle)
    return result.get("segments") or []


@dataclass
class FasterWhisperProcessor:
    """Transcribes audio with the faster-whisper command-line tool."""

    model: str
    executable: str = "faster-whisper"
    model_dir: str = "./models/"

    def transcription(self, audio_file: str, language: str, work_dir: str) -> TranscriptionData:
        """Transcribe ``audio_file``, writing the tool's JSON output into ``work_dir``."""
        args = [
            self.executable,
            "--model_dir", self.model_dir,
            "--model", self.model,
            "--one_word", "2",
            "--output_format", "json",
            "--language", language,
            "--output_dir", work_dir,
            audio_file,
        ]
        completed = _run(args)
        output = completed.stdout or ""
        if completed.returncode != 0 and _FASTER_WHISPER_DONE not in output:
            logger.error("faster-whisper failed: %s", output)
            raise subprocess.CalledProcessError(completed.returncode, args, output)
        logger.info("faster-whisper JSON written for %s", audio_file)
        return segments_to_transcription(_load_segments(audio_file))


@dataclass
class WhisperKitProcessor:
    """Transcribes audio with the WhisperKit command-line tool."""

    model: str
    executable: str = "whisperkit-cli"
    model_path: str = "./models/whisperkit/openai_whisper-large-v2"

    def transcription(self, audio_file: str, language: str, work_dir: str) -> TranscriptionData:
        """Transcribe ``audio_file``, writing the tool's report into ``work_dir``."""
        args = [
            self.executable,
            "transcribe",
            "--model-path", self.model_path,
            "--audio-encoder-compute-units", "all",
            "--text-decoder-compute-units", "all",
            "--language", language,
            "--report",
            "--report-path", work_dir,
            "--word-timestamps",
            "--skip-special-tokens",
            "--audio-path", audio_file,
        ]
        completed = _run(args)
        if completed.returncode != 0:
            logger.error("whisperkit failed: %s", completed.stdout)
            raise subprocess.CalledProcessError(completed.returncode, args, completed.stdout)
        logger.info("whisperkit JSON written for %s", audio_file)
        return segments_to_transcription(_load_segments(audio_file))