"""Streaming speech recognition with the DashScope Paraformer realtime service."""

from __future__ import annotations

import json
import logging
import subprocess
import threading
import time
from typing import Any, Callable, Mapping, Optional

import websocket
from websocket import WebSocketException

from krillin.transcription import TranscriptionData, Word
from krillin.util import change_file_extension

logger = logging.getLogger(__name__)

WS_URL = "wss://dashscope.aliyuncs.com/api-ws/v1/inference/"
MODEL = "paraformer-realtime-v2"
SAMPLE_RATE = 16000
AUDIO_FORMAT = "mp3"
CHUNK_SIZE = 1024  # roughly 100 ms of audio
CHUNK_INTERVAL = 0.1
START_TIMEOUT = 10.0
MONO_SUFFIX = "_mono_16K.mp3"

Connector = Callable[[str, list], Any]


def process_audio(file_path: str, ffmpeg_path: str = "ffmpeg") -> str:
    """Convert ``file_path`` to mono 16 kHz MP3 next to the original and return the new path."""
    dest = change_file_extension(file_path, MONO_SUFFIX)
    args = [ffmpeg_path, "-i", file_path, "-ac", "1", "-ar", str(SAMPLE_RATE), "-b:a", "192k", dest]
    completed = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    if completed.returncode != 0:
        logger.error("audio conversion failed for %s: %s", file_path, completed.stdout)
        raise subprocess.CalledProcessError(completed.returncode, args, completed.stdout)
    return dest


def build_run_task_command(language: str) -> tuple[str, str]:
    """Return the JSON run-task command for ``language`` and the new task id."""
    task_id = str(__import_uuid().uuid4())
    command = {
        "header": {"action": "run-task", "task_id": task_id, "streaming": "duplex"},
        "payload": {
            "task_group": "audio",
            "task": "asr",
            "function": "recognition",
            "model": MODEL,
            "parameters": {
                "format": AUDIO_FORMAT,
                "sample_rate": SAMPLE_RATE,
                "vocabulary_id": "",
                "disfluency_removal_enabled": False,
                "language_hints": [language],
            },
            "input": {},
        },
    }
    return json.dumps(command), task_id


def __import_uuid():
    import uuid

    return uuid


def build_finish_task_command(task_id: str) -> str:
    """Return the JSON finish-task command for ``task_id``."""
    command = {
        "header": {"action": "finish-task", "task_id": task_id, "streaming": "duplex"},
        "payload": {"input": {}},
    }
    return json.dumps(command)


class SentenceCollector:
    """Accumulates finished sentences and timed words from recognition events."""

    def __init__(self) -> None:
        self.text = ""
        self.words: list[Word] = []
        self.started = False
        self.finished = False
        self.error_message = ""

    def _add_sentence(self, sentence: Mapping[str, Any]) -> None:
        self.text += str(sentence.get("text", ""))
        num = self.words[-1].num + 1 if self.words else 0
        for word in sentence.get("words") or ():
            end = word.get("end_time")
            if end is None:
                raise ValueError("recognised word has no end time")
            self.words.append(
                Word(
                    num=num,
                    text=str(word.get("text", "")).strip(),
                    start=float(word.get("begin_time", 0)) / 1000,
                    end=float(end) / 1000,
                )
            )
            num += 1

    def feed(self, event: Mapping[str, Any]) -> bool:
        """Take one server event; return True once the task has finished or failed."""
        header = event.get("header") or {}
        name = header.get("event", "")
        payload = event.get("payload") or {}
        sentence = (payload.get("output") or {}).get("sentence") or {}
        if sentence.get("end_time") is not None:
            self._add_sentence(sentence)

        if name == "task-started":
            logger.info("task-started: %s", header.get("task_id", ""))
            self.started = True
        elif name == "result-generated":
            logger.info("result-generated: %s", sentence.get("text", ""))
        elif name == "task-finished":
            logger.info("task-finished: %s", header.get("task_id", ""))
            self.finished = True
            return True
        elif name == "task-failed":
            self.error_message = str(header.get("error_message", ""))
            logger.error("task failed: %s", self.error_message)
            self.finished = True
            return True
        else:
            logger.info("unknown event: %s", name)
        return False


def _connect_websocket(url: str, headers: list) -> Any:
    return websocket.create_connection(url, header=headers)


def _receive(conn: Any, collector: SentenceCollector, started: threading.Event, done: threading.Event) -> None:
    try:
        while True:
            try:
                message = conn.recv()
            except (WebSocketException, OSError) as exc:
                logger.error("reading server message failed: %s", exc)
                return
            if isinstance(message, bytes):
                message = message.decode("utf-8", "replace")
            try:
                event = json.loads(message)
            except ValueError as exc:
                logger.error("parsing server message failed: %s", exc)
                continue
            if not isinstance(event, dict):
                continue
            try:
                finished = collector.feed(event)
            except ValueError as exc:
                logger.error("bad recognition event: %s", exc)
                continue
            if collector.started:
                started.set()
            if finished:
                return
    finally:
        done.set()


class AsrClient:
    """Transcribes audio files through the DashScope realtime recognition WebSocket."""

    def __init__(
        self,
        api_key: str,
        ffmpeg_path: str = "ffmpeg",
        url: str = WS_URL,
        connect: Optional[Connector] = None,
        chunk_interval: float = CHUNK_INTERVAL,
        start_timeout: float = START_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self.ffmpeg_path = ffmpeg_path
        self.url = url
        self._connect = connect or _connect_websocket
        self.chunk_interval = chunk_interval
        self.start_timeout = start_timeout

    def _headers(self) -> list:
        return ["X-DashScope-DataInspection: enable", f"Authorization: bearer {self.api_key}"]

    def _send_audio(self, conn: Any, path: str) -> None:
        with open(path, "rb") as audio:
            for chunk in iter(lambda: audio.read(CHUNK_SIZE), b""):
                conn.send_binary(chunk)
                time.sleep(self.chunk_interval)

    def transcription(self, audio_file: str, language: str, work_dir: str = "") -> TranscriptionData:
        """Recognise ``audio_file`` in ``language`` and return its text and timed words."""
        processed = process_audio(audio_file, self.ffmpeg_path)
        conn = self._connect(self.url, self._headers())
        collector = SentenceCollector()
        started = threading.Event()
        done = threading.Event()
        receiver = threading.Thread(target=_receive, args=(conn, collector, started, done), daemon=True)
        receiver.start()
        try:
            command, task_id = build_run_task_command(language)
            try:
                conn.send(command)
            except (WebSocketException, OSError) as exc:
                logger.error("sending run-task failed for %s: %s", audio_file, exc)

            if started.wait(self.start_timeout):
                logger.info("recognition task started")
            else:
                logger.error("timed out waiting for task-started")

            try:
                self._send_audio(conn, processed)
            except (WebSocketException, OSError) as exc:
                logger.error("sending audio failed: %s", exc)

            try:
                conn.send(build_finish_task_command(task_id))
            except (WebSocketException, OSError) as exc:
                logger.error("sending finish-task failed for %s: %s", audio_file, exc)

            done.wait()
        finally:
            conn.close()

        if not collector.words:
            logger.info("empty recognition result for %s", audio_file)
        return TranscriptionData(text=collector.text, words=list(collector.words))