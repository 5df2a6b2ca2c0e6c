"""Streaming speech synthesis with the Aliyun flowing speech synthesizer."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from typing import IO, Any, Callable, Mapping, Optional, Union

import websocket
from websocket import ABNF, WebSocketException

from krillin.aliyun_auth import AliyunError, create_token
from krillin.util import generate_id

logger = logging.getLogger(__name__)

GATEWAY_URL = "wss://nls-gateway-cn-beijing.aliyuncs.com/ws/v1"
NAMESPACE = "FlowingSpeechSynthesizer"
HANDSHAKE_TIMEOUT = 10.0
READ_TIMEOUT = 60.0
_POLL_INTERVAL = 0.05


@dataclass
class StartSynthesisPayload:
    """Parameters of a StartSynthesis request; zero and empty values are not sent."""

    voice: str = ""
    format: str = "wav"
    sample_rate: int = 44100
    volume: int = 50
    speech_rate: int = 0
    pitch_rate: int = 0
    enable_subtitle: bool = False
    enable_phoneme_timestamp: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the payload as sent on the wire, without empty fields."""
        return {key: value for key, value in asdict(self).items() if value}


Payload = Union[StartSynthesisPayload, Mapping[str, Any], None]


def build_message(appkey: str, task_id: str, name: str, payload: Payload = None) -> dict[str, Any]:
    """Build a synthesizer command with a fresh message id."""
    message: dict[str, Any] = {
        "header": {
            "appkey": appkey,
            "message_id": generate_id(),
            "task_id": task_id,
            "namespace": NAMESPACE,
            "name": name,
        }
    }
    if isinstance(payload, StartSynthesisPayload):
        message["payload"] = payload.to_dict()
    elif payload is not None:
        message["payload"] = dict(payload)
    return message


def _connect_websocket(url: str) -> Any:
    conn = websocket.create_connection(url, timeout=HANDSHAKE_TIMEOUT)
    conn.settimeout(READ_TIMEOUT)
    return conn


class TtsClient:
    """Synthesises speech to a WAV file over the Aliyun speech gateway."""

    def __init__(
        self,
        access_key_id: str,
        access_key_secret: str,
        appkey: str,
        gateway_url: str = GATEWAY_URL,
        token_provider: Optional[Callable[[str, str], str]] = None,
        connect: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.appkey = appkey
        self.gateway_url = gateway_url
        self._token_provider = token_provider or create_token
        self._connect = connect or _connect_websocket

    def _send(self, conn: Any, task_id: str, name: str, payload: Payload) -> None:
        message = build_message(self.appkey, task_id, name, payload)
        text = json.dumps(message)
        logger.debug("sending %s", text)
        conn.send(text)

    @staticmethod
    def _receive(conn: Any, out: IO[bytes], started: threading.Event, completed: threading.Event) -> None:
        try:
            while True:
                try:
                    opcode, data = conn.recv_data()
                except (WebSocketException, OSError) as exc:
                    logger.debug("receiving stopped: %s", exc)
                    return
                if opcode == ABNF.OPCODE_TEXT:
                    text = data.decode("utf-8", "replace") if isinstance(data, bytes) else data
                    try:
                        message = json.loads(text)
                    except ValueError as exc:
                        logger.error("parsing synthesizer message failed: %s", exc)
                        return
                    header = message.get("header") if isinstance(message, dict) else None
                    name = (header or {}).get("name")
                    if name == "SynthesisCompleted":
                        logger.info("SynthesisCompleted received")
                        return
                    if name == "SynthesisStarted":
                        logger.info("SynthesisStarted received")
                        started.set()
                    else:
                        logger.info("received text message: %s", text)
                elif opcode == ABNF.OPCODE_BINARY:
                    try:
                        out.write(data)
                    except OSError as exc:
                        logger.error("writing audio data failed: %s", exc)
        finally:
            completed.set()

    def _start(
        self,
        conn: Any,
        task_id: str,
        payload: StartSynthesisPayload,
        started: threading.Event,
        completed: threading.Event,
    ) -> None:
        try:
            self._send(conn, task_id, "StartSynthesis", payload)
        except (WebSocketException, OSError) as exc:
            raise AliyunError(f"failed to start synthesis: {exc}") from exc
        while not started.wait(_POLL_INTERVAL):
            if completed.is_set() and not started.is_set():
                raise AliyunError("failed to start synthesis: connection ended before SynthesisStarted")

    def text_to_speech(self, text: str, voice: str, output_file: str) -> None:
        """Synthesise ``text`` with ``voice`` and write the audio to ``output_file``."""
        try:
            fd = os.open(output_file, os.O_CREAT | os.O_WRONLY, 0o666)
        except OSError as exc:
            raise AliyunError(f"failed to create file: {exc}") from exc
        with os.fdopen(fd, "wb") as out:
            try:
                token = self._token_provider(self.access_key_id, self.access_key_secret)
            except AliyunError as exc:
                logger.error("creating token failed: %s", exc)
                token = ""
            conn = self._connect(f"{self.gateway_url}?token={token}")
            started = threading.Event()
            completed = threading.Event()
            receiver = threading.Thread(
                target=self._receive, args=(conn, out, started, completed), daemon=True
            )
            receiver.start()
            try:
                task_id = generate_id()
                payload = StartSynthesisPayload(voice=voice)
                logger.info("starting synthesis %s with %s", task_id, payload)
                self._start(conn, task_id, payload, started, completed)
                try:
                    self._send(conn, task_id, "RunSynthesis", {"text": text})
                except (WebSocketException, OSError) as exc:
                    raise AliyunError(f"failed to run synthesis: {exc}") from exc
                try:
                    self._send(conn, task_id, "StopSynthesis", None)
                except (WebSocketException, OSError) as exc:
                    raise AliyunError(f"failed to stop synthesis: {exc}") from exc
                completed.wait()
            finally:
                conn.close()
                receiver.join(READ_TIMEOUT)