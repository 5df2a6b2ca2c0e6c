import json
import queue

import pytest
import websocket
from websocket import ABNF

from krillin.aliyun_auth import AliyunError
from krillin.aliyun_tts import StartSynthesisPayload, TtsClient, build_message

AUDIO = b"RIFF-audio-bytes"


def test_payload_omits_zero_values():
    payload = StartSynthesisPayload(voice="xiaoyun")
    assert payload.to_dict() == {"voice": "xiaoyun", "format": "wav", "sample_rate": 44100, "volume": 50}


def test_payload_includes_enabled_flags():
    data = StartSynthesisPayload(voice="v", speech_rate=100, enable_subtitle=True).to_dict()
    assert data["enable_subtitle"] is True
    assert data["speech_rate"] == 100
    assert "enable_phoneme_timestamp" not in data
    assert "pitch_rate" not in data


def test_build_message_header():
    message = build_message("app", "task", "RunSynthesis", {"text": "hi"})
    header = message["header"]
    assert header["appkey"] == "app"
    assert header["task_id"] == "task"
    assert header["namespace"] == "FlowingSpeechSynthesizer"
    assert header["name"] == "RunSynthesis"
    assert message["payload"] == {"text": "hi"}
    assert len(header["message_id"]) == 32
    int(header["message_id"], 16)


def test_build_message_without_payload():
    message = build_message("app", "task", "StopSynthesis", None)
    assert "payload" not in message


def test_build_message_ids_differ():
    first = build_message("a", "t", "n")["header"]["message_id"]
    second = build_message("a", "t", "n")["header"]["message_id"]
    assert first != second


def test_build_message_start_payload_serialised():
    message = build_message("a", "t", "StartSynthesis", StartSynthesisPayload(voice="v"))
    assert message["payload"] == StartSynthesisPayload(voice="v").to_dict()


class FakeTtsConnection:
    def __init__(self, start_ok=True):
        self.start_ok = start_ok
        self.incoming = queue.Queue()
        self.sent = []
        self.closed = False

    def _text(self, name):
        return ABNF.OPCODE_TEXT, json.dumps({"header": {"name": name}}).encode()

    def send(self, text):
        message = json.loads(text)
        self.sent.append(message)
        name = message["header"]["name"]
        if name == "StartSynthesis":
            self.incoming.put(self._text("SynthesisStarted" if self.start_ok else "SynthesisCompleted"))
        elif name == "RunSynthesis":
            self.incoming.put(self._text("SentenceBegin"))
            self.incoming.put((ABNF.OPCODE_BINARY, AUDIO[:8]))
            self.incoming.put((ABNF.OPCODE_BINARY, AUDIO[8:]))
        elif name == "StopSynthesis":
            self.incoming.put(self._text("SynthesisCompleted"))

    def recv_data(self):
        item = self.incoming.get(timeout=5)
        if item is None:
            raise websocket.WebSocketConnectionClosedException("closed")
        return item

    def close(self):
        self.closed = True
        self.incoming.put(None)


def _client(fake, urls, token_provider=None):
    def connect(url):
        urls.append(url)
        return fake

    return TtsClient(
        "key-id",
        "secret",
        "app",
        token_provider=token_provider or (lambda ak, sk: "token"),
        connect=connect,
    )


def test_text_to_speech_writes_audio(tmp_path):
    fake = FakeTtsConnection()
    urls = []
    output = tmp_path / "out.wav"
    _client(fake, urls).text_to_speech("hello", "xiaoyun", str(output))

    assert output.read_bytes() == AUDIO
    assert urls == ["wss://nls-gateway-cn-beijing.aliyuncs.com/ws/v1?token=token"]
    names = [m["header"]["name"] for m in fake.sent]
    assert names == ["StartSynthesis", "RunSynthesis", "StopSynthesis"]
    assert len({m["header"]["task_id"] for m in fake.sent}) == 1
    assert all(m["header"]["appkey"] == "app" for m in fake.sent)
    assert fake.sent[0]["payload"]["voice"] == "xiaoyun"
    assert fake.sent[1]["payload"] == {"text": "hello"}
    assert "payload" not in fake.sent[2]
    assert fake.closed is True


def test_text_to_speech_token_failure_uses_empty_token(tmp_path):
    def failing(ak, sk):
        raise AliyunError("no token")

    fake = FakeTtsConnection()
    urls = []
    _client(fake, urls, failing).text_to_speech("hi", "v", str(tmp_path / "a.wav"))
    assert urls[0].endswith("?token=")


def test_text_to_speech_not_started_raises(tmp_path):
    fake = FakeTtsConnection(start_ok=False)
    with pytest.raises(AliyunError):
        _client(fake, []).text_to_speech("hi", "v", str(tmp_path / "b.wav"))
    assert fake.closed is True


def test_text_to_speech_bad_output_path(tmp_path):
    fake = FakeTtsConnection()
    with pytest.raises(AliyunError):
        _client(fake, []).text_to_speech("hi", "v", str(tmp_path / "missing" / "c.wav"))
    assert fake.sent == []