import json

import httpx
import pytest
import respx

from krillin.aliyun_auth import AliyunError
from krillin.aliyun_chat import AliyunChatClient

URL = "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"


def test_chat_completion_returns_content():
    client = AliyunChatClient("placeholder")
    with respx.mock:
        route = respx.post(URL).mock(
            return_value=httpx.Response(
                200, json={"choices": [{"message": {"role": "assistant", "content": "你好"}}]}
            )
        )
        assert client.chat_completion("hello") == "你好"
        request = route.calls.last.request
    body = json.loads(request.content)
    assert body["model"] == "qwen-plus"
    assert body["messages"][0] == {
        "role": "system",
        "content": "You are an assistant that helps with subtitle translation.",
    }
    assert body["messages"][1] == {"role": "user", "content": "hello"}
    assert request.headers["Authorization"] == "Bearer placeholder"


def test_chat_completion_http_error():
    client = AliyunChatClient("placeholder")
    with respx.mock:
        respx.post(URL).mock(return_value=httpx.Response(401, json={"error": "denied"}))
        with pytest.raises(httpx.HTTPStatusError):
            client.chat_completion("hello")


def test_chat_completion_without_choices():
    client = AliyunChatClient("placeholder")
    with respx.mock:
        respx.post(URL).mock(return_value=httpx.Response(200, json={"choices": []}))
        with pytest.raises(AliyunError):
            client.chat_completion("hello")


def test_chat_completion_custom_base_url():
    client = AliyunChatClient("placeholder", base_url="https://example.com/v1/")
    with respx.mock:
        respx.post("https://example.com/v1/chat/completions").mock(
            return_value=httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})
        )
        assert client.chat_completion("q") == "ok"