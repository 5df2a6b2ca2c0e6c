"""Signed requests to Aliyun speech services: access tokens and CosyVoice cloning."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

REGION = "cn-shanghai"
META_ENDPOINT = "https://nls-meta.cn-shanghai.aliyuncs.com/"
SLP_ENDPOINT = "https://nls-slp.cn-shanghai.aliyuncs.com/"
TOKEN_API_VERSION = "2019-02-28"
VOICE_API_VERSION = "2019-08-19"
_TIMEOUT = 30.0


class AliyunError(Exception):
    """Raised when an Aliyun service call fails or reports an error."""


def encode_text(text: str) -> str:
    """Percent-encode ``text`` as the Aliyun signature scheme requires."""
    return quote(text, safe="~")


def encode_dict(params: Mapping[str, str]) -> str:
    """Encode ``params`` as a query string with keys in sorted order."""
    return "&".join(f"{encode_text(key)}={encode_text(params[key])}" for key in sorted(params))


def generate_signature(secret: str, string_to_sign: str) -> str:
    """Return the URL-encoded base64 HMAC-SHA1 signature of ``string_to_sign``."""
    digest = hmac.new((secret + "&").encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha1).digest()
    return encode_text(base64.b64encode(digest).decode("ascii"))


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _rpc_params(access_key_id: str, action: str, version: str, **extra: str) -> dict[str, str]:
    params = {
        "AccessKeyId": access_key_id,
        "Action": action,
        "Format": "JSON",
        "RegionId": REGION,
        "SignatureMethod": "HMAC-SHA1",
        "SignatureNonce": str(uuid.uuid4()),
        "SignatureVersion": "1.0",
        "Timestamp": _timestamp(),
        "Version": version,
    }
    params.update(extra)
    return params


def _signed_url(endpoint: str, secret: str, params: Mapping[str, str]) -> str:
    query = encode_dict(params)
    string_to_sign = "POST&" + encode_text("/") + "&" + encode_text(query)
    return f"{endpoint}?Signature={generate_signature(secret, string_to_sign)}&{query}"


def _post(url: str) -> httpx.Response:
    with httpx.Client(timeout=_TIMEOUT) as client:
        return client.post(url)


def _json_object(response: httpx.Response) -> dict[str, Any]:
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError("response body is not a JSON object")
    return body


def create_token(access_key_id: str, access_key_secret: str) -> str:
    """Request a speech-service access token and return its id."""
    params = _rpc_params(access_key_id, "CreateToken", TOKEN_API_VERSION)
    try:
        response = _post(_signed_url(META_ENDPOINT, access_key_secret, params))
    except httpx.HTTPError as exc:
        logger.error("create token request failed: %s", exc)
        raise AliyunError(f"create token request failed: {exc}") from exc
    if response.is_error:
        raise AliyunError(f"create token failed: HTTP {response.status_code}: {response.text}")
    try:
        body = _json_object(response)
    except ValueError as exc:
        logger.error("create token response is not valid JSON: %s", exc)
        raise AliyunError(f"create token response is not valid JSON: {exc}") from exc
    token = body.get("Token") or {}
    return str(token.get("Id", ""))


class VoiceCloneClient:
    """Client for the CosyVoice cloning service."""

    def __init__(self, access_key_id: str, access_key_secret: str, appkey: str) -> None:
        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.appkey = appkey

    def _request(self, action: str, **extra: str) -> httpx.Response:
        params = _rpc_params(self.access_key_id, action, VOICE_API_VERSION, **extra)
        return _post(_signed_url(SLP_ENDPOINT, self.access_key_secret, params))

    def cosy_voice_clone(self, voice_prefix: str, audio_url: str) -> str:
        """Clone the voice recorded at ``audio_url`` and return the new voice name."""
        logger.info("CosyVoiceClone: prefix=%s url=%s", voice_prefix, audio_url)
        try:
            response = self._request("CosyVoiceClone", VoicePrefix=voice_prefix, Url=audio_url)
        except httpx.HTTPError as exc:
            logger.error("CosyVoiceClone post error: %s", exc)
            raise AliyunError(f"CosyVoiceClone post error: {exc}") from exc
        logger.info("CosyVoiceClone response: %s", response.text)
        result: dict[str, Any] = {}
        if response.is_success:
            try:
                result = _json_object(response)
            except ValueError:
                result = {}
        message = result.get("Message", "")
        if message != "SUCCESS":
            logger.error(
                "CosyVoiceClone failed: request=%s code=%s message=%s",
                result.get("RequestId", ""), result.get("Code", 0), message,
            )
            raise AliyunError(f"CosyVoiceClone res message is not success, message: {message}")
        return str(result.get("VoiceName", ""))

    def cosy_clone_list(self, voice_prefix: str, page_index: int, page_size: int) -> Optional[str]:
        """List cloned voices with ``voice_prefix``; return the raw response, or None on failure."""
        try:
            response = self._request(
                "ListCosyVoice",
                VoicePrefix=voice_prefix,
                PageIndex=str(page_index),
                PageSize=str(page_size),
            )
        except httpx.HTTPError as exc:
            logger.error("ListCosyVoice request failed: %s", exc)
            return None
        logger.info("ListCosyVoice response: %s", response.text)
        return response.text