"""Uploading files to Aliyun OSS buckets."""

from __future__ import annotations

import base64
import hashlib
import hmac
from email.utils import formatdate
from typing import Optional
from urllib.parse import quote

import httpx

from krillin.aliyun_auth import AliyunError

REGION = "cn-shanghai"
_CONTENT_TYPE = "application/octet-stream"
_TIMEOUT = 60.0


class OssClient:
    """Object storage client bound to the Shanghai region and a default bucket."""

    def __init__(self, access_key_id: str, access_key_secret: str, bucket: str) -> None:
        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.bucket = bucket

    def _authorization(self, verb: str, content_md5: str, date: str, bucket: str, key: str) -> str:
        string_to_sign = f"{verb}\n{content_md5}\n{_CONTENT_TYPE}\n{date}\n/{bucket}/{key}"
        digest = hmac.new(
            self.access_key_secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha1
        ).digest()
        return f"OSS {self.access_key_id}:{base64.b64encode(digest).decode('ascii')}"

    def upload_file(self, object_key: str, file_path: str, bucket: Optional[str] = None) -> None:
        """Upload ``file_path`` as ``object_key`` into ``bucket`` (the client's bucket by default)."""
        bucket = bucket or self.bucket
        try:
            with open(file_path, "rb") as handle:
                body = handle.read()
        except OSError as exc:
            raise AliyunError(f"failed to open file: {exc}") from exc

        content_md5 = base64.b64encode(hashlib.md5(body).digest()).decode("ascii")
        date = formatdate(usegmt=True)
        headers = {
            "Content-Type": _CONTENT_TYPE,
            "Content-MD5": content_md5,
            "Date": date,
            "Authorization": self._authorization("PUT", content_md5, date, bucket, object_key),
        }
        url = f"https://{bucket}.oss-{REGION}.aliyuncs.com/{quote(object_key, safe='/')}"
        try:
            with httpx.Client(timeout=_TIMEOUT) as client:
                response = client.put(url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise AliyunError(f"failed to upload file to OSS: {exc}") from exc
        if response.is_error:
            raise AliyunError(
                f"failed to upload file to OSS: HTTP {response.status_code}: {response.text}"
            )
        print(f"File {file_path} uploaded successfully to bucket {bucket} as {object_key}")