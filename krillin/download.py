"""Downloading files over HTTP with a console progress line."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


@dataclass
class DownloadProgress:
    """Tracks bytes received against an expected total and renders a status line."""

    total: int
    downloaded: int = 0
    start_time: Optional[float] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def update(self, chunk_size: int) -> None:
        """Record ``chunk_size`` more bytes; the clock starts at the first chunk."""
        self.downloaded += chunk_size
        if self.start_time is None:
            self.start_time = self.clock()

    def render(self) -> str:
        """Return the progress line: percentage, sizes in MB and speed in MB/s."""
        percent = self.downloaded / self.total * 100 if self.total > 0 else 0.0
        elapsed = self.clock() - self.start_time if self.start_time is not None else 0.0
        speed = self.downloaded / _MB / elapsed if elapsed > 0 else 0.0
        return (
            f"\r下载进度: {percent:.2f}% "
            f"({self.downloaded / _MB:.2f} MB / {self.total / _MB:.2f} MB) "
            f"| 速度: {speed:.2f} MB/s"
        )


def download_file(url: str, path: str, proxy: Optional[str] = None) -> None:
    """Download ``url`` into ``path``, optionally through ``proxy``, printing progress."""
    logger.info("downloading %s", url)
    with httpx.Client(proxy=proxy or None, follow_redirects=True) as client:
        with client.stream("GET", url) as response:
            size = int(response.headers.get("Content-Length", -1))
            print(f"文件大小: {size / _MB:.2f} MB")
            progress = DownloadProgress(total=size)
            with open(path, "wb") as out:
                for chunk in response.iter_bytes():
                    out.write(chunk)
                    progress.update(len(chunk))
                    print(progress.render(), end="", flush=True)
    print()
    logger.info("download finished: %s", path)