"""General helpers: identifiers, time formatting, character classes and file utilities."""

from __future__ import annotations

import math
import os
import random
import re
import shutil
import string
import struct
import uuid
import zipfile
from urllib.parse import parse_qs, urlparse

import regex

_RAND_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + "123456789"

_BILIBILI_RE = re.compile(
    r"https://(?:www\.)?bilibili\.com/(?:video/|video/av[0-9]+/)(BV[a-zA-Z0-9]+)"
)

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_EDGE_PUNCTUATION_RE = regex.compile(r"^\p{P}+|\p{P}+$")

# Letter ranges accepted by is_alphabetic: Latin, extended Latin, Greek, Cyrillic.
_ALPHABETIC_RANGES = (
    ("A", "Z"),
    ("a", "z"),
    ("\u00c0", "\u024f"),
    ("\u0370", "\u03ff"),
    ("\u0400", "\u04ff"),
)


def generate_rand_string(n: int) -> str:
    """Return a random string of ``n`` letters and digits 1-9."""
    if n < 0:
        raise ValueError("length must not be negative")
    return "".join(random.choices(_RAND_ALPHABET, k=n))


def get_youtube_id(youtube_url: str) -> str:
    """Extract the video id from a YouTube watch or short URL."""
    parsed = urlparse(youtube_url)
    if "watch" in parsed.path:
        query = parse_qs(parsed.query, keep_blank_values=True)
        if "v" in query:
            return query["v"][0]
        raise ValueError("no video ID found")
    return parsed.path.split("/")[-1]


def get_bilibili_video_id(url: str) -> str:
    """Return the BV id found in a bilibili video URL, or an empty string."""
    match = _BILIBILI_RE.search(url)
    return match.group(1) if match else ""


def _to_float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def format_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS,mmm`` using single-precision arithmetic."""
    value = _to_float32(seconds)
    total_seconds = math.floor(value)
    milliseconds = int(_to_float32(_to_float32(value - total_seconds) * 1000))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{milliseconds:03d}"


def is_number(s: str) -> bool:
    """Tell whether ``s`` is a plain 64-bit decimal integer (e.g. a subtitle index)."""
    if not _INTEGER_RE.fullmatch(s):
        return False
    return _INT64_MIN <= int(s) <= _INT64_MAX


def unzip(zip_file: str, dest_dir: str) -> None:
    """Extract every entry of ``zip_file`` into ``dest_dir``."""
    with zipfile.ZipFile(zip_file) as archive:
        os.makedirs(dest_dir, exist_ok=True)
        for info in archive.infolist():
            target = os.path.join(dest_dir, info.filename)
            if info.is_dir():
                os.makedirs(target, exist_ok=True)
                continue
            with archive.open(info) as source, open(target, "wb") as destination:
                shutil.copyfileobj(source, destination)


def generate_id() -> str:
    """Return a random UUID as 32 hexadecimal characters without dashes."""
    return uuid.uuid4().hex


def _extension(path: str) -> str:
    name = os.path.basename(path)
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def change_file_extension(path: str, new_ext: str) -> str:
    """Replace the extension of ``path`` (or append one) with ``new_ext``."""
    ext = _extension(path)
    return path[: len(path) - len(ext)] + new_ext


def clean_punctuation(word: str) -> str:
    """Strip Unicode punctuation from both ends of ``word``."""
    return _EDGE_PUNCTUATION_RE.sub("", word)


def is_alphabetic(ch: str) -> bool:
    """Tell whether ``ch`` is a Latin, Greek or Cyrillic letter."""
    if not ch.isalpha():
        return False
    return any(low <= ch <= high for low, high in _ALPHABETIC_RANGES)


def contains_alphabetic(text: str) -> bool:
    """Tell whether ``text`` holds at least one alphabetic letter."""
    return any(is_alphabetic(ch) for ch in text)


def copy_file(src: str, dst: str) -> None:
    """Copy ``src`` to ``dst`` and flush the copy to disk."""
    with open(src, "rb") as source, open(dst, "wb") as destination:
        shutil.copyfileobj(source, destination)
        destination.flush()
        os.fsync(destination.fileno())