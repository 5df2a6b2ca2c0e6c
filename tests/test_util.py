import math
import string
import uuid
import zipfile

import pytest

from krillin.util import (
    change_file_extension,
    clean_punctuation,
    contains_alphabetic,
    copy_file,
    format_time,
    generate_id,
    generate_rand_string,
    get_bilibili_video_id,
    get_youtube_id,
    is_alphabetic,
    is_number,
    unzip,
)


def test_generate_rand_string_length_and_alphabet():
    value = generate_rand_string(300)
    assert len(value) == 300
    assert set(value) <= set(string.ascii_letters + "123456789")


def test_generate_rand_string_empty():
    assert generate_rand_string(0) == ""


def test_generate_rand_string_negative_length():
    with pytest.raises(ValueError):
        generate_rand_string(-1)


def test_youtube_watch_url():
    assert get_youtube_id("https://www.youtube.com/watch?v=abcDEF123&t=10") == "abcDEF123"


def test_youtube_short_url():
    assert get_youtube_id("https://youtu.be/xyz789") == "xyz789"


def test_youtube_watch_without_id():
    with pytest.raises(ValueError, match="no video ID found"):
        get_youtube_id("https://www.youtube.com/watch?list=abc")


def test_bilibili_id_found():
    url = "https://www.bilibili.com/video/BV1ab411c7de?p=1"
    assert get_bilibili_video_id(url) == "BV1ab411c7de"


def test_bilibili_id_missing():
    assert get_bilibili_video_id("https://example.com/video/BV1ab411c7de") == ""


def test_format_time_pins():
    assert format_time(0.0) == "00:00:00,000"
    assert format_time(3661.5) == "01:01:01,500"


@pytest.mark.parametrize("seconds", [0.25, 59.75, 3600.5, 7322.125])
def test_format_time_components(seconds):
    hours, minutes, rest = format_time(seconds).split(":")
    secs, millis = rest.split(",")
    assert int(hours) * 3600 + int(minutes) * 60 + int(secs) == math.floor(seconds)
    assert 0 <= int(minutes) < 60 and 0 <= int(secs) < 60
    assert len(millis) == 3 and 0 <= int(millis) < 1000


@pytest.mark.parametrize("text", ["123", "-5", "+7", "0"])
def test_is_number_accepts(text):
    assert is_number(text)


@pytest.mark.parametrize("text", ["", "12a", " 1", "1_0", "1.5", "99999999999999999999"])
def test_is_number_rejects(text):
    assert not is_number(text)


def test_unzip_extracts_tree(tmp_path):
    archive = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("sub/", "")
        zf.writestr("sub/inner.txt", b"inner data")
        zf.writestr("top.txt", b"top data")
    dest = tmp_path / "out"
    unzip(str(archive), str(dest))
    assert (dest / "sub" / "inner.txt").read_bytes() == b"inner data"
    assert (dest / "top.txt").read_bytes() == b"top data"


def test_unzip_rejects_non_zip(tmp_path):
    bogus = tmp_path / "bogus.zip"
    bogus.write_bytes(b"not a zip archive")
    with pytest.raises(zipfile.BadZipFile):
        unzip(str(bogus), str(tmp_path / "out"))


def test_generate_id_is_dashless_uuid():
    value = generate_id()
    assert "-" not in value
    assert uuid.UUID(hex=value).hex == value
    assert generate_id() != value


def test_change_file_extension_round_trip():
    path = "/data/media/audio.mp3"
    changed = change_file_extension(path, ".json")
    assert changed.endswith(".json")
    assert change_file_extension(changed, ".mp3") == path


def test_change_file_extension_without_extension():
    assert change_file_extension("/tmp/noext", ".srt") == "/tmp/noext" + ".srt"


def test_clean_punctuation():
    assert clean_punctuation("...hello!?") == "hello"
    assert clean_punctuation("don't") == "don't"
    assert clean_punctuation("「你好」") == "你好"


@pytest.mark.parametrize("ch", ["a", "Z", "é", "Ж", "λ"])
def test_is_alphabetic_letters(ch):
    assert is_alphabetic(ch)


@pytest.mark.parametrize("ch", ["中", "1", "!", "あ"])
def test_is_alphabetic_others(ch):
    assert not is_alphabetic(ch)


def test_contains_alphabetic():
    assert contains_alphabetic("你好 world")
    assert not contains_alphabetic("你好，世界 123")


def test_copy_file(tmp_path):
    src = tmp_path / "src.bin"
    src.write_bytes(b"\x00\x01payload")
    dst = tmp_path / "dst.bin"
    copy_file(str(src), str(dst))
    assert dst.read_bytes() == src.read_bytes()


def test_copy_file_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        copy_file(str(tmp_path / "missing"), str(tmp_path / "dst"))