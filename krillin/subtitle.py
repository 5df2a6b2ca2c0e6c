"""Reading, splitting, merging and rewriting SRT subtitle files."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from typing import IO, Iterable, Iterator

import regex

from krillin.util import is_number

_TIMELINE_RE = re.compile(r"[0-9]{2}:[0-9]{2}:[0-9]{2},[0-9]{3} --> [0-9]{2}:[0-9]{2}:[0-9]{2},[0-9]{3}")
_LEADING_INT_RE = re.compile(r"\s*([+-]?[0-9]+)")
_NON_WORD_RE = regex.compile(r"[^\p{L}\p{N}\t\n\f\r ']+")

# A character is kept once for every group it belongs to.
_RECOGNIZABLE_GROUPS = tuple(
    regex.compile(pattern)
    for pattern in (
        r"[\p{Script=Latin}\p{N}]",
        r"\p{Script=Han}",
        r"\p{Script=Hangul}",
        r"[\p{Script=Hiragana}\p{Script=Katakana}]",
    )
)

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


@dataclass
class SrtBlock:
    """One numbered subtitle entry with its target and origin sentences."""

    index: int = 0
    timestamp: str = ""
    target_language_sentence: str = ""
    origin_language_sentence: str = ""


def _read_lines(path: str) -> Iterator[str]:
    with open(path, encoding=_ENCODING, errors=_ERRORS, newline="\n") as handle:
        for line in handle:
            yield line.removesuffix("\n").removesuffix("\r")


def _open_output(path: str) -> IO[str]:
    return open(path, "w", encoding=_ENCODING, errors=_ERRORS, newline="\n")


def process_block(
    block: Iterable[str],
    target_file: IO[str],
    target_text_file: IO[str],
    origin_file: IO[str],
    origin_text_file: IO[str],
    is_target_on_top: bool,
) -> None:
    """Split a bilingual subtitle block into target and origin subtitle and text files."""
    target_lines: list[str] = []
    origin_lines: list[str] = []
    for line in block:
        if _TIMELINE_RE.search(line) or is_number(line):
            target_lines.append(line)
            origin_lines.append(line)
            continue
        upper_line = len(target_lines) == 2 and len(origin_lines) == 2
        to_target = is_target_on_top if upper_line else not is_target_on_top
        if to_target:
            target_lines.append(line)
            target_text_file.write(line)
        else:
            origin_lines.append(line)
            origin_text_file.write(line)

    for lines, out in ((target_lines, target_file), (origin_lines, origin_file)):
        if len(lines) > 2:
            out.write("".join(f"{line}\n" for line in lines) + "\n")


def is_subtitle_text(line: str) -> bool:
    """Tell whether ``line`` is subtitle text rather than an index, timeline or blank."""
    if line == "" or is_number(line):
        return False
    return not _TIMELINE_RE.search(line)


def trim_string(s: str) -> str:
    """Remove marker tags and surrounding brackets, and normalise curly apostrophes."""
    s = s.replace("[中文翻译]", "").replace("[英文句子]", "")
    s = s.lstrip(" [").rstrip(" ]")
    return s.replace("’", "'")


def parse_srt_no_ts(path: str) -> list[SrtBlock]:
    """Parse a subtitle file without timestamps into blocks, skipping any preamble."""
    blocks: list[SrtBlock] = []
    current = SrtBlock()
    started = False
    for raw in _read_lines(path):
        line = trim_string(raw)
        if not started:
            if not is_number(line):
                continue
            started = True
        if line == "":
            if current.index != 0:
                blocks.append(current)
                current = SrtBlock()
            continue
        if current.index == 0:
            match = _LEADING_INT_RE.match(line)
            if match is None:
                # Anything else here (silence and the like) ends the usable content.
                return blocks
            current.index = int(match.group(1))
        elif not current.target_language_sentence:
            current.target_language_sentence = line
        elif not current.origin_language_sentence:
            current.origin_language_sentence = line
    if current.index != 0:
        blocks.append(current)
    return blocks


def split_sentence(sentence: str) -> list[str]:
    """Split a sentence into words, dropping punctuation but keeping apostrophes."""
    return _NON_WORD_RE.sub(" ", sentence).split()


def merge_file(final_file: str, *args: str) -> None:
    """Concatenate the lines of the given files into ``final_file``."""
    with _open_output(final_file) as final:
        for path in args:
            for line in _read_lines(path):
                final.write(line + "\n")


def merge_srt_files(final_file: str, *args: str) -> None:
    """Merge SRT files, renumbering entries and dropping code-fence lines; missing files are skipped."""
    with _open_output(final_file) as output:
        number = 0
        for path in args:
            if not os.path.exists(path):
                continue
            for line in _read_lines(path):
                if "```" in line:
                    continue
                if is_number(line):
                    number += 1
                    line = str(number)
                output.write(line + "\n")


def replace_file_content(src_file: str, dst_file: str, replacements: dict[str, str]) -> None:
    """Write ``src_file`` to ``dst_file`` with every key of ``replacements`` replaced by its value."""
    lines = _read_lines(src_file)
    with open(src_file, "rb"):
        pass
    with _open_output(dst_file) as output:
        for line in lines:
            for before, after in replacements.items():
                line = line.replace(before, after)
            output.write(line + "\n")


def _extension(path: str) -> str:
    name = os.path.basename(path)
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def add_suffix_to_file_name(file_path: str, suffix: str) -> str:
    """Insert ``suffix`` before the extension: ``dir/abc.srt`` becomes ``dir/abc_tmp.srt``."""
    ext = _extension(file_path)
    name = os.path.basename(file_path)
    stem = name[: len(name) - len(ext)] if ext else name
    return os.path.normpath(os.path.join(os.path.dirname(file_path), f"{stem}{suffix}{ext}"))


def get_recognizable_string(s: str) -> str:
    """Keep only Latin letters, numbers, Han, Hangul, Hiragana and Katakana characters."""
    return "".join(
        ch * sum(1 for group in _RECOGNIZABLE_GROUPS if group.fullmatch(ch)) for ch in s
    )


def get_audio_duration(input_file: str, ffprobe_path: str = "ffprobe") -> float:
    """Return the duration of a media file in seconds, as reported by ffprobe."""
    args = [
        ffprobe_path, "-i", input_file,
        "-show_entries", "format=duration",
        "-v", "quiet",
        "-of", "csv=p=0",
    ]
    try:
        completed = subprocess.run(args, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise RuntimeError(f"failed to get audio duration: {exc}") from exc
    output = completed.stdout.strip()
    try:
        return float(output)
    except ValueError as exc:
        raise ValueError(f"failed to parse audio duration: {output!r}") from exc