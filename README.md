# krillin

This is a library of building blocks for localising video. It covers speech-to-text backends, SRT subtitle handling, chat-based translation, voice cloning and streaming speech synthesis.

## Installation

```
pip install krillin
```

Install the `test` extra to run the tests:

```
pip install "krillin[test]"
pytest
```

Some parts start external programs:

- `ffprobe` is used by `krillin.subtitle.get_audio_duration`. Its path is set with the `ffprobe_path` argument.
- `ffmpeg` is used by `krillin.aliyun_asr.process_audio` and `AsrClient`. Its path is set with `ffmpeg_path`.
- The faster-whisper and WhisperKit command-line tools are used by `FasterWhisperProcessor` and `WhisperKitProcessor`. Their paths are set with the `executable` field.

## Modules

### `krillin.util`

- `generate_rand_string(n)` returns a random string of letters and the digits 1–9.
- `generate_id()` returns a UUID as 32 hex characters.
- `get_youtube_id(url)` returns the video id from a watch URL or a short URL. It raises `ValueError` if a watch URL has no `v` parameter.
- `get_bilibili_video_id(url)` returns the BV id, or `""` if there is none.
- `format_time(seconds)` returns `HH:MM:SS,mmm`.
- `is_number(s)` reports whether a string is a 64-bit decimal integer.
- `clean_punctuation(word)` strips punctuation from both ends.
- `is_alphabetic(ch)` and `contains_alphabetic(text)` test for Latin, Greek and Cyrillic letters.
- The file helpers are `change_file_extension`, `unzip` and `copy_file`.

### `krillin.subtitle`

- `SrtBlock` is a dataclass with these fields: `index`, `timestamp`, `target_language_sentence` and `origin_language_sentence`.
- `parse_srt_no_ts(path)` reads numbered blocks that have no timestamps. It skips any preamble before the first number, and it trims tags and brackets with `trim_string`.
- `process_block(...)` splits one bilingual block into target and origin subtitle files and text files.
- `merge_srt_files(final, *files)` merges files and renumbers their entries. It drops lines that contain a code fence and skips files that are missing.
- `merge_file(final, *files)` concatenates files.
- `replace_file_content(src, dst, replacements)` rewrites a file, replacing each key with its value.
- `is_subtitle_text`, `split_sentence`, `get_recognizable_string` and `add_suffix_to_file_name` are text and path helpers.
- `get_audio_duration(path, ffprobe_path="ffprobe")` returns a media file's duration in seconds.

### `krillin.download`

- `download_file(url, path, proxy=None)` streams a URL to disk and prints a progress line while it does so.
- `DownloadProgress` tracks the bytes received. Its `update` method records a chunk, and its `render` method builds the progress line.

### `krillin.transcription`

- `Word` and `TranscriptionData` are the shared result types.
- `segments_to_transcription(segments)` turns Whisper JSON segments into numbered words. It splits words that are joined by an em dash and cleans their punctuation.
- `FasterWhisperProcessor(model)` runs the local faster-whisper tool. `WhisperKitProcessor(model)` runs the local WhisperKit tool. Each then reads the JSON file that is written next to the audio.

### `krillin.openai_client`

- `OpenAIClient(base_url, api_key, proxy, model).chat_completion(query)` streams a chat reply that uses a subtitle-translation system prompt. The default model is `gpt-4o-mini-2024-07-18`.
- `WhisperClient(base_url, api_key, proxy).transcription(audio_file, language)` calls the hosted `whisper-1` model with word timestamps.
- `words_from_whisper_response(data)` converts a verbose JSON response.

### Cloud speech platform clients

- `krillin.aliyun_auth`
  - Request signing: `encode_text`, `encode_dict` and `generate_signature`.
  - `create_token(access_key_id, access_key_secret)` requests an access token.
  - `VoiceCloneClient` provides `cosy_voice_clone` and `cosy_clone_list`.
  - Failures raise `AliyunError`.
- `krillin.aliyun_chat.AliyunChatClient(api_key).chat_completion(query)` sends the query to the `qwen-plus` model.
- `krillin.aliyun_oss.OssClient(access_key_id, access_key_secret, bucket).upload_file(object_key, file_path)` uploads a file with a signed PUT request.
- `krillin.aliyun_asr` handles real-time recognition over WebSocket:
  - `AsrClient(api_key).transcription(audio_file, language)` first converts the audio to mono 16 kHz MP3, then streams it to the service.
  - `SentenceCollector` gathers the finished sentences into words.
  - `build_run_task_command` and `build_finish_task_command` build the protocol messages.
- `krillin.aliyun_tts.TtsClient(access_key_id, access_key_secret, appkey).text_to_speech(text, voice, output_file)` synthesises speech to WAV. The request parameters are set by `StartSynthesisPayload`, and the messages are built by `build_message`.

## Example

```python
from krillin.util import format_time
from krillin.subtitle import parse_srt_no_ts, merge_srt_files

print(format_time(3661.5))  # 01:01:01,500

for block in parse_srt_no_ts("translated.txt"):
    print(block.index, block.target_language_sentence, block.origin_language_sentence)

merge_srt_files("full.srt", "part1.srt", "part2.srt")
```

Transcribing with a local model, then translating:

```python
from krillin.transcription import FasterWhisperProcessor
from krillin.openai_client import OpenAIClient

processor = FasterWhisperProcessor(model="large-v2")
data = processor.transcription("audio.wav", "en", "work")
for word in data.words:
    print(word.num, word.text, word.start, word.end)

client = OpenAIClient(api_key="placeholder")
print(client.chat_completion("Translate into French: " + data.text))
```

## What it does not do

This is a library only. It has no command-line program, no web server and no user interface. It also has no configuration loading and no task pipeline that ties the steps together. Downloading videos from YouTube or Bilibili, rendering subtitles onto video and storing tasks are all left to the application that uses it.