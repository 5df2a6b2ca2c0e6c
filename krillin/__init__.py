"""Transcription, subtitle, translation and speech-synthesis helpers for video localisation."""

__version__ = "0.1.0"