"""Keyword heuristics for media-generation requests.

Classification is advisory. It decides whether the client shows a blocking
"generating media" indicator instead of a live placeholder; the backend routes
the request on its own.
"""

from __future__ import annotations

import re
from enum import Enum


class MediaIntent(str, Enum):
    NONE = "none"
    IMAGE = "image"
    AUDIO = "audio"


_AUDIO_TERMS = ("song", "music", "audio", "tune", "melody", "compose")
_AUDIO_VERBS = ("generate", "create", "make", "compose", "play")
_AUDIO_LEADING_VERBS = ("play", "sing")

_IMAGE_NOUNS = ("image", "picture", "photo", "drawing")
_IMAGE_VERBS = ("generate", "create", "draw", "make")

_IMAGE_URL_MARKERS = (".jpg", ".jpeg", ".png", ".gif", "replicate.delivery", "image-url")
_AUDIO_URL_MARKERS = (".mp3", ".wav", "musicfy.lol", "audio-url")
_MARKDOWN_IMAGE = re.compile(r"!\[.*?\]\(https?://\S+\)", re.IGNORECASE)


def _contains_any(text: str, terms: tuple[str, ...]) -> bool:
    return any(term in text for term in terms)


def classify(text: str) -> MediaIntent:
    """Classify a user utterance as an image, audio or plain request."""
    lowered = text.strip().lower()

    if _contains_any(lowered, _AUDIO_TERMS) and (
        _contains_any(lowered, _AUDIO_VERBS) or lowered.startswith(_AUDIO_LEADING_VERBS)
    ):
        return MediaIntent.AUDIO

    if _contains_any(lowered, _IMAGE_NOUNS) and _contains_any(lowered, _IMAGE_VERBS):
        return MediaIntent.IMAGE

    return MediaIntent.NONE


def detect_media(content: str) -> MediaIntent:
    """Report which kind of generated media, if any, an assistant reply links to."""
    if _contains_any(content, _IMAGE_URL_MARKERS) or _MARKDOWN_IMAGE.search(content):
        return MediaIntent.IMAGE
    if _contains_any(content, _AUDIO_URL_MARKERS):
        return MediaIntent.AUDIO
    return MediaIntent.NONE
