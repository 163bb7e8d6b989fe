"""Title cleanup applied before comparing provider titles."""

import re

# Release markers some sites append to their listings
_RELEASE_TAGS = re.compile(r'\s*\((?:dub|sub|uncensored|uncut|subbed|dubbed)\)', re.IGNORECASE)
_AUDIO_TAG = re.compile(r'\s*\([^)]+audio\)', re.IGNORECASE)
_TRAILING_BD = re.compile(r'\s+BD\s*$', re.IGNORECASE)
_TV_TAG = re.compile(r'\(TV\)', re.IGNORECASE)

MAX_TITLE_LENGTH = 99


def sanitize_title(title: str) -> str:
    """
    Remove unnecessary information from a provider title.

    Steps:
      1. Drop (dub)/(sub)/(uncensored)/(uncut)/(subbed)/(dubbed) tags
      2. Drop "(... audio)" groups
      3. Drop a standalone trailing "BD" token
      4. Drop every "(TV)"
      5. Trim and truncate to 99 characters

    Examples:
        "Naruto (dub) BD" -> "Naruto"
        "Kanon (TV)" -> "Kanon"
        "Bleach (Japanese Audio)" -> "Bleach"
    """
    if not title:
        return ""

    cleaned = _RELEASE_TAGS.sub('', title)
    cleaned = _AUDIO_TAG.sub('', cleaned)
    cleaned = _TRAILING_BD.sub('', cleaned)
    cleaned = _TV_TAG.sub('', cleaned)
    cleaned = cleaned.strip()
    return cleaned[:MAX_TITLE_LENGTH]
