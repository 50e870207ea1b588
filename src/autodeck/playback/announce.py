"""
DJ voiceover announcements.

The sink is external (speech synthesis, chat, display...). It is
fire-and-forget: failures are logged and never reach the scheduler.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[_-]")


class AnnouncementSink(ABC):
    """Accepts announcement text; no acknowledgment."""

    @abstractmethod
    def announce(self, text: str) -> None:
        pass


class LoggingAnnouncer(AnnouncementSink):
    """Sink that logs announcements and keeps a history of them."""

    def __init__(self, history_size: int = 50):
        self.history: List[str] = []
        self.history_size = history_size

    def announce(self, text: str) -> None:
        logger.info(f"🎙️ {text}")
        self.history.append(text)
        del self.history[:-self.history_size]


def format_announcement(name: str, bpm: Optional[int]) -> str:
    """
    Build the pre-transition voiceover for the upcoming track.

    Underscores and dashes in the name are read as spaces; the BPM
    sentence is left out when the tempo is unknown.
    """
    spoken_name = _SEPARATORS.sub(" ", name).strip()
    parts = [f"Coming up: {spoken_name}."]
    if bpm:
        parts.append(f"{bpm} BPM.")
    parts.append("Enjoy the vibes!")
    return " ".join(parts)


def safe_announce(sink: Optional[AnnouncementSink], text: str) -> bool:
    """
    Send text to the sink, swallowing any sink failure.

    Returns:
        True if the sink accepted the text, False if absent or failed
    """
    if sink is None:
        return False
    try:
        sink.announce(text)
        return True
    except Exception as e:
        logger.warning(f"Announcement failed (ignored): {e}")
        return False
