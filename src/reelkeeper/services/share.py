"""Extraction of reel links from shared text."""

import re
from typing import Optional

from reelkeeper.models.reel import PendingReel

# Instagram reel/post links, e.g. https://www.instagram.com/reel/ABC123/?igsh=xyz
INSTAGRAM_LINK_RE = re.compile(
    r"https?://(?:www\.|m\.)?instagram\.com/(?:[A-Za-z0-9_.]+/)?(?:reels?|p|tv)/[A-Za-z0-9_-]+/?(?:\?[^\s]*)?",
    re.IGNORECASE,
)


def extract_reel_link(text: str) -> Optional[str]:
    """Return the first Instagram reel link in text, or None."""
    match = INSTAGRAM_LINK_RE.search(text or "")
    if not match:
        return None
    return match.group(0)


def pending_from_shared_text(text: str, timestamp: str) -> PendingReel:
    """Build the pending context for shared text.

    With a recognizable link, the link becomes the URL and any surrounding text
    the caption (the link itself when there is none). Otherwise the whole input is
    used as both URL and caption.

    Args:
        text: Shared payload
        timestamp: ISO-8601 time the content was received

    Returns:
        PendingReel
    """
    text = (text or "").strip()
    link = extract_reel_link(text)
    if link is None:
        return PendingReel(url=text, caption=text, timestamp=timestamp)

    remainder = " ".join(text.replace(link, " ").split())
    return PendingReel(url=link, caption=remainder or link, timestamp=timestamp)
