"""
Chat Session Titles

Derives a short title for a chat session from its first user message,
preferring case-specific topic keywords over generic words.
"""

import re

from .patterns import SUMMARY_STOP_WORDS, SUMMARY_TOPIC_KEYWORDS

_PUNCTUATION = re.compile(r"[^\w\s]", re.ASCII)

TITLE_WORDS = 3


def _role(message: dict) -> str:
    return message.get("role") or message.get("message_type") or ""


def generate_chat_summary(messages: list[dict]) -> str:
    """
    Title for a session.

    Args:
        messages: Dicts with "role" (or "message_type") and "content"

    Returns:
        Up to three title-cased words, padded with "Related Query" or
        "Query" when fewer are found.
    """
    first_user = next((m for m in messages if _role(m) == "user"), None)
    if first_user is None:
        return "New Chat Session"

    content = _PUNCTUATION.sub("", (first_user.get("content") or "").lower())
    words = [w for w in content.split() if len(w) > 2 and w not in SUMMARY_STOP_WORDS]

    relevant = []
    for word in words:
        if word in SUMMARY_TOPIC_KEYWORDS:
            # Topic keywords jump ahead of generic words
            relevant.insert(0, SUMMARY_TOPIC_KEYWORDS[word])
        elif len(relevant) < TITLE_WORDS:
            relevant.append(word[0].upper() + word[1:])

    if not relevant:
        return "General FTX Query"
    if len(relevant) == 1:
        return f"{relevant[0]} Related Query"
    if len(relevant) == 2:
        return f"{relevant[0]} {relevant[1]} Query"
    return " ".join(relevant[:TITLE_WORDS])
