# Text sanitizer.
# Some providers reject or mangle certain Unicode ranges, so every prompt and
# message text is reduced to printable ASCII before it leaves the process.

from __future__ import annotations

import re
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from fragments.generate.types import ChatMessage

NAMED_SYMBOLS = {
    "\u25b2": "[up-triangle]",
    "\u25bc": "[down-triangle]",
    "\u25c6": "[diamond]",
    "\u2605": "[star]",
    "\u26a1": "[bolt]",
    "\U0001f4ac": "[chat]",
    "\U0001f525": "[fire]",
    "\U0001f680": "[rocket]",
}

# applied in order, after the named symbols
SYMBOL_RANGES = [
    (re.compile("[\u2600-\u26ff]"), "[symbol]"),  # misc symbols
    (re.compile("[\u2700-\u27bf]"), "[symbol]"),  # dingbats
    (re.compile("[\U0001f600-\U0001f64f]"), "[emoji]"),  # emoticons
    (re.compile("[\U0001f300-\U0001f5ff]"), "[emoji]"),  # pictographs
    (re.compile("[\U0001f680-\U0001f6ff]"), "[emoji]"),  # transport and map
    (re.compile("[\U0001f1e6-\U0001f1ff]"), "[flag]"),  # regional indicators
]

# variation selectors + zero width joiner
_INVISIBLE = re.compile("[\ufe00-\ufe0f\u200d]")
_NON_ASCII = re.compile(r"[^\x20-\x7e\t\n\r\x0b\x0c]")

_NAMED_TABLE = str.maketrans(NAMED_SYMBOLS)


def sanitize(text: str) -> str:
    """Map known symbols to bracketed tags and drop everything non-ASCII."""
    if not text:
        return ""
    out = text.translate(_NAMED_TABLE)
    for pattern, tag in SYMBOL_RANGES:
        out = pattern.sub(tag, out)
    out = _INVISIBLE.sub("", out)
    out = _NON_ASCII.sub("", out)
    return out.strip()


def sanitize_messages(messages: List[ChatMessage]) -> List[ChatMessage]:
    """Return copies of `messages` with every text field sanitized.

    String content and text parts are cleaned; image and file parts are
    passed through as-is.
    """
    cleaned = []
    for msg in messages:
        if isinstance(msg.content, str):
            cleaned.append(msg.model_copy(update={"content": sanitize(msg.content)}))
            continue
        parts = [
            p.model_copy(update={"text": sanitize(p.text)}) if p.type == "text" else p
            for p in msg.content
        ]
        cleaned.append(msg.model_copy(update={"content": parts}))
    return cleaned
