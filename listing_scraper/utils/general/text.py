import re

INVISIBLE_MARKS = "\u200e\u200f\u200b\ufeff"


def clean_string(text: str | None) -> str:
    """Collapse whitespace and strip direction marks from scraped text."""
    if not text:
        return ""
    for mark in INVISIBLE_MARKS:
        text = text.replace(mark, "")
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, length: int) -> str:
    return text if len(text) <= length else text[:length]
