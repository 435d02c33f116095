import re


SCROLL_TO_FORM_MARKER = "[SCROLL_TO_FORM]"

_CITATION_PATTERNS = [
    re.compile(r"【\d+:\d+†[^】]+】"),
    re.compile(r"\[\d+:\d+†[^\]]+\]"),
    re.compile(r"\[\d+\]"),
    re.compile(r"†\S+\.pdf"),
]
_WS_RE = re.compile(r"\s+")
_LEAD_BULLET_RE = re.compile(r"(:|\.) - ")
_INLINE_BULLET_RE = re.compile(r" - ([A-Z])")


def remove_citations(text: str) -> str:
    for pattern in _CITATION_PATTERNS:
        text = pattern.sub("", text)
    return _WS_RE.sub(" ", text).strip()


def format_bullet_points(text: str) -> str:
    """Turn "Intro: - One - Two" into a line-broken list.

    Needs at least two " - " separators; a lone dash is left alone.
    """
    if text.count(" - ") < 2:
        return text
    formatted = _LEAD_BULLET_RE.sub(r"\1\n\n- ", text)
    return _INLINE_BULLET_RE.sub(r"\n- \1", formatted)


def extract_scroll_marker(text: str) -> tuple[str, bool]:
    if SCROLL_TO_FORM_MARKER not in text:
        return text.strip(), False
    return text.replace(SCROLL_TO_FORM_MARKER, "").strip(), True


def clean_reply(raw: str) -> tuple[str, bool]:
    return extract_scroll_marker(format_bullet_points(remove_citations(raw)))
