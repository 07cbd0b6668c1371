# normalizer.py
import html
import re

_BLOCK_END = re.compile(r"(?i)</\s*(p|div|li|h[1-6]|blockquote|pre|tr|ul|ol|table)\s*>")
_LINE_BREAK = re.compile(r"(?i)<\s*br\s*/?\s*>")
_TAG = re.compile(r"<[^>]*>")
_PIPES = re.compile(r"[|]+")


def strip_leading_bullets(s: str) -> str:
    """
    Remove leading list numbers/bullets like:
      '1. ', '2) ', '- ', '* ', '• ', '– '
    and collapse double spaces.
    """
    if not s:
        return s
    s = s.lstrip()
    s = re.sub(r"^\s*(?:\d+[\.\)]\s+|[-*•–]\s+)+", "", s)
    return re.sub(r"\s{2,}", " ", s).strip()


def _strip_markup(raw: str) -> str:
    text = _TAG.sub(" ", raw)
    text = html.unescape(text)
    text = text.replace("\xa0", " ")
    return _PIPES.sub("", text)


def clean_text(raw) -> str:
    """Flatten an email body to a single line of plain text for the classifier."""
    if not raw:
        return ""
    text = _strip_markup(str(raw))
    return re.sub(r"\s+", " ", text).strip()


def clean_lines(raw) -> str:
    """Like clean_text, but block tags and newlines survive as line breaks and list bullets are dropped."""
    if not raw:
        return ""
    text = _LINE_BREAK.sub("\n", str(raw))
    text = _BLOCK_END.sub("\n", text)
    text = _strip_markup(text).replace("\r", "\n")

    lines = []
    for line in text.split("\n"):
        line = strip_leading_bullets(re.sub(r"[ \t\f\v]+", " ", line))
        if line:
            lines.append(line)
    return "\n".join(lines)
