"""Extraction of a complete HTML document from assistant text."""

import re

DOCTYPE_MARKER = "<!DOCTYPE html>"
HTML_CLOSE = "</html>"

# Opening fence must be exactly ```html followed by the end of its line
_FENCED_HTML = re.compile(r"```html[ \t]*\r?\n(.*?)```", re.DOTALL)


def extract_html(text: str) -> str:
    """
    Return the HTML document embedded in ``text``, or "" if none is complete yet.

    A fenced ```html block wins over a raw <!DOCTYPE html>...</html> span.
    Called after every streamed delta, so an unfinished block or span is
    the normal case and simply yields "".
    """
    if not text:
        return ""

    match = _FENCED_HTML.search(text)
    if match:
        inner = match.group(1).strip()
        if inner:
            return inner

    start = text.find(DOCTYPE_MARKER)
    if start == -1:
        return ""
    end = text.find(HTML_CLOSE, start)
    if end == -1:
        return ""
    return text[start:end + len(HTML_CLOSE)]
