"""Line unfolding for calendar feeds."""

import re
from collections.abc import Iterator

# CRLF, LF and lone CR all terminate a physical line
_LINE_BREAK = re.compile(r"\r\n|\n|\r")


def unfold_lines(text: str) -> Iterator[str]:
    """Yield logical lines from raw feed text.

    A physical line starting with a single space or horizontal tab continues
    the previous logical line: that one whitespace character is dropped and
    the rest is appended verbatim. Blank physical lines come out as empty
    logical lines; callers skip them.

    The generator holds no state beyond the line being assembled, so calling
    it again on the same text restarts from the beginning.
    """
    pending: str | None = None

    for physical in _LINE_BREAK.split(text):
        if physical[:1] in (" ", "\t"):
            continuation = physical[1:]
            pending = continuation if pending is None else pending + continuation
            continue

        if pending is not None:
            yield pending
        pending = physical

    if pending is not None:
        yield pending
