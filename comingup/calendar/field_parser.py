"""Content-line parsing: ``NAME;PARAM=VALUE:value``."""

from typing import NamedTuple, Optional


class ParsedField(NamedTuple):
    """One content line split into name, parameters and value.

    ``name`` and parameter keys are upper-cased. Parameter values keep their
    case but lose surrounding double quotes.
    """

    name: str
    params: tuple[tuple[str, str], ...]
    value: str

    def param(self, key: str) -> Optional[str]:
        """Return the first value of parameter ``key`` (case-insensitive), or None."""
        wanted = key.upper()
        for param_key, param_value in self.params:
            if param_key == wanted:
                return param_value
        return None

    @property
    def tzid(self) -> Optional[str]:
        return self.param("TZID")


def _split_outside_quotes(text: str, separator: str) -> list[str]:
    parts = []
    current = []
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
        if char == separator and not in_quotes:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def _find_value_separator(line: str) -> int:
    """Index of the first ``:`` that is not inside a quoted parameter value, or -1."""
    in_quotes = False
    for index, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif char == ":" and not in_quotes:
            return index
    return -1


def parse_field(line: str) -> Optional[ParsedField]:
    """Split a logical line into a ParsedField.

    Returns None when the line has no name/value separator; such lines are
    not fields and are discarded by the record builder.
    """
    separator = _find_value_separator(line)
    if separator < 0:
        return None

    head = line[:separator]
    value = line[separator + 1:].strip()

    name, *raw_params = _split_outside_quotes(head, ";")
    name = name.strip().upper()

    params = []
    for raw in raw_params:
        if "=" not in raw:
            continue
        key, param_value = raw.split("=", 1)
        key = key.strip().upper()
        if not key:
            continue
        param_value = param_value.strip()
        if len(param_value) >= 2 and param_value[0] == '"' and param_value[-1] == '"':
            param_value = param_value[1:-1]
        params.append((key, param_value))

    return ParsedField(name=name, params=tuple(params), value=value)


_ESCAPES = {
    "n": "\n",
    "N": "\n",
    ",": ",",
    ";": ";",
    "\\": "\\",
}


def unescape_text(raw: str) -> str:
    """Decode TEXT escapes: ``\\n``/``\\N`` to newline, ``\\,``, ``\\;`` and ``\\\\``.

    Unknown escape sequences and a trailing lone backslash pass through
    unchanged.
    """
    if "\\" not in raw:
        return raw

    out = []
    index = 0
    length = len(raw)
    while index < length:
        char = raw[index]
        if char == "\\" and index + 1 < length:
            replacement = _ESCAPES.get(raw[index + 1])
            if replacement is not None:
                out.append(replacement)
                index += 2
                continue
        out.append(char)
        index += 1
    return "".join(out)
