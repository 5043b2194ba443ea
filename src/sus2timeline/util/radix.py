from __future__ import annotations
from ..errors import MalformedLine

def b36(text: str, line_no: int = 0, line: str = "") -> int:
    return to_int(text, 36, line_no, line)

def to_int(text: str, radix: int, line_no: int = 0, line: str = "") -> int:
    try:
        return int(text, radix)
    except ValueError:
        raise MalformedLine(f"not a base-{radix} number: {text!r}", line_no, line) from None

def to_float(text: str, line_no: int = 0, line: str = "") -> float:
    try:
        return float(text.strip().strip('"'))
    except ValueError:
        raise MalformedLine(f"not a number: {text!r}", line_no, line) from None
