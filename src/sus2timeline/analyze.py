# src/sus2timeline/analyze.py
from __future__ import annotations
import logging
import re
from fractions import Fraction
from functools import lru_cache
from typing import Iterable, Iterator, Optional, Tuple
from .errors import MalformedLine
from .timeline import (
    Grammar, ChartAnalysis, Directive,
    Metadata, TempoTableEntry, WaveOffset, TimeSignatureEntry, TimedData, Ignored,
    FAMILY_CONTROL, CONTROL_TIME_SIGNATURE, CONTROL_TEMPO_REF, DEFAULT_EMPTY_SLOT,
)
from .util.radix import b36, to_int, to_float

log = logging.getLogger(__name__)

WAVEOFFSET_RE = re.compile(r"^#WAVEOFFSET\s+(\S+)", re.IGNORECASE)
BPM_RE = re.compile(r"^#BPM([0-9A-Za-z]{2})\s*:\s*(.+)$", re.IGNORECASE)
HEADER_RE = re.compile(r"^#([A-Za-z][A-Za-z0-9_]*)\s+(.*)$")
PAYLOAD_RE = re.compile(r"^[0-9A-Za-z]*$")
# hi-speed and attribute tables; same shape as a base-36 timed line
TABLE_RE = re.compile(r"^#(?:TIL|ATR)[0-9A-Za-z]{2}\s*:", re.IGNORECASE)

# modelled header keys -> SongInfo fields
INFO_KEYS = {"TITLE": "title", "ARTIST": "artist", "DESIGNER": "designer"}

@lru_cache(maxsize=None)
def _timed_re(measure_radix: int) -> re.Pattern:
    digits = "0-9" if measure_radix <= 10 else "0-9A-Za-z"
    # '#' + 3-char measure, 2-char column, optional channel char, ':' payload
    return re.compile(rf"^#([{digits}]{{3}})([0-9A-Za-z]{{2}})([0-9A-Za-z]?)\s*:\s*(.*)$")

def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value

def classify_line(line: str, grammar: Optional[Grammar] = None, line_no: int = 0) -> Directive:
    """
    Tags one raw chart line. Lines of unknown shape are Ignored, never an error;
    a recognised shape with an unparsable value raises MalformedLine.
    """
    grammar = grammar or Grammar()
    text = line.rstrip("\r\n").strip()
    if not text.startswith("#"):
        return Ignored(line_no)

    m = WAVEOFFSET_RE.match(text)
    if m:
        return WaveOffset(to_float(m.group(1), line_no, line), line_no)

    m = BPM_RE.match(text)
    if m:
        bpm = to_float(m.group(2), line_no, line)
        if bpm <= 0:
            raise MalformedLine(f"bpm must be positive, got {bpm}", line_no, line)
        return TempoTableEntry(b36(m.group(1), line_no, line), bpm, line_no)

    if TABLE_RE.match(text):
        return Ignored(line_no)

    m = _timed_re(grammar.measure_radix).match(text)
    if m:
        measure = to_int(m.group(1), grammar.measure_radix, line_no, line)
        column, channel_char, payload = m.group(2), m.group(3), m.group(4).strip()
        if column == FAMILY_CONTROL + CONTROL_TIME_SIGNATURE:
            value = to_float(payload, line_no, line)
            if value <= 0:
                raise MalformedLine(f"beats per measure must be positive, got {value}", line_no, line)
            return TimeSignatureEntry(measure, value, line_no)
        payload = "".join(payload.split())
        if not PAYLOAD_RE.match(payload):
            raise MalformedLine("payload must be alphanumeric", line_no, line)
        return TimedData(measure, column, payload, channel_char, line_no, text)

    m = HEADER_RE.match(text)
    if m:
        return Metadata(m.group(1).upper(), _unquote(m.group(2)), line_no)

    return Ignored(line_no)

def iter_columns(payload: str, empty_slot: str = DEFAULT_EMPTY_SLOT,
                 line_no: int = 0, line: str = "") -> Iterator[Tuple[Fraction, str]]:
    """
    Splits a payload of 2n characters into (i/n, code) pairs, skipping empty slots.
    Validation happens eagerly; the pairs themselves are produced lazily.
    """
    data = "".join(payload.split())
    if len(data) % 2:
        raise MalformedLine(f"payload has odd length {len(data)}", line_no, line)
    return _columns(data, empty_slot)

def _columns(data: str, empty_slot: str) -> Iterator[Tuple[Fraction, str]]:
    size = len(data) // 2
    for i in range(size):
        code = data[i * 2:i * 2 + 2]
        if code == empty_slot:
            continue
        yield Fraction(i, size), code

def iter_events(td: TimedData, empty_slot: str = DEFAULT_EMPTY_SLOT) -> Iterator[Tuple[Fraction, str]]:
    """(measure-space position, code) for every non-empty slot of a timed-data line."""
    for offset, code in iter_columns(td.payload, empty_slot, td.line_no, td.line):
        yield td.measure + offset, code

def analyze_sus(lines: Iterable[str], grammar: Optional[Grammar] = None) -> ChartAnalysis:
    grammar = grammar or Grammar()
    analysis = ChartAnalysis()

    for line_no, line in enumerate(lines, start=1):
        if line_no == 1:
            line = line.lstrip("\ufeff")
        d = classify_line(line, grammar, line_no)

        if isinstance(d, WaveOffset):
            analysis.wave_offset_sec = d.value
        elif isinstance(d, TempoTableEntry):
            if d.index in analysis.tempo_table:
                log.debug("line %d: tempo index %d redefined", line_no, d.index)
            analysis.tempo_table[d.index] = d
        elif isinstance(d, TimeSignatureEntry):
            analysis.time_signatures.append(d)
        elif isinstance(d, Metadata):
            analysis.metadata[d.key] = d.value
        elif isinstance(d, TimedData):
            if d.family == FAMILY_CONTROL:
                if d.column[1] == CONTROL_TEMPO_REF:
                    analysis.tempo_refs.append(d)
                else:
                    log.debug("line %d: control column %s ignored", line_no, d.column)
                    analysis.ignored += 1
            elif d.family in "12345":
                analysis.note_lines.append(d)
            else:
                log.debug("line %d: column family %s ignored", line_no, d.family)
                analysis.ignored += 1
        else:
            analysis.ignored += 1

    log.debug(
        "analyzed: %d time signatures, %d tempo refs, %d note lines, %d ignored",
        len(analysis.time_signatures), len(analysis.tempo_refs),
        len(analysis.note_lines), analysis.ignored,
    )
    return analysis
