from __future__ import annotations
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Optional, List, Dict, Tuple, Union

DEFAULT_MEASURE_RADIX = 10
DEFAULT_EMPTY_SLOT = "00"

# Column family = first character of the column code
FAMILY_CONTROL = "0"
FAMILY_TAP = "1"
FAMILY_HOLD = "2"
FAMILY_SLIDE = "3"
FAMILY_SLIDE_VARIANT = "4"
FAMILY_FLICK = "5"
UNSUPPORTED_FAMILIES = {
    FAMILY_HOLD: "hold",
    FAMILY_SLIDE_VARIANT: "slide variant",
    FAMILY_FLICK: "flick",
}

# Second column character inside the control family
CONTROL_TIME_SIGNATURE = "2"
CONTROL_TEMPO_REF = "8"

# Slot kinds on slide lines (first character of a slot code)
SLIDE_START = "1"
SLIDE_END = "2"


@dataclass(frozen=True)
class Grammar:
    measure_radix: int = DEFAULT_MEASURE_RADIX
    empty_slot: str = DEFAULT_EMPTY_SLOT

# --- Pass 1: classified directives ---

@dataclass(frozen=True)
class Metadata:
    key: str
    value: str
    line_no: int = 0

@dataclass(frozen=True)
class TempoTableEntry:
    index: int
    bpm: float
    line_no: int = 0

@dataclass(frozen=True)
class WaveOffset:
    value: float
    line_no: int = 0

@dataclass(frozen=True)
class TimeSignatureEntry:
    measure: int
    value: float
    line_no: int = 0

@dataclass(frozen=True)
class TimedData:
    measure: int
    column: str            # 2 chars, e.g. "14" (tap, lane 4) or "08" (tempo ref)
    payload: str
    channel_char: str = ""   # slides only: character after the column code
    line_no: int = 0
    line: str = ""

    @property
    def family(self) -> str:
        return self.column[0]

@dataclass(frozen=True)
class Ignored:
    line_no: int = 0

Directive = Union[Metadata, TempoTableEntry, WaveOffset, TimeSignatureEntry, TimedData, Ignored]

@dataclass
class ChartAnalysis:
    metadata: Dict[str, str] = field(default_factory=dict)
    wave_offset_sec: float = 0.0
    tempo_table: Dict[int, TempoTableEntry] = field(default_factory=dict)
    time_signatures: List[TimeSignatureEntry] = field(default_factory=list)
    tempo_refs: List[TimedData] = field(default_factory=list)
    note_lines: List[TimedData] = field(default_factory=list)   # scan order
    ignored: int = 0

# --- Pass 2: resolved timeline ---

@dataclass(frozen=True)
class SongInfo:
    title: Optional[str] = None
    artist: Optional[str] = None
    designer: Optional[str] = None
    wave_offset_sec: float = 0.0

@dataclass(frozen=True)
class BeatPerMeasureChange:
    beats_per_measure: float
    pos_measure: Fraction
    pos_beat: float = float("nan")
    pos_sec: float = float("nan")

@dataclass(frozen=True)
class BPMChange:
    bpm: float
    pos_beat: float
    pos_sec: float = float("nan")

@dataclass(frozen=True)
class TapNote:
    left_lane: int
    width: int
    pos_beat: float
    pos_sec: float = float("nan")

    @property
    def start_beat(self) -> float:
        return self.pos_beat

    @property
    def start_sec(self) -> float:
        return self.pos_sec

@dataclass(frozen=True)
class SlideNote:
    start_left_lane: int
    start_width: int
    start_pos_beat: float
    end_left_lane: int
    end_width: int
    end_pos_beat: float
    start_pos_sec: float = float("nan")
    end_pos_sec: float = float("nan")

    @property
    def start_beat(self) -> float:
        return self.start_pos_beat

    @property
    def start_sec(self) -> float:
        return self.start_pos_sec

Note = Union[TapNote, SlideNote]

@dataclass(frozen=True)
class SongTimeline:
    info: SongInfo
    notes: Tuple[Note, ...] = ()
    bpm_changes: Tuple[BPMChange, ...] = ()
    beat_per_measure_changes: Tuple[BeatPerMeasureChange, ...] = ()
