from __future__ import annotations
import dataclasses
import logging
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from .analyze import analyze_sus, iter_events, INFO_KEYS
from .assemble import NoteAssembler
from .config import get_grammar
from .errors import MalformedLine, UndefinedAnchor, UndefinedTempoIndex
from .timeline import (
    ChartAnalysis, SongInfo, SongTimeline, BeatPerMeasureChange, BPMChange,
    TapNote, SlideNote, Note, TimeSignatureEntry,
)
from .util.radix import b36
from .util.time import StepFunction

log = logging.getLogger(__name__)

def _song_info(analysis: ChartAnalysis) -> SongInfo:
    fields = {attr: analysis.metadata[key] for key, attr in INFO_KEYS.items() if key in analysis.metadata}
    return SongInfo(wave_offset_sec=analysis.wave_offset_sec, **fields)

def _last_wins(items: List[Tuple[float, Any]], what: str) -> List[Tuple[float, Any]]:
    """items sorted by position (stable); keep the last item per position."""
    out: List[Tuple[float, Any]] = []
    for pos, item in items:
        if out and out[-1][0] == pos:
            log.warning("%s at %s defined twice; the later one wins", what, pos)
            out[-1] = (pos, item)
        else:
            out.append((pos, item))
    return out

# --- Timeline builder ---

def resolve_beat_per_measure(
    entries: Iterable[TimeSignatureEntry],
) -> Tuple[List[BeatPerMeasureChange], StepFunction]:
    """
    Sorted beats-per-measure changes with their beat positions, plus the
    measure→beat function they define.
    """
    ordered = _last_wins(
        sorted(((Fraction(e.measure), e) for e in entries), key=lambda x: x[0]),
        "time signature",
    )
    if not ordered:
        raise UndefinedAnchor("no time signature (#mmm02) defined")

    fn = StepFunction.accumulate(
        [float(m) for m, _ in ordered],
        [e.value for _, e in ordered],
        origin_value=0.0,
        name="time signature",
    )
    changes = [
        BeatPerMeasureChange(beats_per_measure=e.value, pos_measure=m, pos_beat=float(beat))
        for (m, e), beat in zip(ordered, fn.values)
    ]
    return changes, fn

def resolve_bpm_changes(
    analysis: ChartAnalysis, measure_to_beat: StepFunction, empty_slot: str = "00",
) -> Tuple[List[BPMChange], StepFunction]:
    """
    Resolves every tempo reference against the tempo table and returns the
    changes (pos_sec filled) plus the beat→seconds function.
    """
    refs: List[Tuple[float, float]] = []
    for td in analysis.tempo_refs:
        for pos, code in iter_events(td, empty_slot):
            idx = b36(code, td.line_no, td.line)
            entry = analysis.tempo_table.get(idx)
            if entry is None:
                raise UndefinedTempoIndex(f"tempo index {code} (#BPM{code}) is not defined", td.line_no, td.line)
            refs.append((measure_to_beat(pos), entry.bpm))

    ordered = _last_wins(sorted(refs, key=lambda x: x[0]), "tempo change")
    if not ordered:
        raise UndefinedAnchor("no tempo reference (#mmm08) defined")

    fn = StepFunction.accumulate(
        [beat for beat, _ in ordered],
        [60.0 / bpm for _, bpm in ordered],
        origin_value=-analysis.wave_offset_sec,
        name="tempo change",
    )
    changes = [
        BPMChange(bpm=bpm, pos_beat=beat, pos_sec=float(sec))
        for (beat, bpm), sec in zip(ordered, fn.values)
    ]
    return changes, fn

# --- Finalizer ---

def _note_with_seconds(note: Note, beat_to_sec: StepFunction) -> Note:
    if isinstance(note, TapNote):
        return dataclasses.replace(note, pos_sec=beat_to_sec(note.pos_beat))
    if isinstance(note, SlideNote):
        return dataclasses.replace(
            note,
            start_pos_sec=beat_to_sec(note.start_pos_beat),
            end_pos_sec=beat_to_sec(note.end_pos_beat),
        )
    raise TypeError(f"unknown note type {type(note).__name__}")

def finalize(
    info: SongInfo,
    notes: Iterable[Note],
    bpm_changes: Iterable[BPMChange],
    beat_per_measure_changes: Iterable[BeatPerMeasureChange],
    beat_to_sec: StepFunction,
) -> SongTimeline:
    timed = [_note_with_seconds(n, beat_to_sec) for n in notes]
    # stable: equal start times keep scan order
    timed.sort(key=lambda n: n.start_sec)
    bpms = tuple(dataclasses.replace(c, pos_sec=beat_to_sec(c.pos_beat)) for c in bpm_changes)
    measures = tuple(
        dataclasses.replace(c, pos_sec=beat_to_sec(c.pos_beat)) for c in beat_per_measure_changes
    )
    return SongTimeline(info=info, notes=tuple(timed), bpm_changes=bpms, beat_per_measure_changes=measures)

# --- Pipeline ---

def build_timeline(analysis: ChartAnalysis, cfg: Optional[Dict[str, Any]] = None) -> SongTimeline:
    cfg = cfg or {}
    grammar = get_grammar(cfg)
    info = _song_info(analysis)

    measure_changes, measure_to_beat = resolve_beat_per_measure(analysis.time_signatures)
    bpm_changes, beat_to_sec = resolve_bpm_changes(analysis, measure_to_beat, grammar.empty_slot)

    assembler = NoteAssembler(
        measure_to_beat,
        unsupported=str(cfg.get("unsupported_notes", "ignore")),
        empty_slot=grammar.empty_slot,
    )
    notes = assembler.feed_all(analysis.note_lines).close()

    timeline = finalize(info, notes, bpm_changes, measure_changes, beat_to_sec)
    log.info(
        "timeline: notes=%d bpm_changes=%d time_signatures=%d",
        len(timeline.notes), len(timeline.bpm_changes), len(timeline.beat_per_measure_changes),
    )
    return timeline

def read_sus_lines(lines: Iterable[str], cfg: Optional[Dict[str, Any]] = None) -> SongTimeline:
    """Chart text (already split into lines) -> resolved timeline."""
    analysis = analyze_sus(lines, get_grammar(cfg))
    return build_timeline(analysis, cfg)

def read_sus(path: Union[str, Path], cfg: Optional[Dict[str, Any]] = None) -> SongTimeline:
    data = Path(path).read_bytes()
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        line_no = exc.object.count(b"\n", 0, exc.start) + 1
        raise MalformedLine("not valid UTF-8", line_no) from exc
    return read_sus_lines(text.splitlines(), cfg)
