from __future__ import annotations
import dataclasses
import json
import logging
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple, Union
import mido
from .timeline import SongTimeline, TapNote, BPMChange, BeatPerMeasureChange, Note
from .util.time import beat_to_ticks

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

# ---------- internal helpers ----------

def _bpm_to_micro(bpm: float) -> int:
    return int(round(60_000_000 / max(1e-6, float(bpm))))

def _time_signature(beats_per_measure: float) -> Tuple[int, int]:
    """
    Quarter-note beats per measure -> (numerator, power-of-two denominator).
    4 -> 4/4, 3.5 -> 7/8, 0.75 -> 3/16.
    """
    b = Fraction(beats_per_measure).limit_denominator(1 << 10)
    for den in (4, 8, 16, 32, 64):
        num = b * den / 4
        if num.denominator == 1 and 1 <= num <= 255:
            return int(num), den
    num = max(1, min(255, int(round(float(b) * 2))))
    log.warning("beats per measure %s has no exact MIDI time signature; using %d/8", beats_per_measure, num)
    return num, 8

def _emit_conductor(track: mido.MidiTrack, bpm_changes: Iterable[BPMChange],
                    measure_changes: Iterable[BeatPerMeasureChange], tpb: int):
    """Tempo and time-signature meta events, sorted, as delta times."""
    events = []
    for c in bpm_changes:
        events.append((beat_to_ticks(c.pos_beat, tpb), 1, ("tempo", c.bpm)))
    for c in measure_changes:
        events.append((beat_to_ticks(c.pos_beat, tpb), 0, ("timesig", _time_signature(c.beats_per_measure))))
    # time signature before tempo on the same tick
    events.sort(key=lambda x: (x[0], x[1]))
    last = 0
    for tick, _, (kind, value) in events:
        delta = max(0, tick - last)
        last = max(last, tick)
        if kind == "tempo":
            track.append(mido.MetaMessage("set_tempo", tempo=_bpm_to_micro(value), time=delta))
        else:
            num, den = value
            track.append(mido.MetaMessage("time_signature", numerator=num, denominator=den, time=delta))

def _note_span(note: Note, tpb: int, tap_len: int) -> Tuple[int, int, int]:
    if isinstance(note, TapNote):
        start = beat_to_ticks(note.pos_beat, tpb)
        return start, start + tap_len, note.left_lane
    start = beat_to_ticks(note.start_pos_beat, tpb)
    end = max(start + 1, beat_to_ticks(note.end_pos_beat, tpb))
    return start, end, note.start_left_lane

def _clip_overlaps(spans: Iterable[Tuple[int, int, int]]) -> List[Tuple[int, int, int]]:
    """One sounding note per pitch: an earlier note ends where the next one on its pitch starts."""
    by_pitch: Dict[int, List[Tuple[int, int]]] = {}
    for start, end, pitch in spans:
        by_pitch.setdefault(pitch, []).append((start, end))

    out = []
    for pitch, items in by_pitch.items():
        kept: List[List[int]] = []
        for start, end in sorted(items):
            if kept and kept[-1][0] == start:
                kept[-1][1] = max(kept[-1][1], end)
                continue
            if kept and kept[-1][1] > start:
                log.debug("pitch %d: note at tick %d cut short by tick %d", pitch, kept[-1][0], start)
                kept[-1][1] = start
            kept.append([start, end])
        out.extend((s, e, pitch) for s, e in kept)
    return out

def _emit_note_events(mt: mido.MidiTrack, notes: Iterable[Note], tpb: int,
                      base_note: int, velocity: int, tap_len: int):
    """Taps as short notes, slides as notes held from start to end; lane -> pitch."""
    spans = []
    for n in notes:
        start, end, lane = _note_span(n, tpb, tap_len)
        spans.append((start, end, max(0, min(127, base_note + lane))))

    evs = []
    for start, end, pitch in _clip_overlaps(spans):
        evs.append((start, 1, "on", pitch))
        evs.append((end, 0, "off", pitch))  # off first on the same tick
    evs.sort(key=lambda x: (x[0], x[1]))

    last = 0
    for tick, _, kind, pitch in evs:
        delta = tick - last
        last = tick
        if kind == "on":
            mt.append(mido.Message("note_on", note=pitch, velocity=velocity, time=delta))
        else:
            mt.append(mido.Message("note_off", note=pitch, velocity=0, time=delta))

# ---------- public writer APIs ----------

def note_to_dict(note: Note) -> Dict[str, Any]:
    kind = "tap" if isinstance(note, TapNote) else "slide"
    return {"type": kind, **dataclasses.asdict(note)}

def timeline_to_dict(timeline: SongTimeline) -> Dict[str, Any]:
    return {
        "info": dataclasses.asdict(timeline.info),
        "notes": [note_to_dict(n) for n in timeline.notes],
        "bpm_changes": [dataclasses.asdict(c) for c in timeline.bpm_changes],
        "beat_per_measure_changes": [
            {**dataclasses.asdict(c), "pos_measure": float(c.pos_measure)}
            for c in timeline.beat_per_measure_changes
        ],
    }

def write_json(timeline: SongTimeline, out_path: PathLike, indent: int = 2):
    text = json.dumps(timeline_to_dict(timeline), indent=indent, ensure_ascii=False)
    Path(out_path).write_text(text + "\n", encoding="utf-8")

def build_midi(
    timeline: SongTimeline,
    ticks_per_beat: int = 480,
    lane_base_note: int = 48,
    velocity: int = 100,
    tap_length_beats: float = 0.25,
    include_notes: bool = True,
) -> mido.MidiFile:
    mid = mido.MidiFile(ticks_per_beat=ticks_per_beat)

    t_con = mido.MidiTrack()
    t_con.append(mido.MetaMessage("track_name", name=timeline.info.title or "Conductor", time=0))
    _emit_conductor(t_con, timeline.bpm_changes, timeline.beat_per_measure_changes, ticks_per_beat)
    mid.tracks.append(t_con)

    if include_notes:
        mt = mido.MidiTrack()
        mt.append(mido.MetaMessage("track_name", name="Notes", time=0))
        tap_len = max(1, beat_to_ticks(tap_length_beats, ticks_per_beat))
        _emit_note_events(mt, timeline.notes, ticks_per_beat, lane_base_note, velocity, tap_len)
        mid.tracks.append(mt)
    return mid

def write_midi(timeline: SongTimeline, out_path: PathLike, **kwargs):
    """Conductor track (tempo/time signatures) plus one track with every note."""
    build_midi(timeline, **kwargs).save(str(out_path))

def write_conductor_only(timeline: SongTimeline, out_path: PathLike, ticks_per_beat: int = 480):
    build_midi(timeline, ticks_per_beat=ticks_per_beat, include_notes=False).save(str(out_path))

def export_options(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """write_midi keyword arguments from the 'export' config section."""
    ex = (cfg or {}).get("export") or {}
    opts: Dict[str, Any] = {}
    for key, cast in (("ticks_per_beat", int), ("lane_base_note", int),
                      ("velocity", int), ("tap_length_beats", float)):
        if key in ex:
            opts[key] = cast(ex[key])
    return opts
