from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List
from .analyze import iter_events
from .errors import MalformedLine, UnpairedSlideFragment, UnsupportedNoteFamily
from .timeline import (
    TimedData, Note, TapNote, SlideNote,
    FAMILY_TAP, FAMILY_SLIDE, UNSUPPORTED_FAMILIES, SLIDE_START, SLIDE_END, DEFAULT_EMPTY_SLOT,
)
from .util.radix import b36

log = logging.getLogger(__name__)

UNSUPPORTED_POLICIES = ("ignore", "error")

@dataclass
class PendingSlide:
    start_left_lane: int
    start_width: int
    start_pos_beat: float
    line_no: int
    line: str

    def finish(self, end_left_lane: int, end_width: int, end_pos_beat: float) -> SlideNote:
        return SlideNote(
            start_left_lane=self.start_left_lane,
            start_width=self.start_width,
            start_pos_beat=self.start_pos_beat,
            end_left_lane=end_left_lane,
            end_width=end_width,
            end_pos_beat=end_pos_beat,
        )

class SlideChannels:
    """
    Half-built slides keyed by channel id.

    `carried` holds slides opened on an earlier line; `local` holds slides opened
    on the current line. A start on the current line shadows a carried slide on
    the same channel until the line ends, so one line can close an old slide and
    open a new one on the same channel.
    """

    def __init__(self):
        self.carried: Dict[int, PendingSlide] = {}
        self.local: Dict[int, PendingSlide] = {}

    def begin_line(self):
        self.local = {}

    def open(self, channel: int, pending: PendingSlide):
        if channel in self.local:
            raise UnpairedSlideFragment(
                f"channel {channel} reopened before its slide was closed", pending.line_no, pending.line)
        self.local[channel] = pending

    def close(self, channel: int, line_no: int = 0, line: str = "") -> PendingSlide:
        if channel in self.local:
            return self.local.pop(channel)
        if channel in self.carried:
            return self.carried.pop(channel)
        raise UnpairedSlideFragment(f"slide end on channel {channel} without a start", line_no, line)

    def end_line(self):
        for channel, pending in self.local.items():
            if channel in self.carried:
                raise UnpairedSlideFragment(
                    f"channel {channel} reopened before its slide was closed", pending.line_no, pending.line)
            self.carried[channel] = pending
        self.local = {}

    def pending(self) -> List[PendingSlide]:
        return list(self.carried.values()) + list(self.local.values())

class NoteAssembler:
    """Turns tap and slide lines (in scan order) into beat-positioned notes."""

    def __init__(self, measure_to_beat: Callable[[float], float],
                 unsupported: str = "ignore", empty_slot: str = DEFAULT_EMPTY_SLOT):
        if unsupported not in UNSUPPORTED_POLICIES:
            raise ValueError(f"unsupported_notes must be one of {UNSUPPORTED_POLICIES}, got {unsupported!r}")
        self.measure_to_beat = measure_to_beat
        self.unsupported = unsupported
        self.empty_slot = empty_slot
        self.channels = SlideChannels()
        self.notes: List[Note] = []

    def feed(self, td: TimedData):
        if td.family == FAMILY_TAP:
            self._tap(td)
        elif td.family == FAMILY_SLIDE:
            self._slide(td)
        elif td.family in UNSUPPORTED_FAMILIES:
            kind = UNSUPPORTED_FAMILIES[td.family]
            if self.unsupported == "error":
                raise UnsupportedNoteFamily(f"{kind} notes are not supported", td.line_no, td.line)
            log.debug("line %d: %s notes ignored", td.line_no, kind)
        else:
            log.debug("line %d: column %s carries no notes", td.line_no, td.column)

    def feed_all(self, lines) -> "NoteAssembler":
        for td in lines:
            self.feed(td)
        return self

    def close(self) -> List[Note]:
        """Scan finished: every opened slide must have been closed."""
        left = self.channels.pending()
        if left:
            first = min(left, key=lambda p: p.line_no)
            raise UnpairedSlideFragment(
                f"{len(left)} slide(s) never closed", first.line_no, first.line)
        return list(self.notes)

    def _tap(self, td: TimedData):
        lane = b36(td.column[1], td.line_no, td.line)
        for pos, code in iter_events(td, self.empty_slot):
            self.notes.append(TapNote(
                left_lane=lane,
                width=b36(code[1], td.line_no, td.line),
                pos_beat=self.measure_to_beat(pos),
            ))

    def _slide(self, td: TimedData):
        if not td.channel_char:
            raise MalformedLine("slide line without a channel character", td.line_no, td.line)
        lane = b36(td.column[1], td.line_no, td.line)
        channel = b36(td.channel_char, td.line_no, td.line)

        self.channels.begin_line()
        for pos, code in iter_events(td, self.empty_slot):
            kind = code[0]
            width = b36(code[1], td.line_no, td.line)
            beat = self.measure_to_beat(pos)

            if kind == SLIDE_START:
                self.channels.open(channel, PendingSlide(lane, width, beat, td.line_no, td.line))
            elif kind == SLIDE_END:
                pending = self.channels.close(channel, td.line_no, td.line)
                if beat < pending.start_pos_beat:
                    raise UnpairedSlideFragment(
                        f"slide on channel {channel} ends at beat {beat} before its start "
                        f"at beat {pending.start_pos_beat} (line {pending.line_no})",
                        td.line_no, td.line)
                self.notes.append(pending.finish(lane, width, beat))
            else:
                # relay / control points of longer slides
                log.debug("line %d: slide point kind %s ignored", td.line_no, kind)
        self.channels.end_line()
