import pytest

from sus2timeline.assemble import NoteAssembler, SlideChannels, PendingSlide
from sus2timeline.errors import MalformedLine, UnpairedSlideFragment, UnsupportedNoteFamily
from sus2timeline.timeline import SlideNote, TapNote, TimedData


def four_four(measure) -> float:
    return float(measure) * 4


def slide(measure: int, lane: str, channel: str, payload: str, line_no: int = 0) -> TimedData:
    return TimedData(measure, "3" + lane, payload, channel, line_no)


def assemble(*lines, **kwargs):
    return NoteAssembler(four_four, **kwargs).feed_all(lines).close()


def test_taps_are_resolved_immediately() -> None:
    notes = assemble(TimedData(1, "14", "0203"), TimedData(2, "1b", "001a"))
    assert all(isinstance(n, TapNote) for n in notes)
    assert [(n.left_lane, n.width, n.pos_beat) for n in notes] == [
        (4, 2, 4.0),
        (4, 3, 6.0),
        (11, 10, 10.0),
    ]


def test_slide_across_lines_on_one_channel() -> None:
    notes = assemble(slide(1, "2", "3", "1200"), slide(2, "4", "3", "0023"))
    assert len(notes) == 1 and isinstance(notes[0], SlideNote)
    n = notes[0]
    assert (n.start_left_lane, n.start_width, n.start_pos_beat) == (2, 2, 4.0)
    assert (n.end_left_lane, n.end_width, n.end_pos_beat) == (4, 3, 10.0)
    assert notes[0].start_pos_beat < notes[0].end_pos_beat


def test_slide_inside_one_line() -> None:
    notes = assemble(slide(1, "2", "3", "12002200"))
    assert [(n.start_pos_beat, n.end_pos_beat) for n in notes] == [(4.0, 6.0)]


def test_line_closes_carried_slide_and_opens_a_new_one_on_same_channel() -> None:
    notes = assemble(
        slide(1, "2", "3", "0012"),
        slide(2, "5", "3", "2213"),
        slide(3, "1", "3", "2100"),
    )
    assert [(n.start_left_lane, n.start_pos_beat, n.end_left_lane, n.end_pos_beat) for n in notes] == [
        (2, 6.0, 5, 8.0),
        (5, 10.0, 1, 12.0),
    ]


def test_local_start_shadows_carried_slide_within_the_line() -> None:
    channels = SlideChannels()
    old = PendingSlide(0, 1, 0.0, 1, "")
    new = PendingSlide(2, 1, 4.0, 2, "")
    channels.begin_line()
    channels.open(7, old)
    channels.end_line()

    channels.begin_line()
    channels.open(7, new)
    assert channels.close(7) is new
    channels.end_line()
    assert channels.carried == {7: old}


def test_channels_are_independent() -> None:
    notes = assemble(
        slide(1, "0", "1", "1200"),
        slide(1, "6", "2", "0012"),
        slide(2, "6", "2", "2200"),
        slide(3, "0", "1", "2200"),
    )
    assert [(n.start_left_lane, n.end_pos_beat) for n in notes] == [(6, 8.0), (0, 12.0)]


def test_relay_points_are_skipped() -> None:
    notes = assemble(slide(1, "2", "3", "12325222"))
    assert len(notes) == 1
    assert notes[0].end_pos_beat == 7.0


def test_end_without_start_is_unpaired() -> None:
    with pytest.raises(UnpairedSlideFragment) as exc:
        assemble(slide(4, "2", "3", "0022", line_no=12))
    assert exc.value.line_no == 12


def test_second_start_in_one_line_is_unpaired() -> None:
    with pytest.raises(UnpairedSlideFragment):
        assemble(slide(1, "2", "3", "1212"))


def test_start_over_an_open_carried_slide_is_unpaired() -> None:
    with pytest.raises(UnpairedSlideFragment):
        assemble(slide(1, "2", "3", "1200"), slide(2, "2", "3", "0012"))


def test_slide_left_open_at_end_of_scan() -> None:
    with pytest.raises(UnpairedSlideFragment) as exc:
        assemble(slide(1, "2", "3", "1200", line_no=5))
    assert exc.value.line_no == 5


def test_slide_ending_before_its_start_is_rejected() -> None:
    with pytest.raises(UnpairedSlideFragment):
        assemble(slide(3, "2", "3", "1200"), slide(1, "2", "3", "2200"))


def test_slide_line_needs_a_channel() -> None:
    with pytest.raises(MalformedLine):
        assemble(slide(1, "2", "", "1200"))


@pytest.mark.parametrize("column", ["21", "41", "51"])
def test_unsupported_families_ignored_by_default(column: str) -> None:
    assert assemble(TimedData(1, column, "1100")) == []


@pytest.mark.parametrize("column", ["21", "41", "51"])
def test_unsupported_families_can_be_fatal(column: str) -> None:
    with pytest.raises(UnsupportedNoteFamily):
        assemble(TimedData(1, column, "1100"), unsupported="error")


def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ValueError):
        NoteAssembler(four_four, unsupported="maybe")
