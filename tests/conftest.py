import textwrap

import pytest

# 4/4 at 120 bpm from measure 0; beat 4 lands at 1.0 s with the 1 s offset
BASIC_HEADER = """
    This line is a comment and is ignored
    #TITLE "Test Song"
    #ARTIST "Someone"
    #DESIGNER "Charter"
    #WAVEOFFSET 1.0
    #REQUEST "ticks_per_beat 480"
    #BPM01: 120
    #00002: 4
    #00008: 01
"""


def _split(text: str) -> list:
    return textwrap.dedent(text).strip("\n").splitlines()


@pytest.fixture
def chart():
    """chart(body) -> list of lines; the body is appended to the basic header."""

    def _make(body: str = "", header: str = BASIC_HEADER) -> list:
        return _split(header) + _split(body)

    return _make


@pytest.fixture
def write_chart(tmp_path, chart):
    def _write(body: str = "", name: str = "song.sus") -> str:
        path = tmp_path / name
        path.write_text("\n".join(chart(body)) + "\n", encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def empty_config(tmp_path):
    """A user config file that overrides nothing, so tests never read ~/.config."""
    path = tmp_path / "config.yaml"
    path.write_text("{}\n", encoding="utf-8")
    return str(path)
