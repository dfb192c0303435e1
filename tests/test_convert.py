from pathlib import Path

import pytest

from homescripts.media import convert
from homescripts.media.convert import (
    PRESETS, build_command, convert_paths, find_inputs, output_path_for, parse_progress_seconds,
)
from homescripts.utils.errors import ScriptError


def test_build_command():
    cmd = build_command(PRESETS["mp3"], Path("in.mkv"), Path("out.mp3"))
    assert cmd[:7] == ["ffmpeg", "-hide_banner", "-loglevel", "error", "-n", "-i", "in.mkv"]
    assert cmd[-1] == "out.mp3"
    assert "libmp3lame" in cmd

    cmd = build_command(PRESETS["hevc"], Path("in.mkv"), Path("out.mp4"), overwrite=True, progress=True)
    assert "-y" in cmd
    assert cmd[-4:] == ["-progress", "pipe:1", "-nostats", "out.mp4"]


def test_output_path_never_overwrites_input(tmp_path):
    src = tmp_path / "clip.mp4"
    assert output_path_for(src, PRESETS["mp4"]) == tmp_path / "clip_mp4.mp4"
    assert output_path_for(src, PRESETS["normalize"]) == tmp_path / "clip_normalize.mp4"
    assert output_path_for(tmp_path / "clip.mkv", PRESETS["mp4"]) == tmp_path / "clip.mp4"
    assert output_path_for(src, PRESETS["gif"], tmp_path / "out") == tmp_path / "out" / "clip.gif"


def test_find_inputs(tmp_path):
    for name in ("a.mkv", "b.MOV", "c.wav", ".hidden.mp4", "notes.txt"):
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "d.mp4").write_bytes(b"")

    assert [p.name for p in find_inputs(tmp_path, PRESETS["mp4"])] == ["a.mkv", "b.MOV"]
    assert [p.name for p in find_inputs(tmp_path, PRESETS["mp3"])] == ["a.mkv", "b.MOV", "c.wav"]
    assert "d.mp4" in [p.name for p in find_inputs(tmp_path, PRESETS["mp4"], recursive=True)]
    assert find_inputs(tmp_path / "notes.txt", PRESETS["mp4"]) == [tmp_path / "notes.txt"]


@pytest.mark.parametrize("line,expected", [
    ("out_time_us=1500000\n", 1.5),
    ("out_time_ms=2000000", 2.0),
    ("out_time_us=N/A", None),
    ("frame=42", None),
    ("progress=end", None),
])
def test_parse_progress_seconds(line, expected):
    assert parse_progress_seconds(line) == expected


def test_convert_paths_skips_existing_and_counts(tmp_path, monkeypatch):
    src_dir = tmp_path / "src"
    out_dir = tmp_path / "out"
    src_dir.mkdir()
    out_dir.mkdir()
    for name in ("a.mkv", "b.mkv", "c.mkv"):
        (src_dir / name).write_bytes(b"")
    (out_dir / "a.mp4").write_bytes(b"done")
    converted = []

    def fake_convert(preset, src, dest, overwrite=False):
        converted.append(src.name)
        return src.name != "c.mkv"

    monkeypatch.setattr(convert, "convert_file", fake_convert)
    assert convert_paths(PRESETS["mp4"], [src_dir], output_dir=out_dir) == (1, 1, 1)
    assert converted == ["b.mkv", "c.mkv"]


def test_convert_paths_dry_run(tmp_path, monkeypatch, capsys):
    (tmp_path / "a.mkv").write_bytes(b"")
    monkeypatch.setattr(convert, "convert_file", lambda *a, **k: pytest.fail("converted"))
    assert convert_paths(PRESETS["gif"], [tmp_path], dry_run=True) == (0, 0, 0)
    assert "ffmpeg -hide_banner" in capsys.readouterr().out


def test_convert_paths_missing_input(tmp_path):
    with pytest.raises(ScriptError, match="Input not found"):
        convert_paths(PRESETS["mp4"], [tmp_path / "missing.mkv"])


def test_main_dry_run_needs_no_ffmpeg(tmp_path, monkeypatch, no_logging_setup):
    (tmp_path / "a.mkv").write_bytes(b"")
    monkeypatch.setattr(convert, "need", lambda tool: pytest.fail("checked for " + tool))
    assert convert.main(["mp4", str(tmp_path), "--dry-run"]) == 0
