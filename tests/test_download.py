from pathlib import Path

import pytest

from homescripts.media import download
from homescripts.media.download import (
    DownloadConfig, build_command, downloaded_path, load_config, read_batch_file,
)
from homescripts.utils.errors import ScriptError


def test_build_command_video():
    cmd = build_command(DownloadConfig(), ["https://example.com/v/1"], Path("/media"))
    assert cmd[0] == "yt-dlp"
    assert cmd[cmd.index("-f") + 1] == "bv*+ba/b"
    assert cmd[cmd.index("--print") + 1] == "after_move:FILE:%(filepath)s"
    assert cmd[-2:] == ["--", "https://example.com/v/1"]
    assert "--download-archive" not in cmd


def test_build_command_audio_with_archive():
    config = DownloadConfig(archive_file="/tmp/archive.txt", audio_format="m4a")
    cmd = build_command(config, ["u1", "u2"], Path("/media"), audio_only=True)
    assert cmd[cmd.index("-x") + 1:cmd.index("-x") + 3] == ["--audio-format", "m4a"]
    assert "-f" not in cmd
    assert cmd[cmd.index("--download-archive") + 1] == "/tmp/archive.txt"
    assert cmd[-3:] == ["--", "u1", "u2"]


def test_downloaded_path():
    assert downloaded_path("FILE:/media/a.mp4\n") == Path("/media/a.mp4")
    assert downloaded_path("[info] something") is None


def test_read_batch_file(tmp_path):
    batch = tmp_path / "urls.txt"
    batch.write_text("# music\nhttps://a\n\n  https://b  \nhttps://a\n")
    assert read_batch_file(batch) == ["https://a", "https://b"]


def test_load_config_optional(tmp_path):
    assert load_config(None) == DownloadConfig()
    with pytest.raises(ScriptError, match="not found"):
        load_config(str(tmp_path / "missing.json"))


def test_main_converts_downloads(tmp_path, monkeypatch, no_logging_setup):
    out_dir = tmp_path / "media"
    seen = {}

    def fake_stream(cmd, cwd=None, prefix="", on_line=None):
        seen["cmd"] = cmd
        for line in ("[download] Destination: clip.webm", f"FILE:{out_dir / 'clip.webm'}",
                     f"FILE:{out_dir / 'clip.webm'}"):
            on_line(line)
        return 0

    def fake_convert(preset, paths, output_dir=None, **kwargs):
        seen["converted"] = (preset.name, paths, output_dir)
        return 1, 0, 0

    monkeypatch.setattr(download, "need", lambda tool: tool)
    monkeypatch.setattr(download, "stream", fake_stream)
    monkeypatch.setattr(download, "convert_paths", fake_convert)

    assert download.main(["https://a", "https://a", "-o", str(out_dir), "--convert", "mp3"]) == 0
    assert seen["cmd"][-2:] == ["--", "https://a"]
    assert seen["converted"] == ("mp3", [out_dir / "clip.webm"], out_dir.resolve())


def test_main_requires_urls(no_logging_setup):
    with pytest.raises(ScriptError, match="No URLs"):
        download.main([])
