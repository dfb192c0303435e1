import io
import os

import pytest

from homescripts.utils import menu
from homescripts.utils.menu import (
    KEY_UP, KEY_DOWN, KEY_ENTER, next_index, read_escape_sequence, render_menu, select_option,
)


def keys(*presses):
    it = iter(presses)
    return lambda: next(it)


def test_next_index_wraps():
    assert next_index(0, KEY_UP, 3) == 2
    assert next_index(2, KEY_DOWN, 3) == 0
    assert next_index(1, None, 3) == 1


def test_render_menu_highlights_selection():
    text = render_menu("Select Action", ["Backup", "Restore"], 1)
    lines = text.splitlines()
    assert lines[0] == "=== Select Action ==="
    assert lines[1] == "   Backup"
    assert lines[2] == "\033[32m > Restore\033[0m"


def test_select_option_enter_picks_first():
    out = io.StringIO()
    assert select_option("Menu", ["Backup", "Restore"], key_reader=keys(KEY_ENTER), out=out) == 0
    assert out.getvalue().endswith(menu.SHOW_CURSOR)


def test_select_option_navigation():
    out = io.StringIO()
    reader = keys(KEY_DOWN, KEY_DOWN, KEY_DOWN, KEY_ENTER)
    assert select_option("Menu", ["a", "b", "c"], key_reader=reader, out=out) == 0

    reader = keys(KEY_UP, None, KEY_ENTER)
    assert select_option("Menu", ["a", "b", "c"], key_reader=reader, out=out) == 2


def test_select_option_restores_cursor_on_interrupt():
    out = io.StringIO()

    def interrupt():
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        select_option("Menu", ["a"], key_reader=interrupt, out=out)
    assert out.getvalue().endswith(menu.SHOW_CURSOR)


def test_select_option_needs_options():
    with pytest.raises(ValueError):
        select_option("Menu", [], key_reader=keys(KEY_ENTER))


def test_select_option_without_tty_uses_numbered_prompt(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO())
    monkeypatch.setattr("builtins.input", lambda *a: "2")
    assert select_option("Menu", ["Backup", "Restore"]) == 1


@pytest.fixture
def pipe():
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    os.close(read_fd)
    os.close(write_fd)


@pytest.mark.skipif(os.name == "nt", reason="select() needs sockets on Windows")
def test_escape_sequence_arrow_keys(pipe):
    read_fd, write_fd = pipe
    os.write(write_fd, b"[A")
    assert read_escape_sequence(read_fd) == KEY_UP
    os.write(write_fd, b"OB")
    assert read_escape_sequence(read_fd) == KEY_DOWN


@pytest.mark.skipif(os.name == "nt", reason="select() needs sockets on Windows")
def test_lone_escape_does_not_block(pipe):
    read_fd, _ = pipe
    assert read_escape_sequence(read_fd, timeout=0.01) is None
