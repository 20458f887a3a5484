import sys
from pathlib import Path
import curses

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ui.terminal import key_name


def test_printable_and_control_characters():
    assert key_name("a") == "a"
    assert key_name("\x17") == "ctrl+w"
    assert key_name("\x03") == "ctrl+c"
    assert key_name("\n") == "enter"
    assert key_name("\t") == "tab"
    assert key_name("\x1b") == "esc"
    assert key_name("\x7f") == "backspace"


def test_alt_prefix():
    assert key_name("\n", alt=True) == "alt+enter"
    assert key_name("\x7f", alt=True) == "alt+backspace"


def test_special_keys():
    assert key_name(curses.KEY_UP) == "up"
    assert key_name(curses.KEY_NPAGE) == "pagedown"
    assert key_name(curses.KEY_BTAB) == "shift+tab"
    assert key_name(curses.KEY_F1 + 4) == "f5"
    assert key_name(curses.KEY_F1 + 8) == "f9"
