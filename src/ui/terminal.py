"""curses front end: decodes keys into names and draws controller frames."""
import curses
import logging
from typing import List, Optional, Union

from events import key_event, resize_event
from ui.modal import Modal

logger = logging.getLogger(__name__)

# get_wch() timeout, also the period at which background results are drained
_TICK_MS = 50

_SPECIAL_KEYS = {
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_HOME: "home",
    curses.KEY_END: "end",
    curses.KEY_PPAGE: "pageup",
    curses.KEY_NPAGE: "pagedown",
    curses.KEY_DC: "delete",
    curses.KEY_BACKSPACE: "backspace",
    curses.KEY_ENTER: "enter",
    curses.KEY_BTAB: "shift+tab",
}

# terminfo names of modified arrows/enter (xterm style)
_NAMED_KEYS = {
    "kLFT3": "alt+left",
    "kRIT3": "alt+right",
    "kUP3": "alt+up",
    "kDN3": "alt+down",
    "kLFT5": "ctrl+left",
    "kRIT5": "ctrl+right",
}

_CHAR_KEYS = {
    "\n": "enter",
    "\r": "enter",
    "\t": "tab",
    "\x1b": "esc",
    "\x7f": "backspace",
    "\x08": "backspace",
    " ": " ",
    "\x00": "ctrl+space",
}


def key_name(ch: Union[int, str], alt: bool = False) -> Optional[str]:
    """Translate a curses get_wch() value into a key name like "ctrl+w" or "f5"."""
    name: Optional[str] = None
    if isinstance(ch, int):
        if ch in _SPECIAL_KEYS:
            name = _SPECIAL_KEYS[ch]
        elif curses.KEY_F1 <= ch <= curses.KEY_F1 + 11:
            name = f"f{ch - curses.KEY_F1 + 1}"
        else:
            try:
                raw = curses.keyname(ch).decode("ascii", "replace")
            except (ValueError, curses.error):
                raw = ""
            name = _NAMED_KEYS.get(raw)
    elif ch in _CHAR_KEYS:
        name = _CHAR_KEYS[ch]
    elif len(ch) == 1 and ord(ch) < 32:
        name = "ctrl+" + chr(ord(ch) + 96)
    elif ch:
        name = ch
    if name is None:
        return None
    return f"alt+{name}" if alt else name


class TerminalUI:
    def __init__(self, stdscr):
        self.stdscr = stdscr
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        # raw mode so ctrl+c, ctrl+s and ctrl+q reach the application
        curses.raw()
        stdscr.keypad(True)
        stdscr.timeout(_TICK_MS)

    def size(self):
        height, width = self.stdscr.getmaxyx()
        return width, height

    def read_key(self) -> Optional[str]:
        """Wait one tick for a key; returns its name, "resize", or None."""
        try:
            ch = self.stdscr.get_wch()
        except curses.error:
            return None
        if ch == curses.KEY_RESIZE:
            return "resize"
        alt = False
        if ch == "\x1b":
            self.stdscr.nodelay(True)
            try:
                ch = self.stdscr.get_wch()
                alt = True
            except curses.error:
                pass
            finally:
                self.stdscr.timeout(_TICK_MS)
        return key_name(ch, alt)

    def draw(self, lines: List[str]) -> None:
        width, height = self.size()
        self.stdscr.erase()
        for y, line in enumerate(lines[:height]):
            try:
                # the bottom-right cell cannot be written without an error
                self.stdscr.addnstr(y, 0, line, max(0, width - 1))
            except curses.error:
                pass
        self.stdscr.refresh()

    def prompt(self, modal: Modal) -> Modal:
        """Run a modal alone on screen until it closes."""
        while modal.is_open:
            width, height = self.size()
            self.draw(modal.render(width, height))
            key = self.read_key()
            if key and key != "resize":
                modal.handle_key(key)
        return modal

    def run(self, controller) -> None:
        width, height = self.size()
        controller.handle_event(resize_event(width, height))
        while not controller.quit_requested:
            for event in controller.dispatcher.drain():
                controller.handle_event(event)
            self.draw(controller.render(*self.size()))
            key = self.read_key()
            if key == "resize":
                controller.handle_event(resize_event(*self.size()))
            elif key:
                controller.handle_event(key_event(key))
        logger.debug("Terminal loop finished")
