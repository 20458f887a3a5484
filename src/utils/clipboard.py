import logging
import platform
import shutil
import subprocess
from typing import List, Optional

logger = logging.getLogger(__name__)

_CLIPBOARD_TIMEOUT = 3


class ClipboardError(RuntimeError):
    pass


def _clipboard_command() -> Optional[List[str]]:
    system = platform.system()
    if system == "Darwin":
        return ["pbpaste"]
    if system == "Windows":
        return ["powershell", "-NoProfile", "-Command", "Get-Clipboard"]
    for cmd in (["wl-paste", "--no-newline"], ["xclip", "-selection", "clipboard", "-o"], ["xsel", "--clipboard", "--output"]):
        if shutil.which(cmd[0]):
            return cmd
    return None


def read_clipboard() -> str:
    """Return the system clipboard text using the platform's paste command.

    Blocking; callers run it as a background job. Raises ClipboardError when no
    clipboard tool is available or the command fails.
    """
    cmd = _clipboard_command()
    if cmd is None:
        raise ClipboardError("No clipboard tool found (install wl-clipboard, xclip or xsel)")
    try:
        proc = subprocess.run(cmd, capture_output=True, timeout=_CLIPBOARD_TIMEOUT, check=True)
    except FileNotFoundError as e:
        raise ClipboardError(f"Clipboard tool not found: {cmd[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise ClipboardError("Clipboard read timed out") from e
    except subprocess.CalledProcessError as e:
        raise ClipboardError(f"Clipboard read failed: {e.stderr.decode('utf-8', 'replace').strip()}") from e
    text = proc.stdout.decode("utf-8", errors="replace")
    logger.debug("Read %d characters from clipboard via %s", len(text), cmd[0])
    return text
