import argparse
import curses
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from db.drivers import default_registry
from ui.password_prompt import PasswordPromptModal
from ui.terminal import TerminalUI
from utils.config_store import ConfigStore, PersistenceError
from utils.settings import LOG_DIR, STORE_PATH, load_app_settings
from utils.worker import JobDispatcher
from workspace import WorkspaceController

_LOG_FORMAT = '%(asctime)s %(levelname)-8s %(name)-20s: %(message)s'


def _configure_logging(level: str = "INFO", log_file: str | None = None) -> Path:
    """Send log records to a rotating file.

    curses owns the terminal while the UI runs, so no console handler is
    installed; the log lives under the config dir unless --log overrides it.
    """
    path = Path(log_file) if log_file else LOG_DIR / 'catdbterm.log'
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(path), maxBytes=5 * 1024 * 1024, backupCount=3, encoding='utf-8')
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logging.basicConfig(level=getattr(logging, level, logging.INFO), handlers=[handler], force=True)
    return path


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="catdbterm", description="Terminal SQL workspace")
    parser.add_argument("--debug", action="store_true", help="log at DEBUG level")
    parser.add_argument("--log", metavar="PATH", help="write the log to PATH")
    return parser.parse_args(argv)


def _unlock_store(ui: TerminalUI) -> ConfigStore | None:
    """Ask for the master password and load the store. None when the user quits."""
    first_run = not STORE_PATH.exists()
    modal = ui.prompt(PasswordPromptModal(setup=first_run))
    if not modal.is_submitted:
        return None
    store = ConfigStore(modal.payload)
    store.load()
    if first_run:
        store.save()
    return store


def _session(stdscr, settings: dict) -> int:
    logger = logging.getLogger(__name__)
    ui = TerminalUI(stdscr)
    store = _unlock_store(ui)
    if store is None:
        logger.info("Startup cancelled at password prompt")
        return 0

    dispatcher = JobDispatcher()
    controller = WorkspaceController(store, default_registry(), dispatcher, settings=settings)
    try:
        ui.run(controller)
    finally:
        controller.shutdown()
    return 0


def main(argv=None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    settings = load_app_settings()
    level = "DEBUG" if args.debug else settings["log_level"]
    log_path = _configure_logging(level, args.log)
    logger = logging.getLogger(__name__)
    logger.info("Starting catdbterm (log: %s)", log_path)

    try:
        return curses.wrapper(_session, settings)
    except PersistenceError as e:
        logger.error("Cannot load configuration: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
