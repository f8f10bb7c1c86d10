"""Single-key terminal input read on a background thread."""

import sys
import threading
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)

KeyCallback = Callable[[str], bool]


class KeyboardInputHandler:
    """Reads raw keypresses and hands each one to a callback.

    The callback runs on the reader thread; it returns False to stop reading.
    """

    def __init__(self, callback: KeyCallback, poll_interval: float = 0.1):
        """Initialize keyboard handler.

        Args:
            callback: Receives each lower-cased key; return False to stop
            poll_interval: Seconds to wait for input before re-checking for stop
        """
        self.callback = callback
        self.poll_interval = poll_interval
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True, name="KeyboardInputThread")
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        logger.info("Keyboard input handler stopped")

    def _input_loop(self) -> None:
        while self.running:
            try:
                key = self._get_key()
            except (OSError, ValueError) as e:
                logger.error(f"Keyboard input error: {e}")
                break
            if key is None:
                continue
            logger.debug(f"Key detected: {key!r}")
            if not self.callback(key):
                logger.info("Callback returned False, ending input loop")
                break
        self.running = False

    def _get_key(self) -> Optional[str]:
        if sys.platform == "win32":
            return self._get_key_windows()
        return self._get_key_unix()

    def _get_key_windows(self) -> Optional[str]:
        import msvcrt
        import time

        if msvcrt.kbhit():
            return msvcrt.getwch().lower()
        time.sleep(self.poll_interval)
        return None

    def _get_key_unix(self) -> Optional[str]:
        import select
        import termios
        import tty

        if not select.select([sys.stdin], [], [], self.poll_interval)[0]:
            return None
        old_settings = termios.tcgetattr(sys.stdin)
        try:
            tty.setraw(sys.stdin.fileno())
            key = sys.stdin.read(1)
        finally:
            termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)
        return key.lower() if key else None


class LineInputHandler:
    """Line-based fallback when stdin is not a terminal: the first character of each line is the key."""

    def __init__(self, callback: KeyCallback):
        self.callback = callback
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True, name="LineInputThread")
        self.thread.start()
        logger.info("Line input handler started")

    def stop(self) -> None:
        self.running = False
        logger.info("Line input handler stopped")

    def _input_loop(self) -> None:
        for line in sys.stdin:
            if not self.running:
                break
            # An empty line acts as the space key
            key = line.rstrip("\n").lower()[:1] or " "
            if not self.callback(key):
                break
        self.running = False


def create_input_handler(callback: KeyCallback):
    """Raw keyboard input on a terminal, line input otherwise."""
    if sys.stdin.isatty():
        return KeyboardInputHandler(callback)
    logger.warning("stdin is not a terminal, falling back to line input")
    return LineInputHandler(callback)
