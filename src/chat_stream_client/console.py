import sys
import threading

from chat_stream_client.client import SessionSnapshot
from chat_stream_client.media_intent import MediaIntent

_SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


class Spinner:
    """Thread-based spinner that renders on the current line using \\r."""

    def __init__(self, prefix: str = "", label: str = " Thinking..."):
        self._prefix = prefix
        self._label = label
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._frame_width = 1 + len(label)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread:
            self._thread.join()
        # Clear spinner text: overwrite with spaces, then return to column 0
        clear = self._prefix + " " * self._frame_width
        sys.stdout.write("\r" + clear + "\r")
        sys.stdout.flush()

    def _run(self) -> None:
        i = 0
        try:
            while not self._stop.is_set():
                frame = _SPINNER_FRAMES[i % len(_SPINNER_FRAMES)] + self._label
                sys.stdout.write("\r" + self._prefix + frame)
                sys.stdout.flush()
                self._stop.wait(0.08)
                i += 1
        except (UnicodeEncodeError, OSError):
            pass  # Terminal doesn't support these characters; fail silently


class TerminalRenderer:
    """Prints assistant output from successive session snapshots."""

    def __init__(self, *, line_prefix: str):
        self._line_prefix = line_prefix
        self._seen: set[str] = set()
        self._current_id: str | None = None
        self._current_text = ""
        self._status = ""
        self._spinner: Spinner | None = None
        self._active = False

    def begin(self, snapshot: SessionSnapshot) -> None:
        """Start rendering; messages already in ``snapshot`` are not printed."""
        self._stop_spinner()
        self._active = True
        self._seen = {m.id for m in snapshot.messages}
        self._current_id = None
        self._current_text = ""
        self._status = ""

    def end(self) -> None:
        self._active = False
        self._stop_spinner()
        if self._current_id is not None:
            print(flush=True)
            self._current_id = None
            self._current_text = ""

    def update(self, snapshot: SessionSnapshot) -> None:
        if not self._active:
            return
        self._update_spinner(snapshot.generating_media)

        streaming = any(m.is_temporary for m in snapshot.messages)
        if snapshot.status_text and snapshot.status_text != self._status and not streaming:
            print(f"{self._line_prefix}[{snapshot.status_text}]", flush=True)
        self._status = snapshot.status_text

        for message in snapshot.messages:
            if message.role != "assistant" or message.id in self._seen:
                continue
            self._render(message.id, message.content, message.is_temporary)

    def _render(self, message_id: str, content: str, is_temporary: bool) -> None:
        if message_id != self._current_id or not content.startswith(self._current_text):
            if self._current_id is not None:
                print(flush=True)
            print(self._line_prefix, end="", flush=True)
            self._current_id = message_id
            self._current_text = ""

        print(content[len(self._current_text):], end="", flush=True)
        self._current_text = content

        if not is_temporary:
            print(flush=True)
            self._seen.add(message_id)
            self._current_id = None
            self._current_text = ""

    def _update_spinner(self, generating: MediaIntent) -> None:
        if generating is not MediaIntent.NONE and self._spinner is None:
            self._spinner = Spinner(prefix=self._line_prefix, label=f" Generating {generating.value}...")
            self._spinner.start()
        elif generating is MediaIntent.NONE:
            self._stop_spinner()

    def _stop_spinner(self) -> None:
        if self._spinner is not None:
            self._spinner.stop()
            self._spinner = None
