"""
Debounced autosave.

Edits land in memory first; the scheduler pushes a whole-project snapshot
to the store once edits have been quiet for `delay` seconds.

  touch() ─┐ touch() ─┐ touch() ─┐
           └─ reset ──┴─ reset ──┴── 1.5s quiet ──> save(snapshot())

Rules:
  - each touch() restarts the quiet-period timer
  - the snapshot is taken when the timer fires, not when touched
  - a save in flight is never cancelled; edits made during it trigger
    another save afterwards
  - failures are logged and reported, not retried
"""
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECS = 1.5


def _thread_timer(delay: float, fn: Callable[[], None]):
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    return timer


class SaveScheduler:
    """Coalesces bursts of edits into one outbound save."""

    def __init__(
        self,
        save: Callable[[Any], Any],
        snapshot: Callable[[], Any],
        delay: float = DEFAULT_DELAY_SECS,
        on_error: Optional[Callable[[str], None]] = None,
        on_saved: Optional[Callable[[Any], None]] = None,
        timer_factory: Callable[[float, Callable[[], None]], Any] = _thread_timer,
    ):
        self._save = save
        self._snapshot = snapshot
        self.delay = delay
        self.on_error = on_error
        self.on_saved = on_saved
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._timer = None
        self._dirty = False
        self._saving = False
        self._rerun = False

        self.last_error: Optional[str] = None
        self.save_count = 0

    @property
    def pending(self) -> bool:
        """A save is scheduled but has not started yet."""
        return self._timer is not None

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def saving(self) -> bool:
        return self._saving

    def touch(self) -> None:
        """Record an edit and (re)start the quiet-period timer."""
        with self._lock:
            self._dirty = True
            self._restart_timer()

    def flush(self) -> bool:
        """Save now if there are unsaved edits. Returns True if a save ran."""
        with self._lock:
            self._cancel_timer()
            if not self._dirty:
                return False
            if self._saving:
                self._rerun = True
                return False
            self._saving = True
            self._dirty = False
        self._dispatch()
        return True

    def cancel(self) -> None:
        """Drop a scheduled save. An in-flight save still completes."""
        with self._lock:
            self._cancel_timer()
            self._dirty = False
            self._rerun = False

    # ── Internals ────────────────────────────────────────────────────────────

    def _restart_timer(self):
        self._cancel_timer()
        self._timer = self._timer_factory(self.delay, self._fire)
        self._timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self):
        with self._lock:
            self._timer = None
            if not self._dirty:
                return
            if self._saving:
                self._rerun = True
                return
            self._saving = True
            self._dirty = False
        self._dispatch()

    def _dispatch(self):
        """Run one save outside the lock. Caller has set _saving."""
        try:
            result = self._save(self._snapshot())
        except Exception as e:
            message = f"Failed to save to database: {e or 'unknown error'}"
            logger.error(f"Autosave failed: {e}")
            self.last_error = message
            if self.on_error:
                self.on_error(message)
        else:
            self.save_count += 1
            self.last_error = None
            if self.on_saved:
                self.on_saved(result)
        finally:
            with self._lock:
                self._saving = False
                if self._rerun or (self._dirty and self._timer is None):
                    self._rerun = False
                    if self._dirty:
                        self._restart_timer()
