"""
Base Actor classes for the message-passing runtime.

Actors are independent processing units that:
- Have their own thread
- Communicate only via the message bus or their mailbox
- Don't share mutable state with other actors
"""

import heapq
import itertools
import logging
import queue
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Event, Thread
from typing import Any, Callable, List, Optional, Tuple

from .bus import MessageBus

logger = logging.getLogger(__name__)

# Upper bound on how long the mailbox blocks, so stop() is noticed promptly
MAILBOX_POLL_S = 0.1


class Actor(ABC):
    """
    Base class for all actors.

    Subclasses must implement:
    - setup(): Initialize resources (runs on the actor thread)
    - loop(): One processing step (called repeatedly)
    - teardown(): Cleanup resources
    """

    def __init__(self, name: str, bus: MessageBus, config: Any):
        self.name = name
        self.bus = bus
        self.config = config

        self._thread: Optional[Thread] = None
        self._running = Event()
        self._ready = Event()
        self._setup_error: Optional[Exception] = None

        # Called with (name, error) when the thread dies while still running
        self.on_crash: Optional[Callable[[str, BaseException], None]] = None

    @abstractmethod
    def setup(self) -> None:
        """Called once on the actor thread before the loop starts."""

    @abstractmethod
    def loop(self) -> None:
        """One iteration of the actor's main loop."""

    @abstractmethod
    def teardown(self) -> None:
        """Called once on the actor thread after the loop stops."""

    def start(self, timeout: float = 5.0) -> None:
        """
        Start the actor in a new thread and wait for setup() to finish.

        Raises:
            Whatever setup() raised; the actor is not running in that case.
        """
        if self._thread is not None and self._thread.is_alive():
            return

        self._setup_error = None
        self._ready.clear()
        self._running.set()
        self._thread = Thread(
            target=self._run,
            name=self.name,
            daemon=True
        )
        self._thread.start()

        if not self._ready.wait(timeout=timeout):
            logger.warning("[%s] Setup still running after %.1fs", self.name, timeout)
            return

        if self._setup_error is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            raise self._setup_error

        logger.info("[%s] Started", self.name)

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the actor and wait for its thread to finish."""
        self._running.clear()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("[%s] Stopped", self.name)

    def is_running(self) -> bool:
        return self._running.is_set()

    def _run(self) -> None:
        """Internal thread entry point."""
        try:
            self.setup()
        except Exception as e:
            logger.error("[%s] Setup error: %s", self.name, e)
            self._setup_error = e
            self._running.clear()
            self._ready.set()
            return

        self._ready.set()

        try:
            while self._running.is_set():
                try:
                    self.loop()
                except Exception:
                    logger.exception("[%s] Loop error", self.name)
        except BaseException as e:
            logger.critical("[%s] Actor died: %r", self.name, e)
            self._running.clear()
            if self.on_crash is not None:
                try:
                    self.on_crash(self.name, e)
                except Exception:
                    logger.exception("[%s] Crash handler failed", self.name)
        finally:
            try:
                self.teardown()
            except Exception as e:
                logger.error("[%s] Teardown error: %s", self.name, e)


@dataclass
class _Envelope:
    kind: str  # "call", "cast" or "info"
    payload: Any
    reply: Optional[queue.Queue] = None


class MailboxActor(Actor):
    """
    Actor that handles one mailbox message at a time.

    Other threads talk to it with call() (request/response), cast()
    (fire-and-forget) and send() (plain notification). Timers are one-shot;
    a periodic job re-arms itself with send_after() once it has finished, so
    two runs of the same job never overlap.

    Subclasses implement handle_call(), handle_cast() and handle_info().
    """

    def __init__(self, name: str, bus: MessageBus, config: Any, call_timeout: float = 5.0):
        super().__init__(name, bus, config)
        self._mailbox: queue.Queue = queue.Queue()
        self._timers: List[Tuple[float, int, Any]] = []
        self._timer_seq = itertools.count()
        self._call_timeout = call_timeout

    # ------------------------------------------------------------------
    # Client API (any thread)
    # ------------------------------------------------------------------

    def call(self, request: Any, timeout: Optional[float] = None) -> Any:
        """
        Send a request and block for the reply.

        Exceptions raised by handle_call() are re-raised here.
        """
        if not self.is_running():
            raise RuntimeError(f"{self.name} is not running")

        reply: queue.Queue = queue.Queue(maxsize=1)
        self._mailbox.put(_Envelope("call", request, reply))
        try:
            ok, value = reply.get(timeout=timeout or self._call_timeout)
        except queue.Empty:
            raise TimeoutError(f"{self.name} did not answer {type(request).__name__}") from None

        if not ok:
            raise value
        return value

    def cast(self, request: Any) -> None:
        """Queue a request without waiting for it to be handled."""
        self._mailbox.put(_Envelope("cast", request))

    def send(self, message: Any) -> None:
        """Deliver a notification (bus message, timer tick) to handle_info()."""
        self._mailbox.put(_Envelope("info", message))

    # ------------------------------------------------------------------
    # Actor thread only
    # ------------------------------------------------------------------

    def send_after(self, delay_s: float, message: Any) -> None:
        """Deliver message to handle_info() after delay_s seconds."""
        deadline = time.monotonic() + delay_s
        heapq.heappush(self._timers, (deadline, next(self._timer_seq), message))

    def handle_call(self, request: Any) -> Any:
        raise ValueError(f"{self.name}: unsupported call {request!r}")

    def handle_cast(self, request: Any) -> None:
        logger.warning("[%s] Ignoring unsupported cast %r", self.name, request)

    def handle_info(self, message: Any) -> None:
        logger.debug("[%s] Ignoring message %r", self.name, message)

    def loop(self) -> None:
        try:
            envelope = self._mailbox.get(timeout=self._next_timeout())
        except queue.Empty:
            envelope = None

        if envelope is not None:
            self._dispatch(envelope)

        self._fire_due_timers()

    def _next_timeout(self) -> float:
        if not self._timers:
            return MAILBOX_POLL_S
        remaining = self._timers[0][0] - time.monotonic()
        return min(MAILBOX_POLL_S, max(0.0, remaining))

    def _fire_due_timers(self) -> None:
        now = time.monotonic()
        while self._timers and self._timers[0][0] <= now:
            _, _, message = heapq.heappop(self._timers)
            self._dispatch(_Envelope("info", message))

    def _dispatch(self, envelope: _Envelope) -> None:
        if envelope.kind == "call":
            try:
                result = self.handle_call(envelope.payload)
            except Exception as e:
                envelope.reply.put((False, e))
            else:
                envelope.reply.put((True, result))
            return

        try:
            if envelope.kind == "cast":
                self.handle_cast(envelope.payload)
            else:
                self.handle_info(envelope.payload)
        except Exception:
            logger.exception("[%s] Error handling %r", self.name, envelope.payload)
