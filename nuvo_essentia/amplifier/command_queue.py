"""Single-flight command queue.

The amplifier's protocol has no request identifiers: the only way to tell
which reply belongs to which command is order. This queue therefore
guarantees that exactly one command is written and awaiting a reply at any
time, and attributes every received line to that command.

States:
- IDLE: nothing in flight, nothing queued
- ACTIVE: one command dispatching or in flight, zero or more queued behind it
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Optional

from ..errors import (
    QueueClosedError,
    QueueFullError,
    StallError,
    TransportWriteError,
)
from ..models import Command

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_DELAY = 0.1  # seconds before every write
DEFAULT_REPLY_TIMEOUT = 2.0  # seconds
DEFAULT_MAX_DEPTH = 64


class QueueState(Enum):
    IDLE = "idle"
    ACTIVE = "active"


@dataclass
class PendingRequest:
    """A submitted command and the future its caller waits on."""
    command: Command
    future: Future = field(default_factory=Future)

    def resolve(self, line: str) -> None:
        if not self.future.done():
            self.future.set_result(line)

    def reject(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class CommandQueue:
    """FIFO queue enforcing one physical write at a time.

    Responsibilities:
    - Accept submissions from any number of threads
    - Wait the inter-command delay before every write
    - Attribute each received line to the in-flight command
    - Reject the in-flight command on write failure or reply timeout,
      then carry on with the next one

    Example:
        >>> queue = CommandQueue(channel.write, command_delay=0.1)
        >>> queue.start()
        >>> future = queue.submit(ProtocolSerializer.status_query(1))
        >>> # reader thread calls queue.on_line(line) for every reply
        >>> future.result()
        '#Z01PWRON,SRC1,GRP0,VOL-45'
    """

    def __init__(self,
                 write: Callable[[bytes], None],
                 command_delay: float = DEFAULT_COMMAND_DELAY,
                 reply_timeout: Optional[float] = DEFAULT_REPLY_TIMEOUT,
                 max_depth: Optional[int] = DEFAULT_MAX_DEPTH):
        """Initialize the queue.

        Args:
            write: Callable transmitting bytes; raises TransportWriteError on failure
            command_delay: Seconds to wait before each write
            reply_timeout: Seconds to wait for a reply, or None to wait forever
            max_depth: Maximum queued plus in-flight requests, or None for unbounded
        """
        self._write = write
        self._command_delay = command_delay
        self._reply_timeout = reply_timeout
        self._max_depth = max_depth

        self._pending: Deque[PendingRequest] = deque()
        self._in_flight: Optional[PendingRequest] = None
        self._written = False
        self._deadline: Optional[float] = None

        self._condition = threading.Condition()
        self._running = False
        self._dispatcher_thread: Optional[threading.Thread] = None

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the dispatcher thread."""
        with self._condition:
            if self._running:
                return
            self._running = True

        self._dispatcher_thread = threading.Thread(
            target=self._dispatch_loop,
            daemon=True,
            name="CommandDispatcher"
        )
        self._dispatcher_thread.start()

    def stop(self) -> None:
        """Stop dispatching and reject everything still outstanding."""
        with self._condition:
            if not self._running:
                return
            self._running = False
            abandoned = []
            if self._in_flight is not None:
                abandoned.append(self._in_flight)
            abandoned.extend(self._pending)
            self._pending.clear()
            self._clear_in_flight()
            self._condition.notify_all()

        if self._dispatcher_thread and self._dispatcher_thread is not threading.current_thread():
            self._dispatcher_thread.join(timeout=self._command_delay + 1.0)
        self._dispatcher_thread = None

        for request in abandoned:
            request.reject(QueueClosedError(f"Command queue stopped before {request.command} completed"))
        if abandoned:
            logger.info(f"Rejected {len(abandoned)} outstanding commands on stop")

    @property
    def is_running(self) -> bool:
        return self._running

    # --- Submission ---

    def submit(self, command: Command) -> Future:
        """Queue a command.

        Args:
            command: Command to transmit

        Returns:
            Future resolved with the reply line, or failed with the error
            that prevented one.

        Raises:
            QueueClosedError: If the queue is not running
            QueueFullError: If max_depth requests are already outstanding
        """
        request = PendingRequest(command)
        with self._condition:
            if not self._running:
                raise QueueClosedError("Command queue is not running")
            if self._max_depth is not None and self._depth() >= self._max_depth:
                raise QueueFullError(f"Command queue full ({self._max_depth} outstanding)")

            self._pending.append(request)
            logger.debug(f"Queued {command} ({self._depth()} outstanding)")
            self._condition.notify_all()

        return request.future

    @property
    def depth(self) -> int:
        """Number of queued plus in-flight requests."""
        with self._condition:
            return self._depth()

    @property
    def state(self) -> QueueState:
        with self._condition:
            return QueueState.ACTIVE if self._depth() else QueueState.IDLE

    # --- Events from the reader side ---

    def on_line(self, line: str) -> None:
        """Complete the in-flight request with a received line."""
        with self._condition:
            request = self._in_flight
            if request is None or not self._written:
                logger.warning(f"Discarding unsolicited line: {line!r}")
                return
            self._clear_in_flight()
            self._condition.notify_all()

        logger.debug(f"Reply for {request.command}: {line!r}")
        request.resolve(line)

    def on_write_error(self, error: TransportWriteError) -> None:
        """Reject the in-flight request after its write failed."""
        self.reject_in_flight(error)

    def reject_in_flight(self, error: BaseException) -> None:
        """Reject the in-flight request and move on to the next one."""
        with self._condition:
            request = self._in_flight
            if request is None or not self._written:
                logger.warning(f"No command in flight to reject: {error}")
                return
            self._clear_in_flight()
            self._condition.notify_all()

        logger.error(f"Command {request.command} failed: {error}")
        request.reject(error)

    # --- Internals ---

    def _depth(self) -> int:
        return len(self._pending) + (1 if self._in_flight is not None else 0)

    def _clear_in_flight(self) -> None:
        self._in_flight = None
        self._written = False
        self._deadline = None

    def _next_event(self):
        """Block until there is a request to dispatch or one has stalled.

        Must be called with the condition held. Returns a (request, stalled)
        tuple, or (None, False) once the queue is stopped.
        """
        while self._running:
            if self._in_flight is None:
                if self._pending:
                    request = self._pending.popleft()
                    self._in_flight = request
                    return request, False
                self._condition.wait()
                continue

            if self._deadline is None:
                self._condition.wait()
                continue

            remaining = self._deadline - time.monotonic()
            if remaining > 0:
                self._condition.wait(remaining)
                continue

            request = self._in_flight
            self._clear_in_flight()
            return request, True

        return None, False

    def _dispatch_loop(self) -> None:
        """Write queued commands one at a time."""
        logger.debug("Dispatcher thread started")

        while True:
            with self._condition:
                request, stalled = self._next_event()
            if request is None:
                break

            if stalled:
                logger.warning(f"No reply to {request.command} within {self._reply_timeout}s")
                request.reject(StallError(
                    f"No reply to {request.command} within {self._reply_timeout}s"
                ))
                continue

            time.sleep(self._command_delay)

            with self._condition:
                if self._in_flight is not request:
                    # Stopped while waiting
                    continue
                self._written = True

            logger.debug(f"Sending {request.command}")
            try:
                self._write(request.command.payload.encode("ascii"))
            except TransportWriteError as e:
                self.on_write_error(e)
                continue
            except Exception as e:
                logger.exception(f"Unexpected error writing {request.command}")
                self.on_write_error(TransportWriteError(f"Write failed: {e}"))
                continue

            with self._condition:
                if self._in_flight is request and self._reply_timeout is not None:
                    self._deadline = time.monotonic() + self._reply_timeout

        logger.debug("Dispatcher thread exiting")
