"""
Process Sessions — Run one command, stream its output, allow interruption

A Session is one execution of a resolved command line:
- Spawned through the platform shell (sh -c / cmd /C)
- stdout and stderr merged into one pipe, stdin closed
- Color forced on (CLICOLOR_FORCE, FORCE_COLOR, TERM)

Streaming:
- One reader thread per session drains the pipe in raw chunks into a queue
- The caller drains the queue without blocking (poll), once per loop cycle
- Bytes are never decoded or rewritten; ANSI sequences pass through

Lifecycle:
    RUNNING -> SUCCEEDED (exit 0) | FAILED (exit != 0) | INTERRUPTED
Interrupted is final: a later exit code never overrides it.
The session ends when the shell exits, even if a background child it
started still holds the output pipe open.
A spawn failure yields a FAILED session that is already finished.
"""

import logging
import os
import queue
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import xxhash


logger = logging.getLogger(__name__)

DEFAULT_INTERRUPT_GRACE = 3.0
READ_CHUNK_SIZE = 4096
# Output still arriving after the shell exited gets this long before the session ends
EXIT_DRAIN_GRACE = 0.2

_EXIT = object()  # Queue sentinel, followed by the exit code


class SessionStatus(Enum):
    """Session lifecycle states."""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INTERRUPTED = "interrupted"

    @property
    def is_terminal(self) -> bool:
        return self != SessionStatus.RUNNING


@dataclass(eq=False)
class Session:
    """
    One command execution.

    output_log is append-only; it keeps every chunk for the session history.
    finished means the child was reaped and its output drained (up to a
    short grace period when a background child keeps the pipe open).
    """
    id: str
    command_line: str
    working_dir: Optional[Path] = None
    name: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    status: SessionStatus = SessionStatus.RUNNING
    exit_code: Optional[int] = None
    finished: bool = False
    error: Optional[str] = None  # Spawn failure text
    output_log: List[bytes] = field(default_factory=list)

    # Process plumbing (not part of the session's identity)
    _process: Optional[subprocess.Popen] = field(default=None, repr=False)
    _queue: "queue.Queue" = field(default_factory=queue.Queue, repr=False)
    _reader: Optional[threading.Thread] = field(default=None, repr=False)
    _kill_timer: Optional[threading.Timer] = field(default=None, repr=False)
    _started_monotonic: float = field(default_factory=time.monotonic, repr=False)
    _ended_monotonic: Optional[float] = field(default=None, repr=False)
    _exited_monotonic: Optional[float] = field(default=None, repr=False)

    @property
    def is_active(self) -> bool:
        return not self.finished

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def output(self) -> bytes:
        return b"".join(self.output_log)

    @property
    def duration(self) -> float:
        """Seconds since start, or total runtime once finished."""
        end = self._ended_monotonic if self._ended_monotonic is not None else time.monotonic()
        return end - self._started_monotonic


def _generate_session_id(command_line: str) -> str:
    """Generate session ID using xxhash."""
    seed = f"{command_line}{time.time_ns()}{threading.get_ident()}"
    return xxhash.xxh64(seed.encode()).hexdigest()[:12]


def shell_argv(command_line: str) -> List[str]:
    """Argument vector handing command_line to the platform shell verbatim."""
    if os.name == "nt":
        return [os.environ.get("COMSPEC", "cmd.exe"), "/C", command_line]
    return ["/bin/sh", "-c", command_line]


def child_environment(base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Environment with color forced on for tools that check for a TTY."""
    env = dict(os.environ if base is None else base)
    env["CLICOLOR_FORCE"] = "1"
    env["FORCE_COLOR"] = "1"
    env.setdefault("TERM", "xterm-256color")
    return env


class ProcessSessionManager:
    """
    Spawns and supervises command sessions.

    Tracks the session it was last asked to start; refusing a second
    concurrent run is the caller's job.
    """

    def __init__(self, interrupt_grace: float = DEFAULT_INTERRUPT_GRACE, env: Optional[Dict[str, str]] = None):
        """
        Initialize ProcessSessionManager.

        Args:
            interrupt_grace: Seconds an interrupted child gets before it is killed
            env: Base environment for children (defaults to os.environ)
        """
        self.interrupt_grace = interrupt_grace
        self.env = env
        self.current: Optional[Session] = None

    def start(self, command_line: str, working_dir: Optional[Path] = None, name: Optional[str] = None) -> Session:
        """
        Spawn a command and begin streaming its output.

        Args:
            command_line: Fully resolved command line
            working_dir: Directory to run in (None: current directory)
            name: Catalog name, for display

        Returns:
            Session; on spawn failure already finished with status FAILED
        """
        session = Session(
            id=_generate_session_id(command_line),
            command_line=command_line,
            working_dir=Path(working_dir) if working_dir else None,
            name=name,
        )
        self.current = session

        popen_kwargs = {}
        if os.name == "nt":
            popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs["start_new_session"] = True

        try:
            process = subprocess.Popen(
                shell_argv(command_line),
                cwd=str(session.working_dir) if session.working_dir else None,
                env=child_environment(self.env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                **popen_kwargs,
            )
        except OSError as e:
            logger.error("Failed to spawn %r: %s", command_line, e)
            session.status = SessionStatus.FAILED
            session.error = f"Failed to start command: {e}"
            session.finished = True
            session._ended_monotonic = time.monotonic()
            return session

        session._process = process
        session._reader = threading.Thread(
            target=self._read_output,
            args=(process, session._queue),
            name=f"fzc-session-{session.id}",
            daemon=True,
        )
        session._reader.start()
        logger.info("Started session %s (pid %d): %s", session.id, process.pid, command_line)
        return session

    @staticmethod
    def _read_output(process: subprocess.Popen, output_queue: "queue.Queue"):
        """Reader thread: pump raw chunks until EOF, then report the exit code."""
        stream = process.stdout
        try:
            while True:
                chunk = stream.read1(READ_CHUNK_SIZE)
                if not chunk:
                    break
                output_queue.put(chunk)
        except (OSError, ValueError) as e:
            logger.warning("Output stream of pid %d closed early: %s", process.pid, e)
        finally:
            stream.close()
            output_queue.put(_EXIT)
            output_queue.put(process.wait())

    def poll(self, session: Session) -> List[bytes]:
        """
        Drain pending output without blocking.

        Appends chunks to session.output_log and finalizes the session once
        the child has exited and every chunk was drained.

        Returns:
            Chunks received since the previous poll
        """
        chunks: List[bytes] = []
        if session.finished:
            return chunks

        while True:
            try:
                item = session._queue.get_nowait()
            except queue.Empty:
                break
            if item is _EXIT:
                # The exit code is always queued right behind the sentinel
                self._finalize(session, session._queue.get())
                break
            chunks.append(item)
            session.output_log.append(item)

        process = session._process
        if not session.finished and process is not None and process.poll() is not None:
            # Shell is gone; a background child may keep the pipe from reaching EOF
            now = time.monotonic()
            if session._exited_monotonic is None:
                session._exited_monotonic = now
            elif now - session._exited_monotonic >= EXIT_DRAIN_GRACE:
                logger.info("Session %s exited with its output pipe still open", session.id)
                self._finalize(session, process.returncode)
        return chunks

    def wait(self, session: Session, timeout: Optional[float] = None, interval: float = 0.02) -> bool:
        """
        Block until the session finishes.

        Returns:
            True when finished, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            self.poll(session)
            if session.finished:
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(interval)

    def iter_output(self, session: Session, interval: float = 0.05) -> Iterator[bytes]:
        """Yield output chunks as they arrive until the session finishes."""
        while True:
            for chunk in self.poll(session):
                yield chunk
            if session.finished:
                return
            time.sleep(interval)

    def interrupt(self, session: Session) -> bool:
        """
        Ask a running child to stop.

        Sends SIGINT to the child's process group (CTRL_BREAK on Windows),
        marks the session INTERRUPTED and arms a kill after the grace period.

        Returns:
            True if a signal was delivered, False if nothing was running
        """
        process = session._process
        if session.finished or process is None or process.poll() is not None:
            return False

        try:
            if os.name == "nt":
                process.send_signal(signal.CTRL_BREAK_EVENT)
            else:
                os.killpg(os.getpgid(process.pid), signal.SIGINT)
        except ProcessLookupError:
            return False
        except OSError as e:
            logger.warning("Interrupt of pid %d failed (%s), terminating", process.pid, e)
            process.terminate()

        session.status = SessionStatus.INTERRUPTED
        logger.info("Interrupted session %s", session.id)

        if session._kill_timer is None:
            timer = threading.Timer(self.interrupt_grace, self._kill, args=(session,))
            timer.daemon = True
            session._kill_timer = timer
            timer.start()
        return True

    def _kill(self, session: Session):
        process = session._process
        if process is None or process.poll() is not None:
            return
        logger.warning(
            "Session %s still running %.1fs after interrupt, killing",
            session.id, self.interrupt_grace,
        )
        try:
            if os.name == "nt":
                process.kill()
            else:
                os.killpg(os.getpgid(process.pid), signal.SIGKILL)
        except ProcessLookupError:
            pass

    def _finalize(self, session: Session, exit_code: int):
        session.exit_code = exit_code
        if session.status != SessionStatus.INTERRUPTED:
            session.status = SessionStatus.SUCCEEDED if exit_code == 0 else SessionStatus.FAILED
        session.finished = True
        session._ended_monotonic = time.monotonic()
        if session._kill_timer is not None:
            session._kill_timer.cancel()
        logger.info(
            "Session %s finished: %s (exit %s)",
            session.id, session.status.value, exit_code,
        )
