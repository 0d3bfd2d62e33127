"""Progress events and the write-safe channel that pushes them to the caller."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keepalive\n\n"


@dataclass(slots=True, frozen=True)
class StageEvent:
    """Intermediate progress notification."""

    stage: str
    detail: str | None = None
    percent: int | None = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"stage": self.stage}
        if self.detail is not None:
            payload["detail"] = self.detail
        if self.percent is not None:
            payload["percent"] = self.percent
        return payload


@dataclass(slots=True, frozen=True)
class DoneEvent:
    """Terminal event carrying either the result document or an error message."""

    result: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_wire(self) -> dict[str, Any]:
        if self.error is not None:
            return {"stage": "Error", "error": self.error, "done": True}
        result = self.result or ""
        return {
            "stage": "Done",
            "detail": f"{len(result)} chars",
            "percent": 100,
            "done": True,
            "result": result,
        }


ProgressEvent = StageEvent | DoneEvent


def encode_event(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False)}\n\n"


class ProgressSink(Protocol):
    """Port through which lower layers report progress without knowing the transport."""

    def emit(self, stage: str, detail: str | None = None, percent: int | None = None) -> None:
        ...


class NullProgressSink:
    def emit(self, stage: str, detail: str | None = None, percent: int | None = None) -> None:
        return None


class ProgressTransport(Protocol):
    """Push-stream primitive the channel writes frames onto."""

    @property
    def closed(self) -> bool:
        ...

    def write(self, frame: str) -> None:
        ...

    def end(self) -> None:
        ...

    def on_close(self, callback: Callable[[], None]) -> None:
        ...


class TransportClosedError(RuntimeError):
    """Raised by a transport when writing after the peer went away."""


class QueueTransport:
    """In-process transport drained by a streaming HTTP response.

    The producer (analysis task) writes frames into an unbounded queue; the
    HTTP response iterates :meth:`frames`. When the response stops iterating
    (client disconnect or normal end) the transport closes and notifies its
    listeners.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False
        self._ended = False
        self._listeners: list[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> None:
        if self._closed or self._ended:
            raise TransportClosedError("progress stream is closed")
        self._queue.put_nowait(frame)

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._queue.put_nowait(None)

    def on_close(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for callback in self._listeners:
            try:
                callback()
            except Exception:  # pragma: no cover - listeners must not break close
                logger.exception("progress.transport.listener_failed")

    async def frames(self) -> AsyncIterator[str]:
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    return
                yield frame
        finally:
            self.close()


class ProgressChannel:
    """Write-safe wrapper around a :class:`ProgressTransport`.

    ``send``, ``keepalive`` and ``final_end`` never raise. The first failed
    write marks the peer as gone; after that, and after ``final_end``, every
    call is a no-op.
    """

    def __init__(self, transport: ProgressTransport, *, job_id: str | None = None) -> None:
        self._transport = transport
        self._job_id = job_id
        self._peer_gone = False
        self._finalized = False
        transport.on_close(self._mark_peer_gone)

    @property
    def peer_gone(self) -> bool:
        return self._peer_gone

    @property
    def finalized(self) -> bool:
        return self._finalized

    def send(self, event: ProgressEvent) -> None:
        self._write(encode_event(event))

    def keepalive(self) -> None:
        self._write(KEEPALIVE_FRAME)

    def final_end(self) -> None:
        if self._finalized:
            return
        self._finalized = True
        try:
            self._transport.end()
        except Exception as exc:
            logger.debug(
                "progress.channel.end_failed",
                extra={"job_id": self._job_id, "error": str(exc)},
            )

    def _write(self, frame: str) -> None:
        if self._peer_gone or self._finalized:
            return
        if self._transport.closed:
            self._mark_peer_gone()
            return
        try:
            self._transport.write(frame)
        except Exception as exc:
            self._peer_gone = True
            logger.info(
                "progress.channel.peer_gone",
                extra={"job_id": self._job_id, "error": str(exc)},
            )

    def _mark_peer_gone(self) -> None:
        if not self._peer_gone:
            logger.info("progress.channel.disconnected", extra={"job_id": self._job_id})
        self._peer_gone = True


@dataclass(slots=True)
class ChannelProgressSink:
    """Progress sink that logs every stage and forwards it to a channel."""

    channel: ProgressChannel
    job_id: str
    log: logging.Logger = field(default_factory=lambda: logger)

    def emit(self, stage: str, detail: str | None = None, percent: int | None = None) -> None:
        self.log.info(
            "analysis.progress %s: %s",
            stage,
            detail or "",
            extra={"job_id": self.job_id, "stage": stage},
        )
        self.channel.send(StageEvent(stage, detail, percent))


class KeepaliveTimer:
    """Cancellable periodic task owned by the job runner."""

    def __init__(
        self,
        tick: Callable[[], None],
        interval: float,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._tick = tick
        self._interval = interval
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await self._sleep(self._interval)
            self._tick()
