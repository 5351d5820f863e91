"""
Generation Scheduler - Per-meter background sample generation.

Each running meter owns one asyncio task that generates a sample on a
fixed period and forwards it to an output callback (normally the
telemetry store's ingest). The registry holds no persisted state; the
owner re-starts meters after a process restart.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

from meter_gateway.config import GeneratorConfig
from meter_gateway.generator import TelemetryGenerator
from meter_gateway.models import EnergySample

logger = logging.getLogger(__name__)

OutputCallback = Callable[[list[EnergySample]], Union[None, Awaitable[Any]]]


class SchedulerHandle:
    """Cancellable handle for one meter's generation task."""

    def __init__(self, meter_id: str, config: GeneratorConfig) -> None:
        self.meter_id = meter_id
        self.config = config
        self.task: Optional[asyncio.Task] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Deactivate the handle and cancel its task.

        Deactivation is immediate; a tick that wakes up afterwards drops
        its sample instead of forwarding it.
        """
        self._active = False
        if self.task is not None and not self.task.done():
            self.task.cancel()

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"SchedulerHandle(meter_id={self.meter_id!r}, {state})"


class GenerationScheduler:
    """
    Registry of per-meter generation tasks.

    All methods must be called from the event loop that runs the tasks.
    """

    def __init__(
        self,
        generator: TelemetryGenerator,
        output_callback: Optional[OutputCallback] = None,
        interval_seconds: float = 900,
        interval_minutes: int = 15,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            generator: Generator used on every tick
            output_callback: Receives each new sample as a one-element list.
                May be a plain function or a coroutine function.
            interval_seconds: Seconds between ticks
            interval_minutes: Interval recorded on each generated sample
            clock: Returns the timestamp for a tick. Defaults to UTC now.
        """
        self.generator = generator
        self.output_callback = output_callback
        self.interval_seconds = interval_seconds
        self.interval_minutes = interval_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._handles: dict[str, SchedulerHandle] = {}

    def start(self, meter_id: str, config: GeneratorConfig) -> SchedulerHandle:
        """
        Start periodic generation for a meter.

        Idempotent: if the meter already has an active handle it is
        returned unchanged and no second task is created.
        """
        existing = self._handles.get(meter_id)
        if existing is not None and existing.active:
            logger.debug("Generation already running for meter %s", meter_id)
            return existing

        handle = SchedulerHandle(meter_id, config)
        handle.task = asyncio.get_running_loop().create_task(
            self._run(handle), name=f"generate-{meter_id}"
        )
        handle.task.add_done_callback(lambda _task: self._forget(handle))
        self._handles[meter_id] = handle

        logger.info(
            "Started generation for meter %s every %ss",
            meter_id,
            self.interval_seconds,
        )
        return handle

    def stop(self, meter_id: str) -> bool:
        """
        Stop generation for a meter.

        The registry entry is removed before this returns; no further
        samples for the meter reach the output callback.

        Returns:
            True if a handle was stopped, False if none was registered
        """
        handle = self._handles.pop(meter_id, None)
        if handle is None:
            return False

        handle.cancel()
        logger.info("Stopped generation for meter %s", meter_id)
        return True

    def stop_all(self) -> None:
        """Stop every running meter."""
        for meter_id in list(self._handles):
            self.stop(meter_id)

    def is_running(self, meter_id: str) -> bool:
        handle = self._handles.get(meter_id)
        return handle is not None and handle.active

    def running_meters(self) -> list[str]:
        return [meter_id for meter_id, handle in self._handles.items() if handle.active]

    def _forget(self, handle: SchedulerHandle) -> None:
        if self._handles.get(handle.meter_id) is handle:
            del self._handles[handle.meter_id]

    async def _run(self, handle: SchedulerHandle) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while handle.active:
            await self._tick(handle)
            # Keep a fixed cadence regardless of how long the callback took
            next_tick += self.interval_seconds
            now = loop.time()
            if next_tick < now and self.interval_seconds > 0:
                skipped = int((now - next_tick) // self.interval_seconds) + 1
                logger.warning(
                    "Meter %s fell behind by %d ticks", handle.meter_id, skipped
                )
                next_tick += skipped * self.interval_seconds
            await asyncio.sleep(next_tick - now)

    async def _tick(self, handle: SchedulerHandle) -> None:
        """Generate and forward one sample."""
        try:
            sample = self.generator.generate_sample(
                handle.meter_id,
                self._clock(),
                handle.config,
                self.interval_minutes,
            )
        except Exception:
            logger.exception("Failed to generate sample for meter %s", handle.meter_id)
            return

        if not handle.active or self.output_callback is None:
            return

        logger.debug(
            "Generated: meter=%s gen=%.2fkW cons=%.2fkW net=%.2fkW",
            sample.meter_id,
            sample.generation_kw,
            sample.consumption_kw,
            sample.net_export_kw,
        )

        try:
            result = self.output_callback([sample])
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Output callback failed for meter %s", handle.meter_id)
