"""Debounced autosave for an editing session.

Each edit calls :meth:`DebouncedDraftSaver.schedule` with the latest model.
The save runs once the edits pause for the debounce window; only the most
recent model is written. A failed save keeps the pending model so the next
``schedule`` or ``flush`` retries it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from tradedocs.models.render_model import RenderModel

logger = logging.getLogger(__name__)

AUTOSAVE_DEBOUNCE_MS_ENV = "TRADEDOCS_AUTOSAVE_DEBOUNCE_MS"
DEFAULT_DEBOUNCE_MS = 800

SaveCallback = Callable[[RenderModel], Awaitable[Any]]


class SaveStatus(StrEnum):
    """Autosave state shown next to the editor."""

    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


def get_debounce_ms() -> int:
    """Read the debounce window from the environment.

    Raises:
        ValueError: If the configured value is not a non-negative integer.
    """
    raw = os.environ.get(AUTOSAVE_DEBOUNCE_MS_ENV, "").strip()
    if not raw:
        return DEFAULT_DEBOUNCE_MS
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{AUTOSAVE_DEBOUNCE_MS_ENV} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{AUTOSAVE_DEBOUNCE_MS_ENV} must be >= 0, got {value}")
    return value


class DebouncedDraftSaver:
    """Coalesces rapid edits into a single save after a quiet period."""

    def __init__(self, save: SaveCallback, delay_ms: int | None = None) -> None:
        """Initialize the saver.

        Args:
            save: Coroutine function that persists a model.
            delay_ms: Debounce window; defaults to the environment setting (800 ms).
        """
        self._save = save
        self._delay_ms = get_debounce_ms() if delay_ms is None else delay_ms
        self._pending: RenderModel | None = None
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[Any] | None = None
        self._lock = asyncio.Lock()
        self.status = SaveStatus.IDLE
        self.last_error: Exception | None = None
        self.last_saved_at: datetime | None = None

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, model: RenderModel) -> None:
        """Record the latest model and restart the debounce timer.

        Must be called from within a running event loop.
        """
        self._pending = model
        if self.status != SaveStatus.ERROR:
            self.status = SaveStatus.PENDING
        self._cancel_timer()
        self._timer = asyncio.create_task(self._save_after_delay())

    async def flush(self) -> bool:
        """Save the pending model now.

        Returns:
            True if a model was saved, False if nothing was pending.

        Raises:
            Exception: Whatever the save callback raised. The model stays pending.
        """
        self._cancel_timer()
        return await self._save_pending(raise_errors=True)

    def cancel(self) -> None:
        """Abandon the pending model without saving it."""
        self._cancel_timer()
        self._pending = None
        self.status = SaveStatus.IDLE

    async def close(self, save: bool = True) -> None:
        """Stop the saver, flushing the pending model first unless ``save`` is False."""
        if save:
            await self.flush()
        else:
            self.cancel()
        timer = self._timer
        self._timer = None
        if timer is not None and not timer.done():
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        if self._in_flight is not None:
            await self._in_flight

    def _cancel_timer(self) -> None:
        # Only a timer still sleeping is cancelled; a save in flight always completes.
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _save_after_delay(self) -> None:
        await asyncio.sleep(self._delay_ms / 1000)
        task = asyncio.current_task()
        if self._timer is task:
            self._timer = None
        self._in_flight = task
        try:
            await self._save_pending(raise_errors=False)
        finally:
            if self._in_flight is task:
                self._in_flight = None

    async def _save_pending(self, *, raise_errors: bool) -> bool:
        async with self._lock:
            model = self._pending
            if model is None:
                return False

            self.status = SaveStatus.SAVING
            try:
                await self._save(model)
            except Exception as e:
                self.last_error = e
                self.status = SaveStatus.ERROR
                logger.warning(
                    "Autosave failed for %s; keeping pending changes: %s",
                    model.record_id,
                    e,
                )
                if raise_errors:
                    raise
                return False

            # A newer model may have been scheduled while this one was saving.
            if self._pending is model:
                self._pending = None
                self.status = SaveStatus.SAVED
            else:
                self.status = SaveStatus.PENDING
            self.last_error = None
            self.last_saved_at = datetime.now(UTC)
            logger.debug("Autosaved %s", model.record_id)
            return True
