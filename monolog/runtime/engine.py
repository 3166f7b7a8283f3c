"""Single-flight wrapper around a background language-model handle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from monolog.errors import (
    EngineBusyError,
    EngineError,
    EngineUnavailableError,
    InferenceError,
    InferenceTimeoutError,
)

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    INFERRING = "inferring"
    ERROR = "error"


class EngineHandle(Protocol):
    """Boundary of the model runtime; implementations run on a worker."""

    async def complete(self, prompt: str) -> str:
        ...

    async def reload(self) -> None:
        ...

    async def unload(self) -> None:
        ...


EngineFactory = Callable[[str], Awaitable[EngineHandle]]


class InferenceEngine:
    """Owns one model handle: deduplicated load, exclusive inference slot."""

    def __init__(self, create_engine: EngineFactory, *, model_id: str) -> None:
        self._create_engine = create_engine
        self.model_id = model_id
        self.state = EngineState.UNLOADED
        self.construction_count = 0
        self.last_error: Optional[BaseException] = None
        self._handle: Optional[EngineHandle] = None
        self._load_task: Optional[asyncio.Task] = None
        self._infer_task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def is_ready(self) -> bool:
        return self.state in (EngineState.LOADED, EngineState.INFERRING)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def load(self) -> bool:
        """Load the model; concurrent callers share one underlying load."""
        if self.is_ready:
            return True
        if self._load_task is None or self._load_task.done():
            self.state = EngineState.LOADING
            self._load_task = asyncio.create_task(self._run_load(self._generation))
        return await asyncio.shield(self._load_task)

    async def _run_load(self, generation: int) -> bool:
        self.state = EngineState.LOADING
        logger.info("Loading model '%s'", self.model_id)
        handle: Optional[EngineHandle] = None
        try:
            self.construction_count += 1
            handle = await self._create_engine(self.model_id)
            await handle.reload()
        except asyncio.CancelledError:
            logger.info("Model load for '%s' aborted", self.model_id)
            if handle is not None:
                await self._release(handle)
            return False
        except Exception as exc:  # noqa: BLE001
            logger.warning("Model load for '%s' failed: %s", self.model_id, exc)
            self.last_error = exc
            if generation == self._generation:
                self.state = EngineState.ERROR
            if handle is not None:
                await self._release(handle)
            return False
        if generation != self._generation:
            await self._release(handle)
            return False
        self._handle = handle
        self.state = EngineState.LOADED
        self.last_error = None
        logger.info("Model '%s' loaded", self.model_id)
        return True

    async def unload(self) -> None:
        """Abort in-flight work and release the handle."""
        self._generation += 1
        for task in (self._load_task, self._infer_task):
            if task is not None and not task.done():
                task.cancel()
        if self._load_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._load_task
        handle, self._handle = self._handle, None
        self._load_task = None
        self._infer_task = None
        self.state = EngineState.UNLOADED
        if handle is not None:
            await self._release(handle)

    async def _release(self, handle: EngineHandle) -> None:
        try:
            await handle.unload()
        except Exception:  # noqa: BLE001
            logger.exception("Error unloading model '%s'", self.model_id)

    # ------------------------------------------------------------------ #
    # Inference
    # ------------------------------------------------------------------ #

    async def infer(self, prompt: str, timeout_ms: float) -> str:
        if self.state is EngineState.INFERRING:
            raise EngineBusyError("An inference is already in flight")
        if self.state is not EngineState.LOADED or self._handle is None:
            raise EngineUnavailableError(f"Engine is {self.state.value}")

        generation = self._generation
        self.state = EngineState.INFERRING
        task = asyncio.create_task(self._handle.complete(prompt))
        self._infer_task = task
        try:
            return await asyncio.wait_for(task, timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError as exc:
            raise InferenceTimeoutError(
                f"No response from '{self.model_id}' within {timeout_ms:.0f} ms"
            ) from exc
        except asyncio.CancelledError:
            if generation != self._generation:
                raise EngineUnavailableError("Engine was unloaded during inference")
            raise
        except EngineError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Model '{self.model_id}' failed: {exc}") from exc
        finally:
            if generation == self._generation:
                self._infer_task = None
                self.state = EngineState.LOADED


__all__ = [
    "EngineState",
    "EngineHandle",
    "EngineFactory",
    "InferenceEngine",
]
