"""Model runtime handles backed by a local Ollama server."""

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

import requests

from monolog.config import EngineConfig
from monolog.errors import EngineBusyError, InferenceError, ModelLoadError

from .engine import EngineFactory, EngineHandle

logger = logging.getLogger(__name__)


class OllamaEngineHandle:
    """HTTP handle; every request runs on a dedicated single worker thread.

    Cancelling an awaiting caller does not stop a request the worker already
    started. Until that request returns, ``complete`` raises
    ``EngineBusyError`` instead of queueing behind it.
    """

    def __init__(
        self,
        *,
        model: str,
        endpoint: str = "http://localhost:11434/api/generate",
        timeout: float = 30.0,
        options: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.model = model
        self.endpoint = endpoint
        self.timeout = timeout
        self.options = options or {}
        self.session = session or requests.Session()
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="monolog-model")
        self._inflight: Optional[Future] = None

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def _submit(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        future = self._worker.submit(self._post, payload)
        self._inflight = future
        return await asyncio.wrap_future(future)

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(
            self.endpoint,
            data=json.dumps(payload),
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        return response.json()

    async def reload(self) -> None:
        # An empty prompt makes Ollama load the model into memory.
        payload = {"model": self.model, "prompt": "", "stream": False}
        try:
            await self._submit(payload)
        except requests.RequestException as exc:
            raise ModelLoadError(f"Ollama could not load '{self.model}': {exc}") from exc

    async def complete(self, prompt: str) -> str:
        if self.busy:
            raise EngineBusyError(f"A previous request to '{self.model}' is still running")
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": self.options,
        }
        try:
            data = await self._submit(payload)
        except requests.RequestException as exc:
            raise InferenceError(f"Ollama request failed: {exc}") from exc
        return data.get("response") or data.get("output") or ""

    async def unload(self) -> None:
        payload = {"model": self.model, "keep_alive": 0}
        try:
            await self._submit(payload)
        except requests.RequestException as exc:
            logger.warning("Ollama unload for '%s' failed: %s", self.model, exc)
        finally:
            self._worker.shutdown(wait=False)


def ollama_engine_factory(config: Optional[EngineConfig] = None) -> EngineFactory:
    """Build a ``create_engine`` callable for :class:`InferenceEngine`."""
    config = config or EngineConfig()

    async def create_engine(model_id: str) -> EngineHandle:
        logger.debug("Creating Ollama handle for '%s' at %s", model_id, config.endpoint)
        return OllamaEngineHandle(
            model=model_id,
            endpoint=config.endpoint,
            timeout=config.request_timeout,
            options={
                "temperature": config.temperature,
                "top_p": config.top_p,
                "num_predict": config.max_new_tokens,
            },
        )

    return create_engine


__all__ = ["OllamaEngineHandle", "ollama_engine_factory"]
