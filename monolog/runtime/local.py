"""In-process causal LM handle built on transformers.

Requires the ``local`` extra (torch + transformers). The package never imports
this module implicitly; callers opt in with :func:`local_engine_factory`.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer, GenerationConfig

from monolog.config import EngineConfig
from monolog.errors import ModelLoadError

from .engine import EngineFactory, EngineHandle

logger = logging.getLogger(__name__)


@dataclass
class LocalModelConfig:
    model_path: str
    tokenizer_path: Optional[str] = None
    max_new_tokens: int = 50
    temperature: float = 0.8
    top_p: float = 0.9
    device: Optional[str] = None
    max_prompt_tokens: int = 512


class TransformersEngineHandle:
    """Loads and runs the model exclusively on one worker thread."""

    def __init__(self, config: LocalModelConfig) -> None:
        self.config = config
        self.device = config.device or ("cuda" if torch.cuda.is_available() else "cpu")
        self.tokenizer: Any = None
        self.model: Any = None
        self.generation_config: Optional[GenerationConfig] = None
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="monolog-local")

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._worker, fn, *args)

    def _load(self) -> None:
        tokenizer_path = self.config.tokenizer_path or self.config.model_path
        self.tokenizer = AutoTokenizer.from_pretrained(tokenizer_path, use_fast=True)
        self.model = AutoModelForCausalLM.from_pretrained(
            self.config.model_path,
            torch_dtype=torch.float16 if torch.cuda.is_available() else torch.float32,
        )
        self.model.to(self.device)
        self.model.eval()
        self.generation_config = GenerationConfig(
            max_new_tokens=self.config.max_new_tokens,
            temperature=self.config.temperature,
            top_p=self.config.top_p,
            do_sample=True,
            pad_token_id=self.tokenizer.eos_token_id,
            eos_token_id=self.tokenizer.eos_token_id,
        )

    def _generate(self, prompt: str) -> str:
        inputs = self.tokenizer(
            prompt,
            return_tensors="pt",
            truncation=True,
            max_length=self.config.max_prompt_tokens,
        ).to(self.device)
        with torch.no_grad():
            output_ids = self.model.generate(
                **inputs,
                generation_config=self.generation_config,
                use_cache=True,
            )
        generated = output_ids[0][inputs["input_ids"].shape[1] :]
        return self.tokenizer.decode(generated, skip_special_tokens=True).strip()

    def _release(self) -> None:
        self.model = None
        self.tokenizer = None
        if torch.cuda.is_available():
            torch.cuda.empty_cache()

    async def reload(self) -> None:
        try:
            await self._run(self._load)
        except (OSError, ValueError, RuntimeError) as exc:
            raise ModelLoadError(
                f"Could not load local model '{self.config.model_path}': {exc}"
            ) from exc
        logger.info("Local model ready on %s", self.device)

    async def complete(self, prompt: str) -> str:
        if self.model is None:
            raise RuntimeError("Local model is not loaded")
        return await self._run(self._generate, prompt)

    async def unload(self) -> None:
        try:
            await self._run(self._release)
        finally:
            self._worker.shutdown(wait=False)


def local_engine_factory(
    config: Optional[EngineConfig] = None,
    *,
    tokenizer_path: Optional[str] = None,
    device: Optional[str] = None,
) -> EngineFactory:
    """``create_engine`` that treats the model id as a local path or hub id."""
    config = config or EngineConfig()

    async def create_engine(model_id: str) -> EngineHandle:
        return TransformersEngineHandle(
            LocalModelConfig(
                model_path=model_id,
                tokenizer_path=tokenizer_path,
                max_new_tokens=config.max_new_tokens,
                temperature=config.temperature,
                top_p=config.top_p,
                device=device,
            )
        )

    return create_engine


__all__ = ["LocalModelConfig", "TransformersEngineHandle", "local_engine_factory"]
