"""llama.cpp generation engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Sequence

from agent_core.errors import ModelLoadError
from agent_core.window import ConversationWindow

from .config import AgentConfig, GenerationSettings

LOGGER = logging.getLogger(__name__)


class LlamaCppEngine:
    """Chat completion over a local GGUF model."""

    engine = "llama_cpp"

    def __init__(self, llama: Any, generation: GenerationSettings | None = None) -> None:
        self._llama = llama
        self._generation = generation or GenerationSettings()

    @classmethod
    def load(
        cls,
        model_path: Path,
        *,
        n_ctx: int = 8192,
        n_gpu_layers: int = -1,
        generation: GenerationSettings | None = None,
    ) -> "LlamaCppEngine":
        try:
            from llama_cpp import Llama
        except ImportError as exc:  # pragma: no cover - import guard
            raise ModelLoadError("llama_cpp is not installed") from exc

        if not model_path.exists():
            raise ModelLoadError(f"Quantized model {model_path} does not exist")

        try:
            llama = Llama(
                model_path=str(model_path),
                n_ctx=n_ctx,
                n_gpu_layers=n_gpu_layers,
                flash_attn=True,
                use_mlock=True,
                verbose=False,
            )
        except (ValueError, RuntimeError, OSError) as exc:
            raise ModelLoadError(f"Failed to load model {model_path}", detail=str(exc)) from exc
        LOGGER.info("Loaded model %s", model_path)
        return cls(llama, generation)

    @classmethod
    def from_config(cls, config: AgentConfig) -> "LlamaCppEngine":
        return cls.load(
            config.model_path,
            n_ctx=config.n_ctx,
            n_gpu_layers=config.n_gpu_layers,
            generation=config.generation,
        )

    def generate(self, window: ConversationWindow, seed: int) -> str:
        response = self._llama.create_chat_completion(
            messages=window.as_messages(),
            seed=seed,
            max_tokens=self._generation.max_tokens,
            temperature=self._generation.temperature,
            top_p=self._generation.top_p,
        )
        message = response.get("choices", [{}])[0].get("message", {})
        return str(message.get("content") or "").strip()

    def tokenize(self, text: str) -> List[int]:
        return list(self._llama.tokenize(text.encode("utf-8"), add_bos=False))

    def detokenize(self, tokens: Sequence[int]) -> str:
        return self._llama.detokenize([int(t) for t in tokens]).decode("utf-8", errors="replace")


__all__ = ["LlamaCppEngine"]
