import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

from agent_core.errors import ModelLoadError
from agent_core.window import ConversationWindow, Turn
from agent_node.config import GenerationSettings
from agent_node.engine import LlamaCppEngine


class DummyLlama:
    def __init__(self, content="  A fresh thought.  "):
        self.content = content
        self.completions = []
        self.tokenize_calls = []

    def create_chat_completion(self, **kwargs):
        self.completions.append(kwargs)
        return {"choices": [{"message": {"role": "assistant", "content": self.content}}]}

    def tokenize(self, text, add_bos=True):
        self.tokenize_calls.append((text, add_bos))
        return list(text)

    def detokenize(self, tokens):
        return bytes(tokens)


def _window():
    return ConversationWindow(
        turns=(Turn("system", "sys"), Turn("user", "next please")),
        cursor=3,
    )


def test_generate_passes_messages_seed_and_sampling():
    llama = DummyLlama()
    engine = LlamaCppEngine(llama, GenerationSettings(max_tokens=64, temperature=0.5, top_p=0.9))

    text = engine.generate(_window(), seed=44)

    assert text == "A fresh thought."
    call = llama.completions[0]
    assert call["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "next please"},
    ]
    assert call["seed"] == 44
    assert call["max_tokens"] == 64
    assert call["temperature"] == 0.5


def test_empty_completion_yields_empty_text():
    engine = LlamaCppEngine(DummyLlama(content=None))
    assert engine.generate(_window(), seed=1) == ""


def test_tokenize_round_trip_without_bos():
    llama = DummyLlama()
    engine = LlamaCppEngine(llama)

    tokens = engine.tokenize("hé")
    assert llama.tokenize_calls == [("hé".encode("utf-8"), False)]
    assert engine.detokenize(tokens) == "hé"


def test_load_missing_model_raises(tmp_path):
    with pytest.raises(ModelLoadError):
        LlamaCppEngine.load(Path(tmp_path / "missing.gguf"))


def test_load_wraps_llama_constructor_failure(tmp_path, monkeypatch):
    def _refuse(**kwargs):
        raise ValueError("Failed to load model from file")

    monkeypatch.setitem(sys.modules, "llama_cpp", SimpleNamespace(Llama=_refuse))
    model = tmp_path / "broken.gguf"
    model.write_bytes(b"not gguf")

    with pytest.raises(ModelLoadError) as excinfo:
        LlamaCppEngine.load(model)
    assert "Failed to load model from file" in excinfo.value.detail
