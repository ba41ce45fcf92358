"""Operator yes/no prompt."""

from __future__ import annotations

from typing import Callable


def confirm(question: str, *, input_fn: Callable[[str], str] = input) -> bool:
    """Ask ``question`` on the terminal; any answer starting with "y" is a yes."""

    try:
        answer = input_fn(f"{question} (yes/no) ")
    except EOFError:
        return False
    return answer.strip().lower().startswith("y")


__all__ = ["confirm"]
