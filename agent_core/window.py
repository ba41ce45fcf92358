"""Conversation window assembly for one generation cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Sequence, Tuple

from .storage import SubmissionStore

Role = Literal["system", "user", "assistant"]

DEFAULT_WINDOW_SIZE = 6
DEFAULT_TURN_TEMPLATE = (
    "Produce thought/interaction/inner monologue number {index}, remember to account "
    "for previous interactions and roleplay the character. Proceed right to roleplay "
    "without elaboration."
)


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ConversationWindow:
    """Ordered prompt handed to the generation engine.

    ``turns`` always starts with the system preamble and ends with an
    unanswered user turn; ``indices`` lists the cache records replayed as
    answered exchanges.
    """

    turns: Tuple[Turn, ...]
    cursor: int
    indices: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def answered(self) -> Tuple[Turn, ...]:
        return tuple(turn for turn in self.turns if turn.role == "assistant")

    @property
    def pending(self) -> Turn:
        return self.turns[-1]

    def as_messages(self) -> List[Dict[str, str]]:
        return [turn.as_message() for turn in self.turns]


def next_label(cursor: int, *, legacy: bool = False) -> str:
    """Label used in the final prompt for the entry after ``cursor``.

    ``legacy`` reproduces the string-concatenated label of earlier agents
    (cursor 7 yields ``"71"``).
    """

    if legacy:
        return f"{cursor}1"
    return str(cursor + 1)


def build_window(
    store: SubmissionStore,
    detokenize: Callable[[Sequence[int]], str],
    cursor: int,
    *,
    system_prompt: str,
    turn_template: str = DEFAULT_TURN_TEMPLATE,
    size: int = DEFAULT_WINDOW_SIZE,
    legacy_label: bool = False,
) -> ConversationWindow:
    """Replay up to ``size`` records ending at ``cursor`` and ask for the next one."""

    if size < 1:
        raise ValueError("window size must be at least 1")

    turns: List[Turn] = [Turn("system", system_prompt)]
    indices: List[int] = []
    for index, tokens in store.records(cursor - (size - 1), cursor):
        turns.append(Turn("user", turn_template.format(index=index)))
        turns.append(Turn("assistant", detokenize(tokens)))
        indices.append(index)
    turns.append(Turn("user", turn_template.format(index=next_label(cursor, legacy=legacy_label))))
    return ConversationWindow(turns=tuple(turns), cursor=cursor, indices=tuple(indices))


__all__ = [
    "DEFAULT_TURN_TEMPLATE",
    "DEFAULT_WINDOW_SIZE",
    "ConversationWindow",
    "Role",
    "Turn",
    "build_window",
    "next_label",
]
