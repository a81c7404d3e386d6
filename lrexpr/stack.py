import dataclasses

from .errors import StackEmpty, StackUnderflow
from .tokens import Token


@dataclasses.dataclass(frozen=True)
class StackEntry:
    state: int
    symbol: Token

    def format(self) -> str:
        return f"[{self.state} {self.symbol.format()}]"


class ParseStack:
    """The parser stack: (state, symbol) pairs, newest last.

    The state drives the table lookups; the symbol is only ever looked at
    when we render the stack for the trace. Entries are immutable values, so
    it doesn't matter who else is holding on to the tokens.
    """

    _entries: list[StackEntry]

    def __init__(self):
        self._entries = []

    def push(self, state: int, symbol: Token):
        self._entries.append(StackEntry(state, symbol))

    def pop(self) -> StackEntry:
        if len(self._entries) == 0:
            raise StackUnderflow()
        return self._entries.pop()

    def peek(self) -> StackEntry:
        if len(self._entries) == 0:
            raise StackEmpty()
        return self._entries[-1]

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def states(self) -> list[int]:
        return [entry.state for entry in self._entries]

    def render(self) -> str:
        """The whole stack, oldest entry first."""
        return "[" + " ".join(entry.format() for entry in self._entries) + "]"
