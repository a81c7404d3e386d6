"""The one grammar this package knows how to parse.

    1. s -> e
    2. e -> e + t
    3. e -> t
    4. t -> t * f
    5. t -> f
    6. f -> ( e )
    7. f -> NUM

Productions are numbered from 1, because that's how the tables (and every
textbook) talk about them. Slot 0 of `PRODUCTIONS` is deliberately `None` so
that `PRODUCTIONS[n]` is "rule n" without any off-by-one fiddling.

The start symbol `s` has exactly one production and never appears on a right
hand side, so it does the job of the augmented start symbol: when the parser
has `s -> e *` on top of the stack and sees EOF, it accepts.
"""

import dataclasses
import enum
import typing


class Terminal(enum.Enum):
    """Token classes. INVALID has no column in the action table, so every
    lookup on it is an error."""

    NUM = "NUM"
    PLUS = "PLUS"
    STAR = "STAR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    EOF = "EOF"
    INVALID = "INVALID"

    @property
    def display(self) -> str:
        return _TERMINAL_DISPLAY[self]


_TERMINAL_DISPLAY = {
    Terminal.NUM: "NUM",
    Terminal.PLUS: "+",
    Terminal.STAR: "*",
    Terminal.LPAREN: "(",
    Terminal.RPAREN: ")",
    Terminal.EOF: "$",
    Terminal.INVALID: "INVALID",
}

# The terminals that actually have a column in the action table.
TABLE_TERMINALS = (
    Terminal.NUM,
    Terminal.PLUS,
    Terminal.STAR,
    Terminal.LPAREN,
    Terminal.RPAREN,
    Terminal.EOF,
)


class NonTerminal(enum.Enum):
    S = "s"
    E = "e"
    T = "t"
    F = "f"

    @property
    def display(self) -> str:
        return self.value


Symbol = Terminal | NonTerminal


@dataclasses.dataclass(frozen=True)
class Production:
    index: int
    left: NonTerminal
    right: typing.Tuple[Symbol, ...]
    text: str

    def __len__(self) -> int:
        return len(self.right)

    def __str__(self) -> str:
        return self.text


def _production(index: int, left: NonTerminal, *right: Symbol) -> Production:
    text = "{left} → {right}".format(
        left=left.display,
        right=" ".join(symbol.display for symbol in right),
    )
    return Production(index=index, left=left, right=tuple(right), text=text)


_S, _E, _T, _F = NonTerminal.S, NonTerminal.E, NonTerminal.T, NonTerminal.F

PRODUCTIONS: typing.Tuple[Production | None, ...] = (
    None,
    _production(1, _S, _E),
    _production(2, _E, _E, Terminal.PLUS, _T),
    _production(3, _E, _T),
    _production(4, _T, _T, Terminal.STAR, _F),
    _production(5, _T, _F),
    _production(6, _F, Terminal.LPAREN, _E, Terminal.RPAREN),
    _production(7, _F, Terminal.NUM),
)

START = NonTerminal.S
PRODUCTION_COUNT = len(PRODUCTIONS) - 1


def productions_for(name: NonTerminal) -> list[Production]:
    """All the productions with `name` on the left, in rule order."""
    return [p for p in PRODUCTIONS[1:] if p is not None and p.left == name]
