"""The parsing automaton: actions, and the tables that hold them.

An action is one of four things:

- `Shift(state)`: consume the lookahead and push `state`.
- `Reduce(production)`: pop the right hand side of rule `production` and push
  whatever state the goto table says comes after its left hand side.
- `Accept()`: the parse is done and it worked.
- `Error()`: the parse is done and it didn't.

The tables themselves are built once, by `builder.build_table`, and never
change afterwards; an `Automaton` can be shared by as many parsers as you
like. (`builder.build_automaton` does both steps.)
"""

import dataclasses
import typing

from .grammar import PRODUCTIONS, TABLE_TERMINALS, NonTerminal, Production, Terminal


@dataclasses.dataclass(frozen=True)
class Action:
    pass


@dataclasses.dataclass(frozen=True)
class Shift(Action):
    state: int


@dataclasses.dataclass(frozen=True)
class Reduce(Action):
    production: int


@dataclasses.dataclass(frozen=True)
class Accept(Action):
    pass


@dataclasses.dataclass(frozen=True)
class Error(Action):
    pass


ParseAction = Shift | Reduce | Accept | Error


###############################################################################
# Compact encoding
###############################################################################
# Actions can be packed into a single integer for dumping tables: the kind
# lives in the bits above 16, the payload in the low 16 bits. The kind tag is
# the only thing that says what the payload means; a shift to 3 and a reduce by
# rule 3 have the same payload.
_TAG_SHIFT = 0x10000
_TAG_REDUCE = 0x20000
_TAG_ACCEPT = 0x30000
_TAG_ERROR = 0x40000
_TAG_MASK = 0xF0000
_VALUE_MASK = 0x0FFFF


def encode_action(action: ParseAction) -> int:
    match action:
        case Shift(state=value):
            tag = _TAG_SHIFT
        case Reduce(production=value):
            tag = _TAG_REDUCE
        case Accept():
            return _TAG_ACCEPT
        case Error():
            return _TAG_ERROR
        case _:
            typing.assert_never(action)

    if value < 0 or value > _VALUE_MASK:
        raise ValueError(f"Action payload {value} does not fit in 16 bits")
    return tag | value


def decode_action(encoded: int) -> ParseAction:
    if encoded & ~(_TAG_MASK | _VALUE_MASK):
        raise ValueError(f"Not an encoded action: {encoded:#x}")

    tag = encoded & _TAG_MASK
    value = encoded & _VALUE_MASK
    if tag == _TAG_SHIFT:
        return Shift(value)
    elif tag == _TAG_REDUCE:
        return Reduce(value)
    elif tag == _TAG_ACCEPT and value == 0:
        return Accept()
    elif tag == _TAG_ERROR and value == 0:
        return Error()

    raise ValueError(f"Not an encoded action: {encoded:#x}")


###############################################################################
# Tables
###############################################################################
@dataclasses.dataclass(frozen=True)
class ParseTable:
    """The raw tables. `actions[state]` maps a terminal to the action for that
    terminal; anything missing is an error. `gotos[state]` maps a nonterminal
    to the next state; anything missing is a bug in the tables."""

    actions: typing.Tuple[dict[Terminal, ParseAction], ...]
    gotos: typing.Tuple[dict[NonTerminal, int], ...]

    @property
    def state_count(self) -> int:
        return len(self.actions)


class Automaton:
    table: ParseTable
    productions: typing.Tuple[Production | None, ...]

    def __init__(self, table: ParseTable):
        self.table = table
        self.productions = PRODUCTIONS

    @property
    def state_count(self) -> int:
        return self.table.state_count

    def lookup_action(self, state: int, terminal: Terminal) -> ParseAction:
        """The action for `terminal` in `state`. Out of range states and
        terminals without a column are errors, not exceptions."""
        if state < 0 or state >= self.table.state_count:
            return Error()
        return self.table.actions[state].get(terminal, Error())

    def lookup_goto(self, state: int, nonterminal: NonTerminal) -> int | None:
        if state < 0 or state >= self.table.state_count:
            return None
        return self.table.gotos[state].get(nonterminal)

    def production(self, index: int) -> Production:
        if index < 1 or index >= len(self.productions):
            raise IndexError(f"No production {index}")
        production = self.productions[index]
        assert production is not None
        return production

    def describe(self, action: ParseAction) -> str:
        match action:
            case Shift(state=state):
                return f"Shift to state {state}"
            case Reduce(production=index):
                if 1 <= index < len(self.productions):
                    return f"Reduce by rule {index}: {self.production(index).text}"
                return f"Reduce by unknown rule {index}"
            case Accept():
                return "Accept"
            case Error():
                return "Error"
            case _:
                typing.assert_never(action)

    def format(self) -> str:
        """Format the parse table so pretty."""

        def format_action(actions: dict[Terminal, ParseAction], terminal: Terminal):
            action = actions.get(terminal)
            match action:
                case Accept():
                    return "acc"
                case Shift(state=state):
                    return f"s{state}"
                case Reduce(production=index):
                    return f"r{index}"
                case _:
                    return ""

        def format_goto(gotos: dict[NonTerminal, int], nt: NonTerminal):
            index = gotos.get(nt)
            if index is None:
                return ""
            else:
                return str(index)

        nonterminals = [nt for nt in NonTerminal if nt != NonTerminal.S]

        header = "     | {terms} | {nts}".format(
            terms=" ".join(f"{terminal.display: <4}" for terminal in TABLE_TERMINALS),
            nts=" ".join(f"{nt.display: <3}" for nt in nonterminals),
        )

        lines = [
            header,
            "-" * len(header),
        ] + [
            "{index: <4} | {actions} | {gotos}".format(
                index=i,
                actions=" ".join(
                    "{0: <4}".format(format_action(actions, terminal))
                    for terminal in TABLE_TERMINALS
                ),
                gotos=" ".join("{0: <3}".format(format_goto(gotos, nt)) for nt in nonterminals),
            )
            for i, (actions, gotos) in enumerate(zip(self.table.actions, self.table.gotos))
        ]
        return "\n".join(lines)
