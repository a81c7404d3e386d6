"""Everything that can go wrong, in one place.

There are two very different families of failure in here, and it is worth
keeping them apart. A `ParseSyntaxError` is the user's fault: they handed us
an expression that doesn't match the grammar. An `InternalConsistencyError`
is *our* fault: the tables and the productions disagree about something, and
no input should ever be able to cause one.
"""

import typing


class LRExprError(Exception):
    pass


class SourceUnavailable(LRExprError):
    """The token source could not be opened, so no parse was even attempted."""

    path: str

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to open input file: {path} ({reason})")
        self.path = path


class ParseSyntaxError(LRExprError):
    line: int
    position: int
    lexeme: str

    def __init__(self, line: int, position: int, lexeme: str):
        super().__init__(
            f"Syntax error at line {line}, position {position}: unexpected token '{lexeme}'"
        )
        self.line = line
        self.position = position
        self.lexeme = lexeme


class InternalConsistencyError(LRExprError):
    pass


class StackUnderflow(InternalConsistencyError):
    def __init__(self):
        super().__init__("Stack underflow")


class StackEmpty(InternalConsistencyError):
    def __init__(self):
        super().__init__("Peek on an empty stack")


class ShiftPastEnd(InternalConsistencyError):
    def __init__(self):
        super().__init__("Shift past end of input")


class MissingGoto(InternalConsistencyError):
    state: int
    nonterminal: str

    def __init__(self, state: int, nonterminal: str):
        super().__init__(f"Invalid goto state for non-terminal {nonterminal} from state {state}")
        self.state = state
        self.nonterminal = nonterminal


class ConflictError(LRExprError):
    """The table builder found more than one action for a single cell.

    Each conflict is (state, terminal name, tuple of action descriptions).
    """

    conflicts: list[typing.Tuple[int, str, typing.Tuple[str, ...]]]

    def __init__(self, conflicts):
        self.conflicts = conflicts

    def __str__(self):
        lines = [f"{len(self.conflicts)} conflicts:"]
        for state, terminal, actions in self.conflicts:
            lines.append(f"- state {state} on {terminal}: {' / '.join(actions)}")
        return "\n".join(lines)
