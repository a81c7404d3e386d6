"""The token source: turn arithmetic source text into a stream of tokens.

The scanner is tiny. Whitespace is skipped, `+ * ( )` are one character each,
runs of digits are numbers, and anything else becomes an INVALID token (with
a warning) so that the parser gets to report it with a proper line and
position instead of the scanner blowing up halfway through the file.

Lines and positions are 1-based. A position is the column of the first
character of the token on its line.
"""

import dataclasses
import logging
import pathlib
import typing

from .errors import SourceUnavailable
from .grammar import NonTerminal, Terminal

scanner_log = logging.getLogger("lrexpr.scanner")

# Longest run of digits that makes one NUM token; a longer run just keeps
# going as another NUM.
MAX_NUMBER_LENGTH = 31

_SINGLE_CHARACTER = {
    "+": Terminal.PLUS,
    "*": Terminal.STAR,
    "(": Terminal.LPAREN,
    ")": Terminal.RPAREN,
}


@dataclasses.dataclass(frozen=True)
class Token:
    kind: Terminal | NonTerminal
    lexeme: str
    line: int
    position: int

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.kind, Terminal)

    def format(self) -> str:
        if isinstance(self.kind, Terminal):
            kind = self.kind.name
        else:
            kind = self.kind.display
        return f'<{kind}, "{self.lexeme}", {self.line}, {self.position}>'

    def __str__(self) -> str:
        return self.format()


def placeholder(nonterminal: NonTerminal) -> Token:
    """The value pushed for a non-terminal after a reduction. Something that
    built a tree would push a node here instead."""
    return Token(kind=nonterminal, lexeme="non-terminal", line=0, position=0)


class Scanner:
    """Scan a string into tokens.

    All of the scan state (where we are, what line, what column) lives on the
    instance, so two scanners never interfere with each other.
    """

    text: str
    index: int
    line: int
    position: int

    def __init__(self, text: str):
        self.text = text
        self.index = 0
        self.line = 1
        self.position = 0

    def _getc(self) -> str | None:
        if self.index >= len(self.text):
            return None
        c = self.text[self.index]
        self.index += 1
        return c

    def _skip_whitespace(self) -> str | None:
        """Skip to the next interesting character, consume it, and return it.
        Returns None at the end of the input."""
        while True:
            c = self._getc()
            if c is None:
                return None
            if c == "\n":
                self.line += 1
                self.position = 0
            elif c.isspace():
                self.position += 1
            else:
                self.position += 1
                return c

    def scan(self) -> Token:
        """Produce the next token. Once the input is exhausted this keeps
        returning EOF tokens."""
        c = self._skip_whitespace()
        if c is None:
            return Token(Terminal.EOF, "EOF", self.line, self.position)

        kind = _SINGLE_CHARACTER.get(c)
        if kind is not None:
            return Token(kind, c, self.line, self.position)

        if c.isdigit() and c.isascii():
            start = self.position
            digits = [c]
            while len(digits) < MAX_NUMBER_LENGTH and self.index < len(self.text):
                c = self.text[self.index]
                if not (c.isdigit() and c.isascii()):
                    break
                digits.append(c)
                self.index += 1
                self.position += 1
            return Token(Terminal.NUM, "".join(digits), self.line, start)

        scanner_log.warning(
            "Invalid character %r at line %d, position %d", c, self.line, self.position
        )
        return Token(Terminal.INVALID, c, self.line, self.position)

    def tokens(self) -> typing.Iterator[Token]:
        """Every token in the input, ending with exactly one EOF."""
        while True:
            token = self.scan()
            yield token
            if token.kind == Terminal.EOF:
                return


class TokenStream:
    """A stream of tokens with one token of lookahead.

    `peek` shows the current token without consuming it, `next` consumes it.
    The stream ends with a single EOF token; `next` hands that one back
    forever rather than running off the end.
    """

    _source: typing.Iterator[Token]
    _buffer: list[Token]
    _index: int

    def __init__(self, tokens: typing.Iterable[Token]):
        self._source = iter(tokens)
        self._buffer = []
        self._index = 0
        self._fill(1)
        if len(self._buffer) == 0:
            raise ValueError("A token stream needs at least an EOF token")

    @classmethod
    def from_text(cls, text: str) -> "TokenStream":
        return cls(Scanner(text).tokens())

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "TokenStream":
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            scanner_log.error("Failed to open file: %s", path)
            raise SourceUnavailable(str(path), str(e)) from e

        return cls.from_text(text)

    def _fill(self, count: int):
        """Make sure there are at least `count` tokens buffered from the
        current one, or that we've buffered the EOF."""
        while len(self._buffer) - self._index < count:
            if len(self._buffer) > 0 and self._buffer[-1].kind == Terminal.EOF:
                return
            token = next(self._source, None)
            if token is None:
                return
            self._buffer.append(token)

    def has_next(self) -> bool:
        return self._buffer[self._index].kind != Terminal.EOF

    def peek(self) -> Token:
        return self._buffer[self._index]

    def next(self) -> Token:
        token = self._buffer[self._index]
        if token.kind != Terminal.EOF:
            self._index += 1
            self._fill(1)
            if self._index >= len(self._buffer):
                # The source dried up without an EOF; make one up so that the
                # stream is always terminated.
                last = self._buffer[-1]
                self._buffer.append(Token(Terminal.EOF, "EOF", last.line, last.position))
        return token

    def preview(self, count: int = 5) -> list[Token]:
        """The current token plus up to `count - 1` that follow it."""
        self._fill(count)
        return self._buffer[self._index : self._index + count]
