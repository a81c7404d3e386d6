import io
import logging

import pytest

from hypothesis import given
from hypothesis.strategies import integers, one_of, recursive, sampled_from, tuples

from lrexpr import builder
from lrexpr.automaton import Automaton, ParseTable, Reduce, Shift
from lrexpr.grammar import NonTerminal, Terminal
from lrexpr.runtime import ParseOutcome, Parser, parse
from lrexpr.stack import ParseStack
from lrexpr.tokens import Token, TokenStream
from lrexpr.trace import ListSink, NullSink, StreamSink, TeeSink


@pytest.fixture(scope="module")
def parser() -> Parser:
    return Parser()


def _reduced_rules(sink: ListSink) -> list[int]:
    return [
        int(step.action.split()[3].rstrip(":"))
        for step in sink.steps
        if step.operation == "REDUCE"
    ]


def test_scenario_a_precedence(parser):
    """NUM + NUM * NUM: the multiplication is reduced first."""
    sink = ListSink()
    outcome = parser.parse_text("1 + 2 * 3", sink)

    assert outcome == ParseOutcome(success=True, steps_taken=14, error=None)
    assert sink.operations() == [
        "SHIFT",
        "REDUCE",
        "REDUCE",
        "REDUCE",
        "SHIFT",
        "SHIFT",
        "REDUCE",
        "REDUCE",
        "SHIFT",
        "SHIFT",
        "REDUCE",
        "REDUCE",
        "REDUCE",
        "ACCEPT",
    ]
    assert _reduced_rules(sink) == [7, 5, 3, 7, 5, 7, 4, 2]
    assert [step.step for step in sink.steps] == list(range(1, 15))


def test_scenario_b_dangling_plus(parser):
    sink = ListSink()
    outcome = parser.parse_text("1 +", sink)

    assert not outcome.success
    assert outcome.steps_taken == 6
    assert outcome.error is not None
    assert outcome.error.message == "Syntax error at line 1, position 3: unexpected token 'EOF'"
    assert outcome.error.lexeme == "EOF"
    assert not outcome.error.internal

    last = sink.steps[-1]
    assert last.operation == "ERROR"
    assert last.action == "Invalid syntax"
    # After the plus we wanted a factor.
    assert last.state == 6


def test_scenario_c_parentheses(parser):
    sink = ListSink()
    outcome = parser.parse_text("(1 + 2)", sink)

    assert outcome.success
    assert sink.operations()[-1] == "ACCEPT"
    assert 6 in _reduced_rules(sink)

    first = sink.steps[0]
    assert first.format() == "\n".join(
        [
            "Step 1:",
            "Current State: 0",
            'Stack Contents: [[0 <EOF, "$", 0, 0>]]',
            'Input Position: <LPAREN, "(", 1, 1> <NUM, "1", 1, 2> <PLUS, "+", 1, 4> '
            '<NUM, "2", 1, 6> <RPAREN, ")", 1, 7>',
            "Operation: SHIFT",
            "Action: Shift to state 4",
        ]
    )


def test_scenario_d_leading_rparen(parser):
    sink = ListSink()
    outcome = parser.parse_text(")", sink)

    assert not outcome.success
    assert outcome.steps_taken == 1
    assert outcome.error is not None
    assert outcome.error.line == 1
    assert outcome.error.message == "Syntax error at line 1, position 1: unexpected token ')'"
    assert sink.operations() == ["ERROR"]


def test_trace_records_state_before_transition(parser):
    sink = ListSink()
    parser.parse_text("42", sink)

    assert [(s.state, s.operation) for s in sink.steps] == [
        (0, "SHIFT"),
        (5, "REDUCE"),
        (3, "REDUCE"),
        (2, "REDUCE"),
        (1, "ACCEPT"),
    ]
    reduce_step = sink.steps[1]
    assert reduce_step.stack == '[[0 <EOF, "$", 0, 0>] [5 <NUM, "42", 1, 1>]]'
    assert reduce_step.lookahead == '<EOF, "EOF", 1, 2>'
    assert reduce_step.action == "Reduce by rule 7: f → NUM"

    accept_step = sink.steps[-1]
    assert accept_step.action == "Input accepted"
    assert accept_step.stack == '[[0 <EOF, "$", 0, 0>] [1 <e, "non-terminal", 0, 0>]]'


def test_invalid_character_is_a_syntax_error(parser):
    outcome = parser.parse_text("1 @ 2")

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.message == "Syntax error at line 1, position 3: unexpected token '@'"


def test_error_on_a_later_line(parser):
    outcome = parser.parse_text("1 +\n2 *\n)")

    assert outcome.error is not None
    assert outcome.error.line == 3
    assert outcome.error.lexeme == ")"


def test_no_sink_gives_same_outcome(parser):
    text = "(1 + 2) * 3 + 4"
    assert parser.parse_text(text) == parser.parse_text(text, NullSink())
    assert parser.parse_text(text) == parser.parse_text(text, ListSink())
    assert parse(text).success


def test_stream_sink_writes_steps():
    out = io.StringIO()
    parse("1", StreamSink(out))

    text = out.getvalue()
    assert text.startswith("Step 1:\nCurrent State: 0\n")
    assert text.count("Step ") == 5
    assert "Operation: ACCEPT\nAction: Input accepted\n\n" in text


class BrokenSink:
    def write(self, step):
        raise OSError("disk full")


def test_failing_sink_does_not_stop_the_parse(parser, caplog):
    sink = ListSink()
    with caplog.at_level(logging.WARNING, logger="lrexpr.trace"):
        outcome = parser.parse_text("1 * 2", TeeSink(BrokenSink(), sink))

    assert outcome.success
    assert len(sink.steps) == outcome.steps_taken
    assert "disk full" in caplog.text


def test_action_log(parser, caplog):
    with caplog.at_level(logging.INFO, logger="lrexpr.action"):
        parser.parse_text("1")

    assert len(caplog.records) == 5
    assert "Shift(state=5)" in caplog.records[0].getMessage()


def test_missing_goto_is_an_internal_error():
    table = builder.build_table()
    gotos = list(table.gotos)
    gotos[0] = {k: v for k, v in gotos[0].items() if k != NonTerminal.F}
    broken = Parser(Automaton(ParseTable(actions=table.actions, gotos=tuple(gotos))))

    outcome = broken.parse_text("1")

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.internal
    assert outcome.error.message == (
        "Reduce operation failed at line 1, position 1 on token 'EOF': "
        "Invalid goto state for non-terminal f from state 0"
    )
    assert outcome.error.lexeme == "EOF"
    assert outcome.steps_taken == 2


def test_stack_underflow_is_an_internal_error():
    # Reduce a three symbol rule with nothing on the stack.
    table = ParseTable(actions=({Terminal.NUM: Reduce(2)},), gotos=({},))
    outcome = Parser(Automaton(table)).parse_text("1")

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.internal
    assert "Stack underflow" in outcome.error.message


def test_unknown_production_is_an_internal_error():
    table = ParseTable(actions=({Terminal.NUM: Reduce(42)},), gotos=({},))
    outcome = Parser(Automaton(table)).parse_text("1")

    assert outcome.error is not None
    assert outcome.error.internal


def test_shift_to_nowhere_fails_cleanly():
    """A shift to a state that doesn't exist turns into a syntax error on the
    next lookup, never an exception."""
    table = ParseTable(actions=({Terminal.NUM: Shift(99)},), gotos=({},))
    outcome = Parser(Automaton(table)).parse_text("1")

    assert not outcome.success
    assert outcome.steps_taken == 2
    assert outcome.error is not None
    assert not outcome.error.internal


def test_shift_on_end_of_input_is_an_internal_error():
    """The source never moves past EOF, so a table that shifts it must stop
    the parse instead of pushing EOF forever."""
    table = ParseTable(
        actions=({Terminal.NUM: Shift(1)}, {Terminal.EOF: Shift(1)}),
        gotos=({}, {}),
    )
    sink = ListSink()
    outcome = Parser(Automaton(table)).parse_text("1", sink)

    assert not outcome.success
    assert outcome.steps_taken == 2
    assert outcome.error is not None
    assert outcome.error.internal
    assert outcome.error.lexeme == "EOF"
    assert outcome.error.message == (
        "Shift operation failed at line 1, position 1 on token 'EOF': Shift past end of input"
    )
    assert sink.operations() == ["SHIFT", "SHIFT"]


class DrySource:
    """A token source that runs out without ever producing EOF."""

    def __init__(self, tokens):
        self.tokens = list(tokens)

    def has_next(self):
        return len(self.tokens) > 0

    def peek(self):
        return self.tokens[0] if self.tokens else None

    def next(self):
        return self.tokens.pop(0) if self.tokens else None


def test_exhausted_source_fails(parser):
    outcome = parser.parse(DrySource([Token(Terminal.NUM, "1", 1, 1)]))

    assert not outcome.success
    assert outcome.steps_taken == 1
    assert outcome.error is not None
    assert outcome.error.message == "Unexpected end of input without accept"


@pytest.mark.parametrize("production", [2, 3, 4, 5, 6, 7])
def test_reduce_changes_stack_size_by_one_minus_k(parser, production):
    rule = parser.automaton.production(production)
    stack = ParseStack()
    stack.push(0, Token(Terminal.EOF, "$", 0, 0))
    for i in range(len(rule.right)):
        stack.push(i + 1, Token(Terminal.NUM, "1", 1, 1))

    before = stack.size()
    parser._reduce(stack, production)

    assert stack.size() - before == 1 - len(rule.right)
    assert stack.peek().symbol.kind == rule.left


###############################################################################
# Properties over generated expressions
###############################################################################
numbers = integers(min_value=0, max_value=10**9).map(str)
expressions = recursive(
    numbers,
    lambda children: one_of(
        tuples(children, sampled_from(["+", "*"]), children).map(" ".join),
        children.map(lambda e: f"({e})"),
    ),
    max_leaves=15,
)


@given(expressions)
def test_valid_expressions_accept(text):
    sink = ListSink()
    outcome = Parser().parse_text(text, sink)

    assert outcome.success
    assert outcome.error is None

    ops = sink.operations()
    shifts = ops.count("SHIFT")
    reduces = ops.count("REDUCE")
    assert outcome.steps_taken == shifts + reduces + 1
    assert ops[-1] == "ACCEPT"

    # Every token gets shifted exactly once.
    tokens = TokenStream.from_text(text).preview(10_000)
    assert shifts == len(tokens) - 1

    # Every NUM and every pair of parentheses makes an f, every f makes a t,
    # and each e comes from a t: one for the whole thing, one per pair of
    # parentheses, one per plus.
    nums = sum(1 for t in tokens if t.kind == Terminal.NUM)
    parens = sum(1 for t in tokens if t.kind == Terminal.LPAREN)
    plusses = sum(1 for t in tokens if t.kind == Terminal.PLUS)
    assert reduces == 2 * (nums + parens) + 1 + parens + plusses


@given(expressions)
def test_unmatched_rparen_names_the_token(text):
    source = text + " )"
    outcome = Parser().parse_text(source)

    assert not outcome.success
    assert outcome.error is not None
    assert not outcome.error.internal
    assert outcome.error.line == 1
    assert outcome.error.position == len(source)
    assert outcome.error.lexeme == ")"


def _stack_depth(rendered: str) -> int:
    # Rendered as "[[s <tok>] [s <tok>] ...]"; no lexeme contains a bracket.
    return rendered.count("[") - 1


@given(expressions)
def test_each_reduce_changes_stack_depth_by_one_minus_k(text):
    sink = ListSink()
    parser = Parser()
    assert parser.parse_text(text, sink).success

    for step, following in zip(sink.steps, sink.steps[1:]):
        if step.operation != "REDUCE":
            continue
        rule = int(step.action.split()[3].rstrip(":"))
        k = len(parser.automaton.production(rule).right)
        assert _stack_depth(following.stack) - _stack_depth(step.stack) == 1 - k
