"""Build the SLR parse table for the expression grammar.

This is the textbook construction, more or less straight out of the dragon
book (or the Stanford CS143 handouts, which are easier to find):

1. Start with the closure of `s -> * e`. That's state 0.
2. For every state, and every symbol that appears right after a dot, advance
   the dot over that symbol and take the closure. That's the successor state
   on that symbol; if we've seen the same set of items before we reuse it.
3. In the finished states, a dot before a terminal is a shift, a dot at the
   end of `s -> e` is an accept on EOF, and a dot at the end of anything else
   is a reduce on every terminal in FOLLOW of the left hand side.

States are discovered breadth first, and the symbols out of each state are
visited in the order they first appear after a dot in the closure, so the
state numbers always come out the same (and match the usual drawings of
this automaton).

SLR can't do anything about ambiguity, and we don't try. If two different
actions land in the same cell we raise a `ConflictError` describing all of
them.
"""

import collections
import dataclasses
import logging
import typing

from .automaton import Accept, Automaton, ParseAction, ParseTable, Reduce, Shift
from .errors import ConflictError
from .grammar import (
    PRODUCTIONS,
    START,
    NonTerminal,
    Production,
    Symbol,
    Terminal,
    productions_for,
)

build_log = logging.getLogger("lrexpr.builder")


class Item(typing.NamedTuple):
    """A position within a production: `e -> e * + t` is
    Item(production=2, position=1)."""

    production: int
    position: int

    @property
    def rule(self) -> Production:
        rule = PRODUCTIONS[self.production]
        assert rule is not None
        return rule

    @property
    def at_end(self) -> bool:
        return self.position == len(self.rule.right)

    @property
    def next(self) -> Symbol | None:
        right = self.rule.right
        if self.position == len(right):
            return None
        return right[self.position]

    def advance(self) -> "Item":
        return Item(self.production, self.position + 1)

    def format(self) -> str:
        right = self.rule.right
        bits = [
            ("* " + sym.display) if i == self.position else sym.display
            for i, sym in enumerate(right)
        ]
        if self.at_end:
            bits.append("*")
        return f"{self.rule.left.display} -> {' '.join(bits)}"


# An item set is a tuple rather than a set so that the order of the items
# (and therefore the order we discover successors in) is stable.
ItemSet = typing.Tuple[Item, ...]


def update_changed(items: set[Terminal], other: set[Terminal]) -> bool:
    """Merge the `other` set into the `items` set, and return True if this
    changed the items set.
    """
    old_len = len(items)
    items.update(other)
    return old_len != len(items)


@dataclasses.dataclass(frozen=True)
class FirstInfo:
    """FIRST for every nonterminal, plus whether it can match nothing at all.

    (Nothing in this grammar is nullable, but FOLLOW is wrong if you forget
    about epsilon, so we keep track of it anyway.)
    """

    firsts: dict[NonTerminal, set[Terminal]]
    is_epsilon: dict[NonTerminal, bool]

    @classmethod
    def from_grammar(cls, productions=PRODUCTIONS) -> "FirstInfo":
        firsts: dict[NonTerminal, set[Terminal]] = {nt: set() for nt in NonTerminal}
        epsilons = {nt: False for nt in NonTerminal}

        # Iterate to a fixed point; the grammar is left recursive so naive
        # recursion would never finish.
        changed = True
        while changed:
            changed = False
            for production in productions[1:]:
                assert production is not None
                name = production.left
                if len(production.right) == 0:
                    changed = changed or not epsilons[name]
                    epsilons[name] = True
                    continue

                for index, symbol in enumerate(production.right):
                    if isinstance(symbol, Terminal):
                        changed = update_changed(firsts[name], {symbol}) or changed
                        break

                    changed = update_changed(firsts[name], firsts[symbol]) or changed
                    if not epsilons[symbol]:
                        break

                    if index == len(production.right) - 1:
                        changed = changed or not epsilons[name]
                        epsilons[name] = True

        return FirstInfo(firsts=firsts, is_epsilon=epsilons)

    def first(self, symbol: Symbol) -> set[Terminal]:
        if isinstance(symbol, Terminal):
            return {symbol}
        return self.firsts[symbol]

    def nullable(self, symbol: Symbol) -> bool:
        if isinstance(symbol, Terminal):
            return False
        return self.is_epsilon[symbol]


@dataclasses.dataclass(frozen=True)
class FollowInfo:
    """FOLLOW for every nonterminal: the terminals that can show up right
    after it. FOLLOW of the start symbol always has EOF in it, and so does
    FOLLOW of anything that can end a sentence."""

    follows: dict[NonTerminal, set[Terminal]]

    @classmethod
    def from_grammar(cls, firsts: FirstInfo, productions=PRODUCTIONS) -> "FollowInfo":
        follows: dict[NonTerminal, set[Terminal]] = {nt: set() for nt in NonTerminal}
        follows[START].add(Terminal.EOF)

        changed = True
        while changed:
            changed = False
            for production in productions[1:]:
                assert production is not None
                # Walk backwards: as long as everything after the current
                # symbol can be empty, FOLLOW of the left hand side flows into
                # FOLLOW of the current symbol. `trailer` is FIRST of
                # everything after the current symbol, up to and including
                # the first one that can't be empty.
                epsilon = True
                trailer: set[Terminal] = set()
                for symbol in reversed(production.right):
                    if isinstance(symbol, Terminal):
                        epsilon = False
                        trailer = {symbol}
                        continue

                    f = follows[symbol]
                    if epsilon:
                        changed = update_changed(f, follows[production.left]) or changed
                    changed = update_changed(f, trailer) or changed

                    if firsts.nullable(symbol):
                        trailer = trailer | firsts.first(symbol)
                    else:
                        epsilon = False
                        trailer = set(firsts.first(symbol))

        return FollowInfo(follows=follows)


def closure(items: typing.Iterable[Item]) -> ItemSet:
    """Close over an item set: every item with a dot in front of a
    nonterminal drags in all the productions of that nonterminal, with the
    dot at the start."""
    result: list[Item] = []
    seen: set[Item] = set()
    todo = collections.deque(items)
    while len(todo) > 0:
        item = todo.popleft()
        if item in seen:
            continue
        seen.add(item)
        result.append(item)

        next = item.next
        if isinstance(next, NonTerminal):
            for production in productions_for(next):
                todo.append(Item(production.index, 0))

    return tuple(result)


def goto(items: ItemSet, symbol: Symbol) -> ItemSet:
    return closure(item.advance() for item in items if item.next == symbol)


@dataclasses.dataclass
class StateGraph:
    """All the item sets, and the edges between them. `successors[i]` maps a
    grammar symbol to the index of the state you get to on that symbol."""

    closures: list[ItemSet]
    successors: list[dict[Symbol, int]]

    def dump_state(self) -> str:
        lines = []
        for index, (items, successors) in enumerate(zip(self.closures, self.successors)):
            lines.append(f"State {index}:")
            lines.extend(f"    {item.format()}" for item in items)
            for symbol, target in successors.items():
                lines.append(f"    on {symbol.display} -> {target}")
        return "\n".join(lines)


def gen_sets() -> StateGraph:
    start_rules = productions_for(START)
    start = closure(Item(p.index, 0) for p in start_rules)

    closures: list[ItemSet] = [start]
    successors: list[dict[Symbol, int]] = []
    index_of: dict[frozenset[Item], int] = {frozenset(start): 0}

    state_i = 0
    while state_i < len(closures):
        items = closures[state_i]
        edges: dict[Symbol, int] = {}
        for item in items:
            sym = item.next
            if sym is None or sym in edges:
                continue

            nstate = goto(items, sym)
            key = frozenset(nstate)
            target = index_of.get(key)
            if target is None:
                target = len(closures)
                index_of[key] = target
                closures.append(nstate)
                build_log.debug("state %d on %s -> new state %d", state_i, sym.display, target)
            edges[sym] = target

        successors.append(edges)
        state_i += 1

    return StateGraph(closures=closures, successors=successors)


class TableBuilder:
    """A helper object to assemble actions into parse tables.

    Call `new_row` at the start of each row, then `flush` when you're done
    with the last row.
    """

    actions: list[dict[Terminal, ParseAction]]
    gotos: list[dict[NonTerminal, int]]
    conflicts: list[typing.Tuple[int, str, typing.Tuple[str, ...]]]

    def __init__(self):
        self.actions = []
        self.gotos = []
        self.conflicts = []
        self.row = -1

    def new_row(self):
        self.row += 1
        self.actions.append({})
        self.gotos.append({})

    def set_table_reduce(self, symbol: Terminal, item: Item):
        self._set_table_action(symbol, Reduce(item.production))

    def set_table_accept(self, symbol: Terminal):
        self._set_table_action(symbol, Accept())

    def set_table_shift(self, symbol: Terminal, index: int):
        self._set_table_action(symbol, Shift(index))

    def set_table_goto(self, symbol: NonTerminal, index: int):
        assert symbol not in self.gotos[self.row]
        self.gotos[self.row][symbol] = index

    def _set_table_action(self, symbol: Terminal, action: ParseAction):
        row = self.actions[self.row]
        existing = row.get(symbol)
        if existing is not None and existing != action:
            self.conflicts.append((self.row, symbol.display, (repr(existing), repr(action))))
            return
        row[symbol] = action

    def flush(self) -> ParseTable:
        """Finish building the table and return it.

        Raises ConflictError if there were any conflicts during construction.
        """
        if self.conflicts:
            raise ConflictError(self.conflicts)
        return ParseTable(actions=tuple(self.actions), gotos=tuple(self.gotos))


def build_table() -> ParseTable:
    """Generate the SLR parse table for the grammar.

    Each row of `actions` maps a terminal to Shift/Reduce/Accept; each row of
    `gotos` maps a nonterminal to a state. Anything missing from an action row
    is a syntax error.
    """
    follows = FollowInfo.from_grammar(FirstInfo.from_grammar())
    graph = gen_sets()

    builder = TableBuilder()
    for state, items in enumerate(graph.closures):
        builder.new_row()
        successors = graph.successors[state]

        for item in items:
            next = item.next
            if next is None:
                if item.rule.left == START:
                    builder.set_table_accept(Terminal.EOF)
                else:
                    for terminal in sorted(follows.follows[item.rule.left], key=lambda t: t.value):
                        builder.set_table_reduce(terminal, item)

            elif isinstance(next, Terminal):
                builder.set_table_shift(next, successors[next])

        for symbol, index in successors.items():
            if isinstance(symbol, NonTerminal):
                builder.set_table_goto(symbol, index)

    table = builder.flush()
    build_log.debug("built parse table with %d states", table.state_count)
    return table


def build_automaton() -> Automaton:
    return Automaton(build_table())
