"""The step-by-step trace of a parse.

Every trip around the driver loop produces one `TraceStep`, which records
what the parser saw (state, stack, upcoming input) and what it decided to do
about it. Steps go to a sink. The sink can be a file, a list, the logging
system, or nothing at all; writing to a sink never changes the parse.
"""

import dataclasses
import logging
import typing

trace_log = logging.getLogger("lrexpr.trace")


@dataclasses.dataclass(frozen=True)
class TraceStep:
    step: int
    state: int
    stack: str
    lookahead: str
    operation: str
    action: str

    def lines(self) -> list[str]:
        return [
            f"Step {self.step}:",
            f"Current State: {self.state}",
            f"Stack Contents: {self.stack}",
            f"Input Position: {self.lookahead}",
            f"Operation: {self.operation}",
            f"Action: {self.action}",
        ]

    def format(self) -> str:
        return "\n".join(self.lines())


class TraceSink(typing.Protocol):
    def write(self, step: TraceStep):
        """Record one step. May raise OSError; the parser carries on."""
        ...


class NullSink:
    def write(self, step: TraceStep):
        pass


class ListSink:
    steps: list[TraceStep]

    def __init__(self):
        self.steps = []

    def write(self, step: TraceStep):
        self.steps.append(step)

    def operations(self) -> list[str]:
        return [step.operation for step in self.steps]


class StreamSink:
    """Write formatted steps to a text stream, with a blank line after each."""

    def __init__(self, stream: typing.TextIO):
        self.stream = stream

    def write(self, step: TraceStep):
        self.stream.write(step.format())
        self.stream.write("\n\n")


class LoggingSink:
    def __init__(self, logger: logging.Logger = trace_log, level: int = logging.DEBUG):
        self.logger = logger
        self.level = level

    def write(self, step: TraceStep):
        if not self.logger.isEnabledFor(self.level):
            return
        for line in step.lines():
            self.logger.log(self.level, line)
        self.logger.log(self.level, "--------------------")


class TeeSink:
    """Send every step to several sinks. One sink failing doesn't stop the
    others from getting the step."""

    sinks: list[TraceSink]

    def __init__(self, *sinks: TraceSink):
        self.sinks = list(sinks)

    def write(self, step: TraceStep):
        for sink in self.sinks:
            emit(sink, step)


def emit(sink: TraceSink | None, step: TraceStep):
    """Write a step to a sink, if there is one, and swallow (but log) write
    failures."""
    if sink is None:
        return
    try:
        sink.write(step)
    except OSError as e:
        trace_log.warning("Failed to write trace step %d: %s", step.step, e)
