import argparse
import contextlib
import logging
import pathlib
import sys

from . import builder
from .errors import SourceUnavailable
from .runtime import Parser
from .tokens import TokenStream
from .trace import LoggingSink, StreamSink, TeeSink, TraceSink

TRACE_SUFFIX = "_p3dbg.txt"


def output_filename(input_path: str) -> str:
    """The default trace file for an input: `dir/name.ext` traces to
    `dir/name_p3dbg.txt`."""
    path = pathlib.PurePath(input_path)
    return str(path.with_name(path.stem + TRACE_SUFFIX))


def main(args: list[str]) -> int:
    parser = argparse.ArgumentParser(
        description="Parse an arithmetic expression with a table-driven shift/reduce parser"
    )
    parser.add_argument("input", nargs="?", help="Path to the source file to parse")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Where to write the step-by-step trace. The default is the input file's name "
        f"with '{TRACE_SUFFIX}' in place of its extension.",
    )
    parser.add_argument(
        "--no-trace",
        action="store_true",
        help="Don't write a trace file at all.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every step (and every table lookup) to stderr.",
    )
    parser.add_argument(
        "--dump-table",
        action="store_true",
        help="Print the parse table and exit.",
    )

    parsed = parser.parse_args(args[1:])

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    automaton = builder.build_automaton()
    if parsed.dump_table:
        print(automaton.format())
        return 0

    if parsed.input is None:
        parser.print_usage(sys.stderr)
        return 1

    input_file = parsed.input
    output_file = None if parsed.no_trace else (parsed.output or output_filename(input_file))

    print("Starting parser...")
    print(f"Input file: {input_file}")
    if output_file is not None:
        print(f"Output file: {output_file}")

    try:
        tokens = TokenStream.from_file(input_file)
    except SourceUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with contextlib.ExitStack() as stack:
        sinks: list[TraceSink] = []
        if output_file is not None:
            try:
                trace_file = stack.enter_context(open(output_file, "w", encoding="utf-8"))
            except OSError as e:
                print(f"Error: Failed to open debug file: {output_file} ({e})", file=sys.stderr)
                return 1
            sinks.append(StreamSink(trace_file))
        if parsed.verbose:
            sinks.append(LoggingSink())

        result = Parser(automaton).parse(tokens, TeeSink(*sinks) if sinks else None)

    if result.success:
        print("\nParsing completed successfully.")
        print(f"Steps taken: {result.steps_taken}")
        if output_file is not None:
            print(f"Output saved to {output_file}")
        return 0

    print("\nParsing failed!", file=sys.stderr)
    if result.error is not None:
        print(f"Error: {result.error.message}", file=sys.stderr)
        if result.error.line > 0:
            print(f"Error occurred at line {result.error.line}", file=sys.stderr)
    return 1


def run():
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    run()
