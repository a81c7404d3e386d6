import lrexpr.cli as cli

from lrexpr import builder
from lrexpr.automaton import Automaton, ParseTable
from lrexpr.grammar import NonTerminal


def test_output_filename():
    assert cli.output_filename("tests/in1.cscn") == "tests/in1_p3dbg.txt"
    assert cli.output_filename("expr") == "expr_p3dbg.txt"
    assert cli.output_filename("a/b.c/d.txt") == "a/b.c/d_p3dbg.txt"


def test_main_success_writes_trace(tmp_path, capsys):
    source = tmp_path / "good.cscn"
    source.write_text("(1 + 2) * 3\n", encoding="utf-8")

    status = cli.main(["lrexpr", str(source)])

    assert status == 0
    out = capsys.readouterr().out
    assert "Parsing completed successfully." in out

    trace = tmp_path / "good_p3dbg.txt"
    assert f"Output saved to {trace}" in out
    text = trace.read_text(encoding="utf-8")
    assert text.startswith("Step 1:\nCurrent State: 0\n")
    assert "Operation: ACCEPT" in text


def test_main_failure(tmp_path, capsys):
    source = tmp_path / "bad.cscn"
    source.write_text("1 +\n* 2", encoding="utf-8")
    trace = tmp_path / "custom.txt"

    status = cli.main(["lrexpr", str(source), "-o", str(trace)])

    assert status == 1
    err = capsys.readouterr().err
    assert "Parsing failed!" in err
    assert "Syntax error at line 2, position 1: unexpected token '*'" in err
    assert "Error occurred at line 2" in err
    assert trace.read_text(encoding="utf-8").rstrip().endswith("Action: Invalid syntax")


def test_main_no_trace(tmp_path, capsys):
    source = tmp_path / "good.cscn"
    source.write_text("7", encoding="utf-8")

    assert cli.main(["lrexpr", "--no-trace", str(source)]) == 0
    assert not (tmp_path / "good_p3dbg.txt").exists()
    assert "Output saved" not in capsys.readouterr().out


def test_main_missing_input(tmp_path, capsys):
    status = cli.main(["lrexpr", str(tmp_path / "missing.cscn")])

    assert status == 1
    assert "Failed to open input file" in capsys.readouterr().err
    assert not (tmp_path / "missing_p3dbg.txt").exists()


def test_main_no_arguments(capsys):
    assert cli.main(["lrexpr"]) == 1
    assert "usage" in capsys.readouterr().err


def test_main_dump_table(capsys):
    assert cli.main(["lrexpr", "--dump-table"]) == 0
    out = capsys.readouterr().out
    assert "acc" in out
    assert len(out.splitlines()) == 14


def test_main_internal_error_names_the_token(tmp_path, capsys, monkeypatch):
    table = builder.build_table()
    gotos = list(table.gotos)
    gotos[0] = {k: v for k, v in gotos[0].items() if k != NonTerminal.F}
    broken = Automaton(ParseTable(actions=table.actions, gotos=tuple(gotos)))
    monkeypatch.setattr(builder, "build_automaton", lambda: broken)

    source = tmp_path / "good.cscn"
    source.write_text("42 + 1", encoding="utf-8")

    assert cli.main(["lrexpr", "--no-trace", str(source)]) == 1
    err = capsys.readouterr().err
    assert (
        "Error: Reduce operation failed at line 1, position 4 on token '+': "
        "Invalid goto state for non-terminal f from state 0"
    ) in err
    assert "Error occurred at line 1" in err
