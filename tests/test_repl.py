import pytest

from crysp import crysp_repl


def feed(monkeypatch, *lines):
    """Replace input() with a scripted sequence; EOF once it runs out."""
    it = iter(lines)

    def fake_input(prompt: str) -> str:
        try:
            return next(it)
        except StopIteration:
            raise EOFError
    monkeypatch.setattr("builtins.input", fake_input)


def test_repl_exit_immediately(monkeypatch, capsys):
    feed(monkeypatch, "exit")
    crysp_repl.main([])
    out = capsys.readouterr().out
    assert "Crysp REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out
    assert "Exiting." not in out


def test_repl_prints_side_effects_and_values(monkeypatch, capsys):
    feed(monkeypatch, 'print("hello from crysp")', "", "1 + 2", "exit")
    crysp_repl.main([])
    out, err = capsys.readouterr()
    assert "hello from crysp" in out
    assert out.rstrip().endswith("3")
    assert err == ""


def test_repl_keeps_definitions_between_lines(monkeypatch, capsys):
    feed(monkeypatch, "let a = 2", "func triple(n): n * 3", "triple(a)", "exit")
    crysp_repl.main([])
    out = capsys.readouterr().out
    assert out.splitlines()[-1] == "6"


def test_repl_errors_print_to_stderr_and_continue(monkeypatch, capsys):
    feed(monkeypatch, "missing + 1", "'still here'", "exit")
    crysp_repl.main([])
    out, err = capsys.readouterr()
    assert "RuntimeError: missing is not defined in this scope" in err
    assert "> 1 | missing + 1" in err
    assert '"still here"' in out


def test_repl_eof_quits(monkeypatch, capsys):
    feed(monkeypatch)
    crysp_repl.main([])
    out = capsys.readouterr().out
    assert "Exiting." in out


def test_run_script_file(tmp_path, capsys):
    script = tmp_path / "hello.crysp"
    script.write_text("print('hi')\nlet d = dict()\nd.n = 1\nd", encoding="utf-8")
    crysp_repl.main([str(script)])
    out = capsys.readouterr().out
    assert out.splitlines() == ["hi", "{n: 1}"]


def test_run_script_file_with_null_result_prints_only_effects(tmp_path, capsys):
    script = tmp_path / "quiet.crysp"
    script.write_text("print('only this')", encoding="utf-8")
    crysp_repl.run_script_file(str(script))
    assert capsys.readouterr().out == "only this\n"


def test_run_script_file_error_exits_nonzero(tmp_path, capsys):
    script = tmp_path / "bad.crysp"
    script.write_text("let x = 1\nx()", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        crysp_repl.main([str(script)])
    assert exc.value.code == 1
    assert "x is not a function" in capsys.readouterr().err


def test_missing_script_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        crysp_repl.run_script_file(str(tmp_path / "nope.crysp"))
    assert exc.value.code == 1
    assert "file not found" in capsys.readouterr().err
