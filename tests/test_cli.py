from __future__ import annotations

import io

from pathlib import Path

import pytest

from jsformer import cli
from jsformer.cli import main
from jsformer.healing import backup_path_for

from tests.stubs import FakeEngine


@pytest.fixture()
def cli_env(tmp_path: Path, monkeypatch):
    """Isolate the CLI from the caller's cwd, env and node install."""

    monkeypatch.chdir(tmp_path)
    for name in (
        "JSFORMER_PROVIDER",
        "JSFORMER_LANG",
        "JSFORMER_FORCE_LLM",
        "JSFORMER_NO_CACHE",
        "JSFORMER_MODEL",
        "JSFORMER_SESSION_HEAL_MAX_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JSFORMER_CACHE_DIR", str(tmp_path / "cache"))
    engine = FakeEngine(
        lambda source: "ReferenceError: broken" if "broken" in source else None
    )
    monkeypatch.setattr(cli, "build_engine", lambda settings: engine)
    return engine


def _use_compiler(monkeypatch, compiler) -> None:
    monkeypatch.setattr(
        cli, "build_compiler", lambda settings, prompt_manager=None: compiler
    )


def test_runs_javascript_file(tmp_path: Path, cli_env, capsys) -> None:
    script = tmp_path / "hello.js"
    script.write_text("console.log('hi');\n")

    assert main([str(script), "--print-js"]) == 0

    out = capsys.readouterr().out
    assert "/* ===== generated JavaScript ===== */" in out
    assert "console.log('hi');" in out
    assert f"ran {script}" in out
    assert out.rstrip().endswith("ok")
    assert cli_env.closed


def test_runtime_failure_exits_nonzero(tmp_path: Path, cli_env, capsys):
    script = tmp_path / "bad.js"
    script.write_text("broken();\n")

    assert main([str(script)]) == 1

    err = capsys.readouterr().err
    assert err.startswith(f"error: failed running {script}")
    assert "ReferenceError: broken" in err


def test_missing_config_exits_nonzero(tmp_path: Path, cli_env, capsys):
    assert main(["x.js", "--config", str(tmp_path / "nope.yaml")]) == 1
    assert "not found" in capsys.readouterr().err


def test_missing_source_file(tmp_path: Path, cli_env, capsys):
    assert main([str(tmp_path / "absent.js")]) == 1
    assert "failed reading script file" in capsys.readouterr().err


def test_self_heal_flag_repairs_file(
    tmp_path: Path, cli_env, compiler_factory, monkeypatch, capsys
):
    script = tmp_path / "bad.js"
    script.write_text("broken();\n")
    compiler, _, _, _ = compiler_factory(local=["fixed();"])
    _use_compiler(monkeypatch, compiler)

    assert main([str(script), "--self-heal", "--max-heal-attempts", "2"]) == 0

    assert script.read_text() == "fixed();"
    assert backup_path_for(script).read_text() == "broken();\n"


def test_session_reads_statements(
    cli_env, compiler_factory, monkeypatch, capsys
):
    compiler, local, _, _ = compiler_factory(local=["globalThis.x = 1;"])
    _use_compiler(monkeypatch, compiler)
    stdin = io.StringIO(".help\nset x to one\n.exit\nignored\n")

    assert main([], stdin=stdin) == 0

    out = capsys.readouterr().out
    assert "Commands:" in out
    assert "ran <repl>" in out
    assert len(local.calls) == 1


def test_session_reports_errors_and_continues(
    cli_env, compiler_factory, monkeypatch, capsys
):
    monkeypatch.setenv("JSFORMER_SESSION_HEAL_MAX_ATTEMPTS", "1")
    compiler, _, _, _ = compiler_factory(
        local=["broken();", "broken(1);", "globalThis.y = 2;"]
    )
    _use_compiler(monkeypatch, compiler)
    stdin = io.StringIO("first\nsecond\n")

    assert main([], stdin=stdin) == 0

    captured = capsys.readouterr()
    assert "after 1 self-heal attempt(s)" in captured.err
    assert "ran <repl>" in captured.out
