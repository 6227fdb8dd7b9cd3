from __future__ import annotations

from pathlib import Path

import pytest

from jsformer.exceptions import (
    ConfigurationError,
    NonRecoverableConfigError,
    ProviderCallError,
    SelfHealError,
    SelfHealExhaustedError,
)
from jsformer.healing import (
    FileSelfHealer,
    HealBudget,
    HealState,
    SessionSelfHealer,
    backup_path_for,
    error_summary,
    is_repairable,
    probable_cause,
)
from jsformer.runtime import RunOptions
from jsformer.session import SessionContext

from tests.stubs import FakeEngine


def _fails_on(marker: str, detail: str):
    return lambda source: detail if marker in source else None


def _broken_script(tmp_path: Path, name: str = "app.js") -> Path:
    path = tmp_path / name
    path.write_text("broken();\n")
    return path


# --- diagnosis -------------------------------------------------------------


@pytest.mark.parametrize(
    "text, expected",
    [
        ("ReferenceError: x is not defined", "Undefined variable"),
        ("TypeError: cannot read null", "Invalid operation"),
        ("SyntaxError: Unexpected token", "invalid syntax"),
        ("failed evaluating app.js: boom", "Runtime engine rejected"),
        ("OPENAI_API_KEY is required", "Provider/config issue"),
        ("LLM routing failed for x", "Provider/config issue"),
        ("something odd", "General execution/translation failure"),
    ],
)
def test_probable_cause_buckets(text, expected):
    assert expected in probable_cause(text)


def test_error_summary_is_first_non_empty_line():
    assert error_summary("\n  \n  first line \nsecond") == "first line"
    assert error_summary("") == "unknown error"


def test_heal_budget():
    assert HealBudget().unlimited
    assert HealBudget(0).unlimited
    assert not HealBudget(0).exhausted(1000)
    assert not HealBudget(2).exhausted(1)
    assert HealBudget(2).exhausted(2)


def test_repairable_suffixes_and_backup_path():
    for name in ["a.js", "a.mjs", "a.cjs", "a.JSX"]:
        assert is_repairable(Path(name))
    assert not is_repairable(Path("a.ts"))
    assert not is_repairable(Path("a.pseudo"))
    assert backup_path_for(Path("/tmp/demo.js")) == Path(
        "/tmp/demo.js.jsformer.bak"
    )


# --- whole-file flavor -----------------------------------------------------


def test_file_heal_repairs_and_backs_up_once(tmp_path, compiler_factory):
    path = _broken_script(tmp_path)
    compiler, local, _, _ = compiler_factory(local=["console.log('fixed');"])
    engine = FakeEngine(
        _fails_on("broken", "ReferenceError: broken is not defined")
    )
    healer = FileSelfHealer(compiler, engine, RunOptions(), max_attempts=3)

    outcome = healer.run(path)

    assert outcome.eval.value == "ok"
    assert healer.state is HealState.SUCCEEDED
    assert healer.attempts == 1
    assert path.read_text() == "console.log('fixed');"
    assert backup_path_for(path).read_text() == "broken();\n"

    request, _ = local.calls[0]
    assert request.source_id == f"{path}#self-heal-1"
    assert request.language_hint == "self-heal-javascript"
    assert "Attempt number: 1" in request.source_text
    assert "ReferenceError: broken is not defined" in request.source_text
    assert "broken();" in request.source_text
    assert "runtime execution after JS generation" in request.source_text


def test_existing_backup_is_never_overwritten(tmp_path, compiler_factory):
    path = _broken_script(tmp_path)
    backup_path_for(path).write_text("pristine original")
    compiler, _, _, _ = compiler_factory(local=["broken(2);", "ok();"])
    engine = FakeEngine(_fails_on("broken", "ReferenceError: broken"))
    healer = FileSelfHealer(compiler, engine, RunOptions(), max_attempts=3)

    healer.run(path)

    assert healer.attempts == 2
    assert backup_path_for(path).read_text() == "pristine original"


def test_file_heal_stops_after_k_attempts(tmp_path, compiler_factory):
    path = _broken_script(tmp_path)
    compiler, _, cloud, _ = compiler_factory(
        cloud=[ProviderCallError("model overloaded")] * 3, reachable=False
    )
    engine = FakeEngine(_fails_on("broken", "ReferenceError: broken"))
    healer = FileSelfHealer(compiler, engine, RunOptions(), max_attempts=3)

    with pytest.raises(SelfHealExhaustedError) as excinfo:
        healer.run(path)

    assert excinfo.value.attempts == 3
    assert "after 3 self-heal attempt(s)" in str(excinfo.value)
    assert len(cloud.calls) == 3
    assert healer.state is HealState.EXHAUSTED
    assert path.read_text() == "broken();\n"


def test_missing_credentials_short_circuit_file_heal(
    tmp_path, compiler_factory
):
    path = _broken_script(tmp_path)
    compiler, _, cloud, _ = compiler_factory(
        cloud=[
            NonRecoverableConfigError(
                "OPENAI_API_KEY is required for OpenAI-compatible translation"
            )
        ],
        reachable=False,
    )
    engine = FakeEngine(_fails_on("broken", "ReferenceError: broken"))
    healer = FileSelfHealer(compiler, engine, RunOptions(), max_attempts=5)

    with pytest.raises(SelfHealExhaustedError) as excinfo:
        healer.run(path)

    assert excinfo.value.non_recoverable
    assert excinfo.value.attempts == 1
    assert len(cloud.calls) == 1
    assert "non-recoverable" in str(excinfo.value)


def test_unsupported_suffix_fails_with_original_error(
    tmp_path, compiler_factory
):
    path = tmp_path / "notes.pseudo"
    path.write_text("call broken")
    compiler, _, _, _ = compiler_factory(local=["broken();"])
    engine = FakeEngine(_fails_on("broken", "ReferenceError: broken"))
    healer = FileSelfHealer(compiler, engine, RunOptions(), max_attempts=3)

    with pytest.raises(SelfHealError) as excinfo:
        healer.run(path)

    assert not isinstance(excinfo.value, SelfHealExhaustedError)
    assert "self-heal currently supports .js/.mjs/.cjs/.jsx" in str(
        excinfo.value
    )
    assert "ReferenceError: broken" in str(excinfo.value)
    assert not backup_path_for(path).exists()


def test_file_heal_requires_positive_bound(compiler_factory):
    compiler, _, _, _ = compiler_factory()
    with pytest.raises(ConfigurationError):
        FileSelfHealer(compiler, FakeEngine(), RunOptions(), max_attempts=0)


# --- interactive flavor ----------------------------------------------------


def _session_healer(compiler, engine, budget=None):
    session = SessionContext()
    healer = SessionSelfHealer(
        compiler, engine, session, budget=budget or HealBudget()
    )
    healer.start()
    return healer, session


def test_session_statement_success_updates_context(compiler_factory):
    compiler, local, _, _ = compiler_factory(
        local=[
            "import x from 'y';\nglobalThis.greeting = 'hi';",
            "console.log(greeting);",
        ]
    )
    engine = FakeEngine()
    healer, session = _session_healer(compiler, engine)

    output = healer.execute("set greeting to hi")

    assert output.value == "ok"
    assert engine.scripts[-1] == ("globalThis.greeting = 'hi';", "<repl>")
    assert session.statements == ["set greeting to hi"]
    assert session.snippets == ["globalThis.greeting = 'hi';"]
    assert session.bindings == ["greeting"]

    first_request, _ = local.calls[0]
    assert first_request.source_id == "<repl>"
    assert first_request.language_hint == "pseudocode"
    assert first_request.scope_context is None

    healer.execute("print greeting")
    second_request, _ = local.calls[1]
    assert "greeting" in second_request.scope_context
    assert "1. set greeting to hi" in second_request.scope_context


def test_failed_statement_leaves_session_unchanged(compiler_factory):
    compiler, local, _, _ = compiler_factory(
        local=["boom();", "boom(1);", "boom(2);"]
    )
    engine = FakeEngine(_fails_on("boom", "TypeError: boom is not a function"))
    healer, session = _session_healer(compiler, engine, HealBudget(2))

    with pytest.raises(SelfHealExhaustedError) as excinfo:
        healer.execute("explode")

    assert excinfo.value.attempts == 2
    assert session.statements == []
    assert session.snippets == []
    assert session.bindings == []
    assert [call[0].source_id for call in local.calls] == [
        "<repl>",
        "<repl-self-heal-1>",
        "<repl-self-heal-2>",
    ]
    repair_prompt = local.calls[1][0].source_text
    assert "FAILED JAVASCRIPT:\nboom();" in repair_prompt
    assert "runtime execution after JS generation" in repair_prompt
    assert "USER PROMPT:\nexplode" in repair_prompt


def test_translation_failure_enters_repair(compiler_factory):
    compiler, _, cloud, _ = compiler_factory(
        cloud=[ProviderCallError("hiccup"), "globalThis.v = 1;"],
        reachable=False,
    )
    healer, session = _session_healer(compiler, FakeEngine())

    healer.execute("make v")

    assert healer.attempts == 1
    repair_prompt = cloud.calls[1][0].source_text
    assert "translation/compile before execution" in repair_prompt
    assert "<none produced before failure>" in repair_prompt
    assert session.bindings == ["v"]


def test_empty_snippet_after_sanitizing_is_a_failure(compiler_factory):
    compiler, _, cloud, _ = compiler_factory(
        cloud=["import a from 'b';", "1 + 1;"], reachable=False
    )
    healer, session = _session_healer(compiler, FakeEngine())

    healer.execute("add")

    assert healer.attempts == 1
    assert session.snippets == ["1 + 1;"]


def test_non_recoverable_repair_stops_unlimited_loop(compiler_factory):
    compiler, _, cloud, _ = compiler_factory(
        cloud=[
            "boom();",
            NonRecoverableConfigError(
                "OPENAI_API_KEY is required for OpenAI-compatible translation"
            ),
        ],
        reachable=False,
    )
    engine = FakeEngine(_fails_on("boom", "ReferenceError: boom"))
    healer, session = _session_healer(compiler, engine)

    with pytest.raises(SelfHealExhaustedError) as excinfo:
        healer.execute("explode")

    assert excinfo.value.non_recoverable
    assert excinfo.value.attempts == 1
    assert len(cloud.calls) == 2
    assert session.statements == []


def test_missing_key_behind_slow_local_provider_stops_session(
    compiler_factory,
):
    compiler, local, cloud, _ = compiler_factory(
        local=[ProviderCallError("Ollama request timed out")] * 10,
        cloud=[
            NonRecoverableConfigError(
                "OPENAI_API_KEY is required for OpenAI-compatible translation"
            )
        ]
        * 10,
    )
    healer, session = _session_healer(compiler, FakeEngine(), HealBudget(5))

    with pytest.raises(SelfHealExhaustedError) as excinfo:
        healer.execute("say hi")

    assert excinfo.value.non_recoverable
    assert excinfo.value.attempts == 0
    assert len(local.calls) == 1
    assert len(cloud.calls) == 1
    assert session.statements == []


def test_missing_key_during_repair_stops_file_heal(tmp_path, compiler_factory):
    path = _broken_script(tmp_path)
    compiler, _, _, _ = compiler_factory(
        local=[ProviderCallError("Ollama request timed out")],
        cloud=[NonRecoverableConfigError("OPENAI_API_KEY is required")],
    )
    engine = FakeEngine(_fails_on("broken", "ReferenceError: broken"))
    healer = FileSelfHealer(compiler, engine, RunOptions(), max_attempts=5)

    with pytest.raises(SelfHealExhaustedError) as excinfo:
        healer.run(path)

    assert excinfo.value.non_recoverable
    assert excinfo.value.attempts == 1


def test_failed_repair_keeps_runtime_failure_for_next_prompt(compiler_factory):
    compiler, _, cloud, _ = compiler_factory(
        cloud=["boom();", ProviderCallError("hiccup"), "ok();"],
        reachable=False,
    )
    engine = FakeEngine(
        _fails_on("boom", "ReferenceError: boom is not defined")
    )
    healer, session = _session_healer(compiler, engine)

    healer.execute("explode")

    assert healer.attempts == 2
    retry_prompt = cloud.calls[2][0].source_text
    assert "runtime execution after JS generation" in retry_prompt
    assert "FAILED JAVASCRIPT:\nboom();" in retry_prompt
    assert "ReferenceError: boom is not defined" in retry_prompt
    assert "Previous self-heal attempt failed" in retry_prompt
    assert "hiccup" in retry_prompt
    assert session.snippets == ["ok();"]
