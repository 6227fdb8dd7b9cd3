from __future__ import annotations

import pytest

from jsformer.exceptions import (
    NonRecoverableConfigError,
    NormalizationError,
    ProviderCallError,
    ProviderRoutingError,
)
from jsformer.llm.router import normalize_js_output
from jsformer.types import Provider, ProviderSelection, TranslateRequest

from tests.stubs import StubClient, make_router

REQUEST = TranslateRequest(source_text="say hi", source_id="hi.pseudo")


def test_normalize_plain_text_is_trimmed():
    assert normalize_js_output("  console.log(1);\n") == "console.log(1);"


def test_normalize_extracts_first_fence():
    raw = "Here you go:\n```javascript\nconsole.log(1);\n```\n```js\nx\n```"
    assert normalize_js_output(raw) == "console.log(1);"


def test_normalize_rejects_empty_output():
    with pytest.raises(NormalizationError, match="empty output"):
        normalize_js_output("   \n ")


def test_normalize_rejects_empty_fence():
    with pytest.raises(NormalizationError, match="empty fenced output"):
        normalize_js_output("```js\n   \n```")


def test_normalize_unterminated_fence_returns_text():
    assert normalize_js_output("```js\nlet a = 1;") == "```js\nlet a = 1;"


def test_auto_chain_depends_on_probe():
    router, _, _, probe = make_router(reachable=True)
    chain = router.candidate_chain(ProviderSelection.AUTO)
    assert [c.provider for c in chain] == [
        Provider.OLLAMA,
        Provider.OPENAI_COMPATIBLE,
    ]
    assert [c.model for c in chain] == ["local-model", "cloud-model"]
    probe.reachable = False
    chain = router.candidate_chain(ProviderSelection.AUTO)
    assert [c.provider for c in chain] == [Provider.OPENAI_COMPATIBLE]


def test_explicit_selection_skips_probe():
    router, _, _, probe = make_router(reachable=False)
    chain = router.candidate_chain(ProviderSelection.OLLAMA)
    assert [c.provider for c in chain] == [Provider.OLLAMA]
    assert probe.calls == 0


def test_falls_back_to_second_candidate():
    router, local, cloud, _ = make_router(
        StubClient([ProviderCallError("boom")]),
        StubClient(["```js\nconsole.log('hi');\n```"]),
    )
    response = router.translate(ProviderSelection.AUTO, REQUEST)
    assert response.provider is Provider.OPENAI_COMPATIBLE
    assert response.model == "cloud-model"
    assert response.javascript == "console.log('hi');"
    assert len(local.calls) == 1
    assert len(cloud.calls) == 1


def test_normalization_failure_falls_back():
    router, _, _, _ = make_router(StubClient(["  "]), StubClient(["1;"]))
    response = router.translate(ProviderSelection.AUTO, REQUEST)
    assert response.javascript == "1;"


def test_model_override_applies_to_every_candidate():
    router, local, cloud, _ = make_router(
        StubClient([ProviderCallError("down")]), StubClient(["1;"])
    )
    router.translate(ProviderSelection.AUTO, REQUEST, "override")
    assert local.calls[0][1] == "override"
    assert cloud.calls[0][1] == "override"


def test_all_failures_raise_routing_error_with_attempts():
    router, _, _, _ = make_router(
        StubClient([ProviderCallError("local down")]),
        StubClient([NonRecoverableConfigError("OPENAI_API_KEY is required")]),
    )
    with pytest.raises(ProviderRoutingError) as excinfo:
        router.translate(ProviderSelection.AUTO, REQUEST)
    err = excinfo.value
    assert err.source_id == "hi.pseudo"
    assert [a.provider for a in err.attempts] == [
        Provider.OLLAMA,
        Provider.OPENAI_COMPATIBLE,
    ]
    assert err.attempts[0].recoverable is True
    assert err.attempts[1].recoverable is False
    assert err.non_recoverable
    assert "hi.pseudo" in str(err)
    assert "local down" in str(err)


def test_routing_error_is_recoverable_when_no_attempt_is_config_failure():
    router, _, _, _ = make_router(
        StubClient([ProviderCallError("local timed out")]),
        StubClient([ProviderCallError("rate limited")]),
    )
    with pytest.raises(ProviderRoutingError) as excinfo:
        router.translate(ProviderSelection.AUTO, REQUEST)
    assert not excinfo.value.non_recoverable


def test_routing_error_is_non_recoverable_when_every_attempt_is():
    router, _, _, _ = make_router(
        cloud=StubClient([NonRecoverableConfigError("OPENAI_API_KEY missing")]),
        reachable=False,
    )
    with pytest.raises(ProviderRoutingError) as excinfo:
        router.translate(ProviderSelection.AUTO, REQUEST)
    assert excinfo.value.non_recoverable
