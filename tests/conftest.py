"""Expose the project root on sys.path for pytest runs."""

from __future__ import annotations

import sys

from pathlib import Path
from typing import Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jsformer.cache import FileCompileCache  # noqa: E402
from jsformer.compiler import CompileCoordinator  # noqa: E402

from tests.stubs import Scripted, StubClient, make_router  # noqa: E402


@pytest.fixture()
def file_cache(tmp_path: Path) -> FileCompileCache:
    return FileCompileCache(tmp_path / "cache")


@pytest.fixture()
def compiler_factory(file_cache: FileCompileCache):
    """Return a builder for a compiler wired to stub providers."""

    def _build(
        local: Sequence[Scripted] = (),
        cloud: Sequence[Scripted] = (),
        *,
        reachable: bool = True,
        cache: bool = True,
    ):
        router, local_client, cloud_client, probe = make_router(
            StubClient(local), StubClient(cloud), reachable=reachable
        )
        compiler = CompileCoordinator(
            router, file_cache if cache else None
        )
        return compiler, local_client, cloud_client, probe

    return _build
