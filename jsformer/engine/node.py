"""Persistent ``node`` subprocess used as the host JavaScript engine."""

from __future__ import annotations

import json
import logging
import os
import queue
import shutil
import subprocess
import threading
import time

from pathlib import Path
from typing import IO, List, Optional

from jsformer.constants import ENGINE_TIMEOUT_S
from jsformer.exceptions import EngineExecutionError
from jsformer.types import EvalOutput

LOGGER = logging.getLogger(__name__)

_SENTINEL = "\x1e"
_GRACE_S = 1.0

# Evaluates one JSON request per stdin line in the shared global context and
# answers with a sentinel-prefixed JSON line. Console output and async errors
# produced after a reply was written are held for the next reply.
_DRIVER = r"""
const vm = require('vm');
const util = require('util');
const readline = require('readline');
const SENTINEL = '\u001e';
const TIMEOUT_MS = Number(process.env.JSFORMER_EVAL_TIMEOUT_MS || 30000);
const write = process.stdout.write.bind(process.stdout);
let lines = [];
let diagnostics = [];
const capture = (...args) => { lines.push(util.format(...args)); };
for (const level of ['log', 'info', 'warn', 'error', 'debug']) {
  console[level] = capture;
}
const describe = (err) => {
  if (err && typeof err === 'object' && 'message' in err) {
    return `${err.name || 'Error'}: ${err.message}`;
  }
  return `Uncaught ${util.inspect(err)}`;
};
const render = (value) => {
  if (value === undefined) return null;
  if (typeof value === 'string') return value;
  return util.inspect(value, { depth: 4 });
};
process.on('unhandledRejection', (err) => {
  diagnostics.push(`Unhandled promise rejection: ${describe(err)}`);
});
process.on('uncaughtException', (err) => {
  diagnostics.push(`Uncaught exception: ${describe(err)}`);
});
const rl = readline.createInterface({ input: process.stdin });
rl.on('line', async (line) => {
  const req = JSON.parse(line);
  let reply;
  try {
    let value = vm.runInThisContext(req.source, {
      filename: req.name,
      timeout: TIMEOUT_MS,
    });
    if (value && typeof value.then === 'function') {
      value = await value;
    }
    reply = { id: req.id, ok: true, value: render(value) };
  } catch (err) {
    reply = { id: req.id, ok: false, error: describe(err) };
  }
  reply.console = lines.splice(0);
  reply.diagnostics = diagnostics.splice(0);
  write(SENTINEL + JSON.stringify(reply) + '\n');
});
"""


def _allowlist_env() -> dict[str, str]:
    allow: dict[str, str] = {}
    for k, v in os.environ.items():
        if k in {"PATH", "HOME", "NODE_PATH", "TZ"}:
            allow[k] = v
        elif k.startswith("LANG") or k.startswith("LC_"):
            allow[k] = v
    return allow


def _pump(stream: IO[str], lines: "queue.Queue[Optional[str]]") -> None:
    for raw in iter(stream.readline, ""):
        lines.put(raw.rstrip("\n"))
    lines.put(None)


class NodeEngine:
    """Runs scripts in one long-lived ``node`` process.

    Globals defined by one evaluation stay visible to the next, which is
    what interactive sessions rely on. A timed-out evaluation kills the
    process; the next call starts a fresh one.
    """

    def __init__(
        self,
        *,
        node_binary: str = "node",
        timeout_s: float = ENGINE_TIMEOUT_S,
        cwd: Optional[Path] = None,
    ) -> None:
        self.node_binary = node_binary
        self.timeout_s = timeout_s
        self.cwd = cwd
        self._proc: Optional[subprocess.Popen] = None
        self._lines: "queue.Queue[Optional[str]]" = queue.Queue()
        self._request_id = 0

    def __enter__(self) -> "NodeEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _ensure_process(self, source_name: str) -> subprocess.Popen:
        if self._proc is not None and self._proc.poll() is None:
            return self._proc
        binary = shutil.which(self.node_binary)
        if binary is None:
            raise EngineExecutionError(
                f"failed evaluating {source_name}: node binary "
                f"'{self.node_binary}' not found on PATH"
            )
        env = _allowlist_env()
        env["JSFORMER_EVAL_TIMEOUT_MS"] = str(int(self.timeout_s * 1000))
        self._lines = queue.Queue()
        self._proc = subprocess.Popen(
            [binary, "-e", _DRIVER],
            cwd=str(self.cwd) if self.cwd else None,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            bufsize=1,
            env=env,
        )
        thread = threading.Thread(
            target=_pump, args=(self._proc.stdout, self._lines), daemon=True
        )
        thread.start()
        LOGGER.debug("Started node engine pid=%s", self._proc.pid)
        return self._proc

    def eval_script(self, source: str, source_name: str) -> EvalOutput:
        proc = self._ensure_process(source_name)
        self._request_id += 1
        request_id = self._request_id
        payload = json.dumps(
            {"id": request_id, "source": source, "name": source_name}
        )
        try:
            assert proc.stdin is not None
            proc.stdin.write(payload + "\n")
            proc.stdin.flush()
        except OSError as exc:
            self.close()
            raise EngineExecutionError(
                f"failed evaluating {source_name}: engine process is not "
                f"running ({exc})"
            ) from exc

        console: List[str] = []
        deadline = time.monotonic() + self.timeout_s + _GRACE_S
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.close()
                raise EngineExecutionError(
                    f"failed evaluating {source_name}: timed out after "
                    f"{self.timeout_s}s"
                )
            try:
                line = self._lines.get(timeout=remaining)
            except queue.Empty:
                continue
            if line is None:
                self.close()
                raise EngineExecutionError(
                    f"failed evaluating {source_name}: engine process exited"
                )
            if not line.startswith(_SENTINEL):
                console.append(line)
                continue
            reply = json.loads(line[len(_SENTINEL):])
            if reply.get("id") != request_id:
                continue
            console.extend(reply.get("console") or [])
            diagnostics = list(reply.get("diagnostics") or [])
            if reply.get("ok"):
                return EvalOutput(
                    value=reply.get("value"),
                    diagnostics=diagnostics,
                    console=console,
                )
            detail = "\n".join([str(reply.get("error"))] + diagnostics)
            raise EngineExecutionError(
                f"failed evaluating {source_name}: {detail}"
            )

    def close(self) -> None:
        proc = self._proc
        self._proc = None
        if proc is None:
            return
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
        if proc.stdin is not None:
            try:
                proc.stdin.close()
            except OSError:
                LOGGER.debug("node stdin already closed")
