"""CLI entrypoint: run a source file or start an interactive session."""

from __future__ import annotations

import argparse
import logging
import sys

from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from dotenv import load_dotenv

from jsformer.configuration import (
    JsformerSettings,
    build_settings,
    load_config,
    resolve_config_path,
)
from jsformer.exceptions import JsformerError
from jsformer.factory import (
    build_compiler,
    build_engine,
    build_file_healer,
    build_prompt_manager,
    build_run_options,
    build_session_healer,
)
from jsformer.logging import setup_file_logger
from jsformer.runtime import run_file
from jsformer.types import CompileResult, EvalOutput

LOGGER = logging.getLogger(__name__)

_SESSION_HELP = """Commands:
  .help   show this message
  .exit   leave the session
Anything else is translated to JavaScript and executed."""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jsformer",
        description=(
            "Translate source text to JavaScript with an LLM and run it, "
            "repairing failures automatically."
        ),
    )
    parser.add_argument(
        "source",
        nargs="?",
        type=str,
        help="File to run. Starts an interactive session when omitted.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to a YAML config (default: ./jsformer.yaml if present).",
    )
    parser.add_argument(
        "--lang",
        type=str,
        help="Source language hint (e.g. js, ts, python, pseudocode).",
    )
    parser.add_argument(
        "--provider",
        type=str,
        choices=["auto", "ollama", "openai"],
        help="Translation provider selection.",
    )
    parser.add_argument(
        "--model",
        type=str,
        help="Override the model name for every provider.",
    )
    parser.add_argument(
        "--ollama-url",
        type=str,
        help="Base URL of the local Ollama server.",
    )
    parser.add_argument(
        "--force-llm",
        action="store_true",
        help="Translate even when the source is already JavaScript.",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Skip the compile cache for this run.",
    )
    parser.add_argument(
        "--print-js",
        action="store_true",
        help="Print the generated JavaScript before executing it.",
    )
    parser.add_argument(
        "--self-heal",
        action="store_true",
        help="Repair a failing .js/.mjs/.cjs/.jsx file in place and retry.",
    )
    parser.add_argument(
        "--max-heal-attempts",
        type=int,
        help="Maximum number of self-heal repairs for a file run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log provider choice, cache and repair progress.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this rotating log file.",
    )
    return parser


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.provider:
        overrides["provider"] = args.provider
    if args.lang:
        overrides["lang"] = args.lang
    if args.model:
        overrides["model"] = args.model
    if args.ollama_url:
        overrides.setdefault("llm", {}).setdefault("ollama", {})[
            "url"
        ] = args.ollama_url
    if args.force_llm:
        overrides["force_llm"] = True
    if args.no_cache:
        overrides["no_cache"] = True
    heal_cfg: Dict[str, Any] = {}
    if args.self_heal:
        heal_cfg["enabled"] = True
    if args.max_heal_attempts is not None:
        heal_cfg["max_attempts"] = args.max_heal_attempts
    if heal_cfg:
        overrides["self_heal"] = heal_cfg
    return overrides


def _load_settings(args: argparse.Namespace) -> JsformerSettings:
    config_path = resolve_config_path(args.config)
    if config_path is None:
        return build_settings(
            {}, config_root=Path.cwd(), overrides=_cli_overrides(args)
        )
    config = load_config(config_path)
    return build_settings(
        config,
        config_root=config_path.resolve().parent,
        overrides=_cli_overrides(args),
    )


def _print_js(result: CompileResult) -> None:
    print("/* ===== generated JavaScript ===== */")
    print(result.javascript)
    print("/* ===== end generated JavaScript ===== */", flush=True)


def _print_output(output: EvalOutput) -> None:
    for line in output.console:
        print(line)
    for line in output.diagnostics:
        print(line, file=sys.stderr)
    if output.value is not None:
        print(output.value)


def _run_source(
    args: argparse.Namespace,
    settings: JsformerSettings,
    compiler,
    engine,
    prompt_manager,
) -> int:
    path = Path(args.source).expanduser()
    on_compiled = _print_js if args.print_js else None
    try:
        if settings.self_heal.enabled:
            healer = build_file_healer(
                settings,
                compiler,
                engine,
                prompt_manager=prompt_manager,
                on_compiled=on_compiled,
            )
            outcome = healer.run(path)
        else:
            try:
                outcome = run_file(
                    engine,
                    compiler,
                    path,
                    build_run_options(settings),
                    on_compiled=on_compiled,
                )
            except JsformerError as exc:
                raise JsformerError(f"failed running {path}: {exc}") from exc
    except JsformerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    _print_output(outcome.eval)
    return 0


def _run_session(
    settings: JsformerSettings,
    compiler,
    engine,
    prompt_manager,
    stdin: TextIO,
) -> int:
    healer = build_session_healer(
        settings, compiler, engine, prompt_manager=prompt_manager
    )
    try:
        healer.start()
    except JsformerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    interactive = stdin.isatty()
    if interactive:
        print(
            f"jsformer session (lang={settings.session.lang}). "
            "Type .help for commands."
        )
    while True:
        if interactive:
            print("> ", end="", flush=True)
        line = stdin.readline()
        if not line:
            break
        statement = line.strip()
        if not statement:
            continue
        if statement == ".exit":
            break
        if statement == ".help":
            print(_SESSION_HELP)
            continue
        try:
            output = healer.execute(statement)
        except JsformerError as exc:
            print(f"error: {exc}", file=sys.stderr)
            continue
        _print_output(output)
    return 0


def main(
    argv: Optional[list[str]] = None, *, stdin: Optional[TextIO] = None
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO if args.verbose else logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
        )
    if args.log_file:
        setup_file_logger(Path(args.log_file))

    try:
        settings = _load_settings(args)
        prompt_manager = build_prompt_manager(settings)
        compiler = build_compiler(settings, prompt_manager=prompt_manager)
    except (FileNotFoundError, JsformerError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    engine = build_engine(settings)
    try:
        if args.source:
            return _run_source(
                args, settings, compiler, engine, prompt_manager
            )
        return _run_session(
            settings, compiler, engine, prompt_manager, stdin or sys.stdin
        )
    finally:
        close = getattr(engine, "close", None)
        if close is not None:
            close()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
