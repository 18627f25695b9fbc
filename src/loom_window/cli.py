from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .config import WindowConfig, load_window_config
from .model import Endpoint, ModelSpec
from .options import Strategy
from .schema import dump_conversation, load_conversation
from .strategies import apply
from .tokenizer import count_messages
from .tracing import init_telemetry, shutdown_telemetry
from .types import Message
from .window import ContextWindow


def _read_conversation(path: str) -> tuple[Message, ...]:
    """Read a conversation from a JSON file or '-' for stdin; exit 2 on bad input."""
    try:
        text = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    except OSError as e:
        print(f"[loom-window] Cannot read {path}: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        return load_conversation(text)
    except (ValueError, ValidationError) as e:
        print(f"[loom-window] Invalid conversation in {path}: {e}", file=sys.stderr)
        sys.exit(2)


def _load_config(args) -> WindowConfig:
    """Load --config or the nearest loom-window.toml; exit 2 if it is invalid."""
    try:
        if args.config:
            return WindowConfig.load(Path(args.config))
        return load_window_config(Path.cwd())
    except RuntimeError as e:
        print(f"[loom-window] Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)


def _strategy_options(args, config: WindowConfig, strategy: Strategy) -> dict[str, Any]:
    """Merge command-line options over configured defaults."""
    values: dict[str, Any] = {"count": args.count if args.count is not None else config.count}
    if strategy is Strategy.SLIDING_WINDOW:
        values["overlap"] = args.overlap if args.overlap is not None else config.overlap
    elif strategy is Strategy.SMART_TRUNCATE:
        values["preserve_first"] = config.preserve_first and not args.no_preserve_first
    return values


def cmd_count(args, config: WindowConfig):
    """Print the estimated token count of a conversation."""
    messages = _read_conversation(args.file)
    provider = args.provider or config.provider
    print(count_messages(messages, provider))


def cmd_truncate(args, config: WindowConfig):
    """Truncate a conversation to a token budget and print it as JSON."""
    messages = _read_conversation(args.file)
    provider = args.provider or config.provider
    strategy_name = args.strategy or config.strategy

    strategy = Strategy.parse(strategy_name)
    options = _strategy_options(args, config, strategy) if strategy else None

    try:
        result = apply(messages, provider, args.budget, strategy or strategy_name, options)
    except ValueError as e:
        print(f"[loom-window] Invalid options: {e}", file=sys.stderr)
        sys.exit(2)

    if not result.ok:
        error = result.error
        print(f"[loom-window] Error ({error.kind}): {error}", file=sys.stderr)  # type: ignore[union-attr]
        sys.exit(1)

    print(dump_conversation(result.messages))


def cmd_check(args, config: WindowConfig):
    """Print how a conversation fits a model's context window."""
    if args.max_completion is not None and args.context_length is None:
        print("[loom-window] --max-completion requires --context-length", file=sys.stderr)
        sys.exit(2)

    messages = _read_conversation(args.file)

    if args.model:
        try:
            model = config.model(args.model)
        except KeyError as e:
            print(f"[loom-window] {e.args[0]}", file=sys.stderr)
            sys.exit(2)
    else:
        model = ModelSpec(
            provider=args.provider or config.provider,
            model="cli",
            endpoints=(
                (Endpoint(args.context_length, args.max_completion),)
                if args.context_length is not None
                else ()
            ),
        )

    window = ContextWindow(model, config=config)
    reserve = (
        args.reserve_completion
        if args.reserve_completion is not None
        else config.reserve_completion
    )
    info = window.check_fit(messages, reserve)
    print(json.dumps(asdict(info)))


def main(argv: Optional[list[str]] = None):
    p = argparse.ArgumentParser(
        prog="loom-window", description="Fit chat conversations into a token budget"
    )
    p.add_argument("--config", default=None, help="Path to loom-window.toml (default: search up)")
    p.add_argument(
        "--trace", action="store_true", help="Export spans over OTLP (see OTEL_* env vars)"
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sc = sub.add_parser("count", help="Print the token count of a conversation")
    sc.add_argument("file", help="Conversation JSON file, or '-' for stdin")
    sc.add_argument("--provider", default=None, help="Provider for token estimation")
    sc.set_defaults(func=cmd_count)

    st = sub.add_parser("truncate", help="Truncate a conversation to a token budget")
    st.add_argument("file", help="Conversation JSON file, or '-' for stdin")
    st.add_argument("--budget", type=int, required=True, help="Token budget")
    st.add_argument(
        "--strategy",
        default=None,
        help=f"Truncation strategy: {', '.join(s.value for s in Strategy)}",
    )
    st.add_argument("--provider", default=None, help="Provider for token estimation")
    st.add_argument("--count", type=int, default=None, help="Number of messages to keep")
    st.add_argument("--overlap", type=int, default=None, help="Sliding window overlap")
    st.add_argument(
        "--no-preserve-first",
        action="store_true",
        help="smart_truncate: do not keep the first user message",
    )
    st.set_defaults(func=cmd_truncate)

    sk = sub.add_parser("check", help="Check whether a conversation fits a context window")
    sk.add_argument("file", help="Conversation JSON file, or '-' for stdin")
    sk.add_argument("--model", default=None, help="Model alias from loom-window.toml")
    sk.add_argument("--context-length", type=int, default=None, help="Total context tokens")
    sk.add_argument("--max-completion", type=int, default=None, help="Max completion tokens")
    sk.add_argument("--provider", default=None, help="Provider for token estimation")
    sk.add_argument(
        "--reserve-completion", type=int, default=None, help="Tokens to reserve for completion"
    )
    sk.set_defaults(func=cmd_check)

    args = p.parse_args(argv)
    config = _load_config(args)
    if not args.trace:
        args.func(args, config)
        return

    init_telemetry(config=config)
    try:
        args.func(args, config)
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    main()
