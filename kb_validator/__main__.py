"""CLI entry point for kb-validator."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from kb_validator.config import load_config

logger = logging.getLogger(__name__)


def _read_input(args: argparse.Namespace) -> str:
    """Resolve the text to analyze from the positional arg, --file, --example or stdin."""
    from kb_validator.analysis.catalog import default_catalog

    if args.example:
        text = default_catalog().sample_input(args.example)
        if text is None:
            print(f"Error: unknown example '{args.example}'. Run 'kb-validator examples'.", file=sys.stderr)
            sys.exit(1)
        return text
    if args.file:
        path = Path(args.file)
        if not path.is_file():
            print(f"Error: '{path}' is not a file.", file=sys.stderr)
            sys.exit(1)
        return path.read_text(encoding="utf-8")
    if args.text is not None:
        return args.text
    return sys.stdin.read()


def cmd_analyze(args: argparse.Namespace) -> None:
    """Analyze a piece of text and print the structured result."""
    import asyncio

    from kb_validator.analysis.engine import NoDelay, create_engine
    from kb_validator.analysis.input_type import detect_input_type
    from kb_validator.errors import AnalysisError
    from kb_validator.render import export_json, render_text, write_export

    config = load_config(Path(args.config) if args.config else None)
    if args.mode:
        config.agent.mode = args.mode

    text = _read_input(args)

    try:
        engine = create_engine(config, delay=NoDelay() if args.no_delay else None)
    except AnalysisError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if not args.json:
        detected = detect_input_type(text)
        if detected:
            print(f"Detected input type: {detected}")
        print(render_text(None, is_processing=True))
        print()

    try:
        result = asyncio.run(engine.analyze_detailed(text))
    except AnalysisError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(export_json(result.response))
    else:
        if args.explain:
            if result.scenario_id:
                print(f"Matched scenario '{result.scenario_id}' on keyword {result.matched_keyword!r}\n")
            elif result.mode == "simulated":
                print("No scenario matched; generic extraction used.\n")
        print(render_text(result.response))

    if args.output:
        out = write_export(result.response, Path(args.output))
        print(f"\nExported to {out}", file=sys.stderr)


def cmd_examples(args: argparse.Namespace) -> None:
    """List the built-in example scenarios."""
    from kb_validator.analysis.catalog import default_catalog

    catalog = default_catalog()
    for scenario in catalog.all():
        first_line = scenario.input.strip().splitlines()[0] if scenario.input.strip() else ""
        print(f"{scenario.id}")
        print(f"    {first_line[:100]}")


def cmd_test_connection(args: argparse.Namespace) -> None:
    """Ping the configured live agent."""
    import asyncio

    from kb_validator.analysis.engine import create_engine
    from kb_validator.errors import AnalysisError

    config = load_config(Path(args.config) if args.config else None)
    try:
        engine = create_engine(config)
    except AnalysisError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    result = asyncio.run(engine.test_connection())
    print(result["message"])
    if not result["ok"]:
        sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI server."""
    import uvicorn

    from kb_validator.api.server import create_app
    from kb_validator.errors import FixtureLoadError

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path)

    host = args.host or config.api.host
    port = args.port or config.api.port

    try:
        app = create_app(config=config, config_path=config_path)
    except FixtureLoadError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs: http://{host}:{port}/docs")
    print(f"Agent mode: {config.agent.mode}\n")
    uvicorn.run(app, host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="kb-validator",
        description="Structured analysis of RFPs, support emails and bids",
    )
    parser.add_argument("--config", help="Path to config.yaml", default=None)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level (default: WARNING)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # analyze command
    p_analyze = sub.add_parser("analyze", help="Analyze text and print the structured result")
    p_analyze.add_argument("text", nargs="?", default=None, help="Text to analyze (default: read stdin)")
    p_analyze.add_argument("--file", help="Read the text from a file", default=None)
    p_analyze.add_argument("--example", help="Analyze a built-in example scenario by id", default=None)
    p_analyze.add_argument("--mode", choices=["simulated", "live"], default=None, help="Override agent.mode")
    p_analyze.add_argument("--json", action="store_true", help="Print the raw JSON response")
    p_analyze.add_argument("--no-delay", action="store_true", help="Skip the simulated processing delay")
    p_analyze.add_argument("--explain", action="store_true", help="Show which scenario keyword matched")
    p_analyze.add_argument("--output", help="Also export the JSON response to this path", default=None)
    p_analyze.set_defaults(func=cmd_analyze)

    # examples command
    p_examples = sub.add_parser("examples", help="List the built-in example scenarios")
    p_examples.set_defaults(func=cmd_examples)

    # test-connection command
    p_test = sub.add_parser("test-connection", help="Ping the configured live agent endpoint")
    p_test.set_defaults(func=cmd_test_connection)

    # serve command
    p_serve = sub.add_parser("serve", help="Start the API server")
    p_serve.add_argument("--host", help="Bind host", default=None)
    p_serve.add_argument("--port", help="Bind port", type=int, default=None)
    p_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    # Console: respect --log-level (default WARNING to keep terminal clean)
    console_level = getattr(logging, args.log_level)
    logging.basicConfig(
        level=console_level,
        format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
    )
    for handler in logging.root.handlers:
        handler.setLevel(console_level)

    # File handler: WARNING+ only
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    from logging.handlers import RotatingFileHandler
    file_handler = RotatingFileHandler(
        log_dir / "kb_validator.log",
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
    ))
    logging.root.addHandler(file_handler)

    logger.info("Log file: %s", (log_dir / "kb_validator.log").resolve())
    args.func(args)


if __name__ == "__main__":
    main()
