"""CLI entrypoint for the sitepipe publishing pipeline."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .collector import CollectionError, ContentCollector
from .config import ConfigError, load_config
from .environment import deploy_credential, detect_trigger, redact
from .generator import PoxyGenerator
from .logging import configure_logging, get_logger
from .orchestrator import Orchestrator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitepipe",
        description="Generate the site documentation and publish it from the trigger branch.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Path to the site repository root (defaults to the directory holding the "
        "configuration, or the current directory).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Print stage progress to standard output.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file to load (defaults to <path>/poxy.toml).",
    )
    parser.add_argument(
        "--branch",
        default=None,
        help="Branch being built; overrides CI environment detection.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write a detailed log to this file.",
    )
    return parser


def main(argv: list[str] | None = None, *, orchestrator: Orchestrator | None = None) -> None:
    """CLI entrypoint for sitepipe."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    verbose = bool(args.verbose)
    configure_logging(verbose=verbose, log_file=args.log_file)
    logger = get_logger("cli")

    root = Path(args.path).expanduser() if args.path is not None else None
    try:
        config = load_config(args.config if args.config is not None else (root or Path(".")))
    except ConfigError as exc:
        parser.exit(1, f"sitepipe: configuration error: {exc}\n")

    try:
        documents = ContentCollector().collect(config, root)
    except CollectionError as exc:
        parser.exit(1, f"sitepipe: collect failed: {exc}\n")

    trigger = detect_trigger(branch=args.branch)
    credential = deploy_credential()
    if orchestrator is None:
        orchestrator = Orchestrator(generator=PoxyGenerator(verbose=verbose))

    try:
        run = orchestrator.run(documents, config, trigger, credential=credential)
    except KeyboardInterrupt:
        parser.exit(130, "sitepipe: interrupted; re-run the pipeline to retry\n")
    except CollectionError as exc:
        parser.exit(1, f"sitepipe: collect failed: {redact(str(exc), credential)}\n")
    except RuntimeError as exc:
        message = redact(str(exc), credential)
        parser.exit(1, f"sitepipe: pipeline failed: {message}\n")

    if run.error is not None:
        parser.exit(1, f"sitepipe: {redact(run.error.summary(), credential)}\n")

    if run.deployed:
        logger.info("Published %s to %s", config.name, config.publish.target_branch)
    else:
        logger.info("Generated %s (deploy skipped)", config.name)


if __name__ == "__main__":
    main(sys.argv[1:])
