"""Command-line interface for llamaterminal."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from llamaterminal import __version__
from llamaterminal.session import AIMode


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="llamaterminal",
        description="Shell session with a local language model that suggests or runs commands",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--cwd",
        type=Path,
        help="Working directory for the shell (default: current directory)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in AIMode],
        help="Initial AI mode (default: from config, else disabled)",
    )
    parser.add_argument(
        "--model",
        help="litellm model identifier (e.g., 'ollama/codellama')",
    )
    parser.add_argument(
        "--api-base",
        help="Model API base URL (default: local Ollama)",
    )
    parser.add_argument(
        "--history-file",
        type=Path,
        help="File for persistent line-editing history",
    )
    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    cwd = str(parsed.cwd.resolve()) if parsed.cwd else os.getcwd()
    if not os.path.isdir(cwd):
        parser.error(f"--cwd is not a directory: {cwd}")

    # Load config, then apply command-line overrides
    from llamaterminal.config import load_config
    config = load_config(project_root=cwd)
    if parsed.mode:
        config.session.default_mode = parsed.mode
    if parsed.model:
        config.llm.model = parsed.model
    if parsed.api_base:
        config.llm.api_base = parsed.api_base
    if parsed.verbose is not None:
        config.logging.verbose = parsed.verbose

    from llamaterminal.logging import setup_logging
    setup_logging(config.logging)

    from llamaterminal.interactive import InteractiveRepl
    from llamaterminal.terminal import SpawnError

    repl = InteractiveRepl(config, cwd=cwd, history_file=parsed.history_file)
    try:
        return asyncio.run(repl.run())
    except SpawnError as e:
        print(f"llamaterminal: could not start shell: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


def main() -> int:
    """Main entry point for the llamaterminal CLI."""
    return run_cli(sys.argv[1:])
