#!/usr/bin/env python3
"""
Bundle Repair CLI - Main Entry Point

Usage:
    bundle-repair response.txt                      # Summarise the recovered bundle
    cat response.txt | bundle-repair                # Read the response from stdin
    bundle-repair response.txt -o ./out             # Write the bundle files to ./out
    bundle-repair response.txt --format json        # Print the transport JSON
    bundle-repair --help                            # Show help
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console

from bundle_repair.core.logging_config import logger
from bundle_repair.services.bundle_extraction import extract_bundle
from cli.renderer import ResultRenderer


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="bundle-repair",
        description="Recover a self-contained HTML/CSS/JS bundle from raw model output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bundle-repair response.txt                         Show what was recovered
  bundle-repair response.txt -o site/                Write index.html, styles.css, script.js
  bundle-repair response.txt -p "todo app"           Pick the todo template if recovery fails
  bundle-repair response.txt --format json           Print the result as JSON

The command always produces a bundle. When nothing can be recovered it
falls back to a built-in example application and lists warnings.
        """
    )

    # Positional argument for input file
    parser.add_argument(
        "input",
        nargs="?",
        help="File holding the raw response (reads stdin if omitted)"
    )

    # Request text used to pick a fallback template
    parser.add_argument(
        "-p", "--prompt",
        default="",
        help="Original request text, used to choose a fallback template"
    )

    # Model name recorded in the result
    parser.add_argument(
        "-m", "--model",
        help="Model that produced the response"
    )

    # Output format
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )

    # Output directory
    parser.add_argument(
        "-o", "--output-dir",
        type=str,
        help="Write the bundle files into this directory"
    )

    # Show file contents
    parser.add_argument(
        "--show-files",
        action="store_true",
        help="Print every recovered file with syntax highlighting"
    )

    # Verbose mode
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )

    # Print version
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    return parser


def read_input(path: Optional[str]) -> str:
    """Read raw text from a file or stdin"""
    if path is None or path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8", errors="replace")


def write_bundle(directory: Path, files: dict) -> List[str]:
    """Write each file of the bundle into `directory`"""
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for name, content in files.items():
        (directory / name).write_text(content, encoding="utf-8")
        written.append(name)
    return written


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    console = Console()
    renderer = ResultRenderer(console)

    # Keep stdout for the result itself
    for handler in logger.handlers:
        if type(handler) is logging.StreamHandler:
            handler.setStream(sys.stderr)
            if args.verbose:
                handler.setLevel(logging.DEBUG)
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        raw_text = read_input(args.input)
    except OSError as e:
        renderer.render_error("Could not read input", str(e))
        sys.exit(1)

    result = extract_bundle(raw_text, request_text=args.prompt, model=args.model)

    if args.format == "json":
        print(json.dumps(result.to_transport(), ensure_ascii=False, indent=2))
    else:
        renderer.render_summary(result)
        renderer.render_warnings(result)
        if args.show_files:
            for name, content in result.files.items():
                renderer.render_file(name, content)

    if args.output_dir:
        directory = Path(args.output_dir)
        try:
            written = write_bundle(directory, result.files)
        except OSError as e:
            renderer.render_error(f"Could not write to {directory}", str(e))
            sys.exit(1)
        if args.format == "text":
            renderer.render_files_written(directory, written)

    sys.exit(0)


if __name__ == "__main__":
    main()
