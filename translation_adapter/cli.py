"""Command-line interface for link and reference adaptation."""

import argparse
import logging
import sys
from pathlib import Path

from .main import ContentAdapter


def configure_logging(level: str = "INFO"):
    """Configure root logging once for command-line runs."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Request lines are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Adapt links and references of a translated wiki article",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Adapt an English to Spanish translation with default config
  adapt-translation source.html translation.html adapted.html --from en --to es

  # Use custom config
  adapt-translation source.html translation.html adapted.html --config my_config.yaml

  # Convert unadapted links to plain text, ready for publishing
  adapt-translation source.html translation.html adapted.html --publish

  # Specify custom report location
  adapt-translation source.html translation.html adapted.html --report report.html
        """
    )

    parser.add_argument(
        "source",
        help="Source article HTML file"
    )

    parser.add_argument(
        "target",
        help="Translated article HTML file"
    )

    parser.add_argument(
        "output",
        help="Output HTML file"
    )

    parser.add_argument(
        "--from",
        dest="source_language",
        help="Source language code (default: from config)"
    )

    parser.add_argument(
        "--to",
        dest="target_language",
        help="Translation language code (default: from config)"
    )

    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "-r", "--report",
        help="Custom report output path (default: output_file.report.html)"
    )

    parser.add_argument(
        "-p", "--publish",
        action="store_true",
        default=None,
        help="Convert unadapted links to plain text"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0"
    )

    args = parser.parse_args()

    for path in (args.source, args.target):
        if not Path(path).exists():
            print(f"Error: Input file not found: {path}", file=sys.stderr)
            return 2

    try:
        adapter = ContentAdapter(config_path=args.config)
    except Exception as e:
        print(f"Error initializing adapter: {e}", file=sys.stderr)
        return 2

    configure_logging(adapter.config["logging"]["level"])

    result = adapter.adapt(
        source_file=args.source,
        target_file=args.target,
        output_file=args.output,
        source_language=args.source_language,
        target_language=args.target_language,
        report_path=args.report,
        publish=args.publish,
    )

    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
