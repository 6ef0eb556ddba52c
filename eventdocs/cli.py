"""CLI entrypoints for eventdocs commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import CONFIG_FILE_NAME, DEFAULT_SIDEBAR_FILE, SERIALIZATION_FORMATS, load_config, resolve_options
from .errors import EventDocsError
from .logging import configure_logging
from .orchestrator import Orchestrator

DEFAULT_TEMPLATES_OUTPUT = "./templates"


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _split_paths(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eventdocs",
        description="Generate markdown documentation for event contracts declared in Python modules.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Discover events in the given modules and write their documentation.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    generate_parser.add_argument(
        "-m",
        "--modules",
        required=True,
        type=_split_paths,
        help="Comma-separated module files, packages or archives to document.",
    )
    generate_parser.add_argument(
        "--docs",
        type=_split_paths,
        default=[],
        help="Comma-separated YAML documentation files overriding docstrings.",
    )
    generate_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output directory for generated documents (defaults to ./docs/events/).",
    )
    generate_parser.add_argument(
        "--sidebar-file",
        default=None,
        help=f"File name of the navigation manifest (defaults to {DEFAULT_SIDEBAR_FILE}).",
    )
    generate_parser.add_argument(
        "--templates",
        default=None,
        help="Directory with custom templates; missing templates fall back to the defaults.",
    )
    generate_parser.add_argument(
        "--source-url",
        default=None,
        help="Base URL used to link each event to its source file.",
    )
    generate_parser.add_argument(
        "--format",
        dest="serialization_format",
        choices=SERIALIZATION_FORMATS,
        default=None,
        help="Serialization format used for payload size estimates.",
    )
    generate_parser.add_argument(
        "--config",
        default=".",
        help=f"Path to {CONFIG_FILE_NAME} or the directory containing it.",
    )

    copy_parser = subparsers.add_parser(
        "copy-templates",
        help="Copy the default templates into a directory for customisation.",
    )
    _add_verbose_option(copy_parser, suppress_default=True)
    copy_parser.add_argument(
        "-o",
        "--output",
        default=DEFAULT_TEMPLATES_OUTPUT,
        help="Destination directory (defaults to ./templates).",
    )
    copy_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite templates that already exist in the destination.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for eventdocs commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file).expanduser() if args.log_file else None
    try:
        configure_logging(verbose=bool(args.verbose), log_file=log_file)
    except OSError as exc:
        parser.exit(1, f"eventdocs: cannot open log file: {exc}\n")

    orchestrator = Orchestrator()

    if args.command == "generate":
        try:
            config = load_config(Path(args.config))
            options = resolve_options(
                config,
                module_paths=args.modules,
                documentation_paths=args.docs,
                output=args.output,
                sidebar_file=args.sidebar_file,
                templates=args.templates,
                source_url=args.source_url,
                serialization_format=args.serialization_format,
            )
            outcome = orchestrator.run_generate(options)
        except EventDocsError as exc:
            parser.exit(1, f"eventdocs generate failed: {exc}\n")
        except OSError as exc:
            parser.exit(1, f"eventdocs generate failed: {exc}\nRun with --verbose for more details.\n")
        except Exception as exc:  # pragma: no cover
            parser.exit(1, f"eventdocs generate failed: {exc}\nRun with --verbose for more details.\n")
        print(
            f"Documented {len(outcome.events)} event(s) and {len(outcome.schemas)} schema(s) "
            f"in {_relativize(options.output_directory)}"
        )
        if outcome.warnings:
            print(f"{len(outcome.warnings)} warning(s) reported; run with --verbose for details")
    elif args.command == "copy-templates":
        target = Path(args.output)
        try:
            written = orchestrator.run_copy_templates(target, overwrite=bool(args.force))
        except FileExistsError as exc:
            parser.exit(1, f"{exc}\n")
        except EventDocsError as exc:
            parser.exit(1, f"eventdocs copy-templates failed: {exc}\n")
        except OSError as exc:
            parser.exit(1, f"eventdocs copy-templates failed: {exc}\n")
        print(f"Copied {len(written)} template(s) to {_relativize(target)}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
