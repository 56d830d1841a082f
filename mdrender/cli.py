"""Command line interface for mdrender.

Commands:
    render   Extract Mermaid blocks from Markdown and render them to images
    check    Report whether the selected renderer can run
    config   List the environment variables mdrender reads
    dev      Development workflows (test)

Exit codes:
    0  Success (individual render failures are reported but do not fail the run)
    1  Usage or unexpected error
    2  Renderer unavailable
    3  Some renders failed and --fail-on-error was given
"""

import argparse
import json
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

from mdrender.batch import BatchConfig, BatchRenderer, NumberingMode
from mdrender.config import (
    EnvVar,
    get_environment,
    get_environment_info,
    list_environment_variables,
)
from mdrender.core import get_logger, level_for_verbosity, setup_logging
from mdrender.render import (
    OutputFormat,
    RenderConfig,
    RendererUnavailableError,
    get_renderer,
    list_renderers,
)

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_RENDERER_UNAVAILABLE = 2
EXIT_RENDER_FAILED = 3


def _create_renderer(args: argparse.Namespace):
    """Instantiate the backend chosen on the command line or in the environment."""
    name = args.renderer or get_environment(EnvVar.MDRENDER_RENDERER)
    kwargs = {}
    if name == "mmdc" and getattr(args, "mmdc", None):
        kwargs["command"] = args.mmdc
    elif name == "kroki" and getattr(args, "kroki_url", None):
        kwargs["base_url"] = args.kroki_url
    return get_renderer(name, **kwargs)


def _add_renderer_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--renderer",
        "-r",
        type=str,
        default=None,
        help="Rendering backend (default: $MDRENDER_RENDERER or mmdc)",
    )
    parser.add_argument(
        "--mmdc",
        type=str,
        default=None,
        help="Mermaid CLI command (default: $MERMAID_CLI or mmdc on PATH)",
    )
    parser.add_argument(
        "--kroki-url",
        type=str,
        default=None,
        help="Kroki service URL (default: $KROKI_URL)",
    )


def _add_verbosity_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug output",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Only show warnings and errors",
    )


# =============================================================================
# Render Command
# =============================================================================


def cmd_render(args: argparse.Namespace) -> int:
    """Handle the render command."""
    try:
        render_config = RenderConfig.from_environment(
            output_format=OutputFormat(args.format),
            background=args.background,
            width=args.width,
            height=args.height,
            theme=args.theme,
            timeout=args.timeout,
            config_file=args.config_file,
            puppeteer_config=args.puppeteer_config,
        )
        config = BatchConfig.from_environment(
            docs_dir=args.docs_dir,
            output_dir=args.output,
            exclude=args.exclude,
            recursive=args.recursive,
            min_length=args.min_length,
            numbering=args.numbering,
            workers=args.workers,
            render=render_config,
        )
        renderer = _create_renderer(args)
    except (ValueError, KeyError) as e:
        logger.error(str(e).strip("'\""))
        return EXIT_USAGE

    batch = BatchRenderer(renderer, config)

    if args.list_only:
        try:
            jobs = batch.plan()
        except OSError as e:
            logger.error(str(e))
            return EXIT_USAGE
        for job in jobs:
            print(json.dumps(job.describe()))
        logger.info(f"{len(jobs)} diagram(s) would be rendered")
        return EXIT_OK

    try:
        report = batch.run()
    except RendererUnavailableError as e:
        logger.error(str(e))
        logger.error("Install it with: npm install -g @mermaid-js/mermaid-cli")
        return EXIT_RENDERER_UNAVAILABLE
    except NotADirectoryError as e:
        logger.error(str(e))
        return EXIT_USAGE

    print()
    report.print_summary(output_dir=config.output_dir or config.docs_dir)

    if args.manifest:
        report.write_manifest(args.manifest)
        logger.info(f"Manifest written to {args.manifest}")

    if args.fail_on_error and report.has_failures:
        return EXIT_RENDER_FAILED
    return EXIT_OK


def handle_render_command(argv: list[str]) -> int:
    """Handle render-specific commands."""
    parser = argparse.ArgumentParser(
        prog="python . render",
        description="Render Mermaid diagrams embedded in Markdown documents",
    )
    parser.add_argument(
        "docs_dir",
        nargs="?",
        type=Path,
        default=None,
        help="Documents directory (default: $MDRENDER_DOCS_DIR or current directory)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output directory (default: next to each document)",
    )
    parser.add_argument(
        "--exclude",
        "-x",
        action="append",
        default=None,
        metavar="NAME",
        help="Document name or relative path to skip, repeatable (README.md is always skipped)",
    )
    parser.add_argument(
        "--recursive",
        "-R",
        action="store_true",
        help="Include documents in subdirectories",
    )
    _add_renderer_arguments(parser)
    parser.add_argument(
        "--format",
        "-f",
        type=str,
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.PNG.value,
        help="Image format (default: png)",
    )
    parser.add_argument(
        "--width",
        "-W",
        type=int,
        default=None,
        help="Maximum image width (default: 2048)",
    )
    parser.add_argument(
        "--height",
        "-H",
        type=int,
        default=None,
        help="Maximum image height (default: 2048)",
    )
    parser.add_argument(
        "--background",
        "-b",
        type=str,
        default=None,
        help="Background color (default: transparent)",
    )
    parser.add_argument(
        "--theme",
        "-t",
        type=str,
        default=None,
        help="Mermaid theme (default, neutral, dark, forest)",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=None,
        help="Mermaid JSON config file",
    )
    parser.add_argument(
        "--puppeteer-config",
        type=Path,
        default=None,
        help="Puppeteer JSON config file",
    )
    parser.add_argument(
        "--min-length",
        type=int,
        default=None,
        help="Skip blocks with this many characters or fewer (default: 10)",
    )
    parser.add_argument(
        "--numbering",
        type=str,
        choices=[m.value for m in NumberingMode],
        default=None,
        help="dense: number valid diagrams 1..N; position: keep block position",
    )
    parser.add_argument(
        "--workers",
        "-j",
        type=int,
        default=None,
        help="Documents processed in parallel (default: 1)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-diagram timeout in seconds (default: none)",
    )
    parser.add_argument(
        "--list-only",
        action="store_true",
        help="Print planned renders as JSON lines without rendering",
    )
    parser.add_argument(
        "--manifest",
        type=Path,
        default=None,
        help="Write a JSON map of documents to generated images",
    )
    parser.add_argument(
        "--fail-on-error",
        action="store_true",
        help="Exit with code 3 if any diagram failed to render",
    )
    _add_verbosity_arguments(parser)

    args = parser.parse_args(argv)
    setup_logging(level_for_verbosity(args.verbose, args.quiet))
    return cmd_render(args)


# =============================================================================
# Check Command
# =============================================================================


def cmd_check(args: argparse.Namespace) -> int:
    """Report renderer availability."""
    try:
        renderer = _create_renderer(args)
    except KeyError as e:
        logger.error(str(e).strip("'\""))
        return EXIT_USAGE

    print(f"Renderer: {renderer.name}")
    print(f"  Target: {renderer.describe()}")

    version = getattr(renderer, "version", None)
    if callable(version):
        found = version()
        print(f"  Version: {found or 'not found'}")
        available = found is not None
    else:
        available = renderer.is_available()

    print(f"  Status: {'available' if available else 'unavailable'}")
    print(f"\nRegistered renderers: {', '.join(list_renderers())}")
    return EXIT_OK if available else EXIT_RENDERER_UNAVAILABLE


def handle_check_command(argv: list[str]) -> int:
    """Handle the check command."""
    parser = argparse.ArgumentParser(
        prog="python . check",
        description="Check that the rendering backend can run",
    )
    _add_renderer_arguments(parser)
    _add_verbosity_arguments(parser)
    args = parser.parse_args(argv)
    setup_logging(level_for_verbosity(args.verbose, args.quiet))
    return cmd_check(args)


# =============================================================================
# Config Command
# =============================================================================


def cmd_config(args: argparse.Namespace) -> int:
    """List environment variables with their current values."""
    variables = list_environment_variables(args.category)
    if not variables:
        logger.error(f"Unknown category: {args.category}")
        return EXIT_USAGE

    current_category = None
    for var in variables:
        info = get_environment_info(var)
        if info.category != current_category:
            current_category = info.category
            print(f"\n[{current_category}]")
        value = get_environment(var)
        print(f"  {info.name} = {value!r}")
        print(f"      {info.description} (default: {info.default!r})")
    return EXIT_OK


def handle_config_command(argv: list[str]) -> int:
    """Handle the config command."""
    parser = argparse.ArgumentParser(
        prog="python . config",
        description="Show environment variables used by mdrender",
    )
    parser.add_argument(
        "category",
        nargs="?",
        choices=["renderer", "render", "batch"],
        default=None,
        help="Only show one category",
    )
    args = parser.parse_args(argv)
    return cmd_config(args)


# =============================================================================
# Dev Commands
# =============================================================================


def cmd_test(extra_args: list[str]) -> int:
    """Run pytest with provided arguments and test tier options.

    Usage:
        python . dev test                # Run all tests
        python . dev test --unit         # Fast tests, no external tools
        python . dev test --integration  # Subprocess and filesystem tests
        python . dev test --mmdc         # Tests that need a real Mermaid CLI
        python . dev test --kroki        # Tests that need a Kroki service
    """
    tier_markers = {
        "--unit": ["-m", "unit"],
        "--integration": ["-m", "integration and not mmdc and not kroki"],
        "--mmdc": ["-m", "mmdc"],
        "--kroki": ["-m", "kroki"],
        "--all": [],
    }

    pytest_args: list[str] = []
    remaining_args: list[str] = []

    for arg in extra_args:
        if arg in tier_markers:
            pytest_args.extend(tier_markers[arg])
        else:
            remaining_args.append(arg)

    cmd = [sys.executable, "-m", "pytest", *pytest_args, *remaining_args]
    logger.info(f"Running: {' '.join(cmd)}")

    try:
        return subprocess.call(cmd)
    except KeyboardInterrupt:
        return 130


def handle_dev_command(argv: list[str]) -> int:
    """Handle development workflow commands.

    Usage:
        python . dev test [args]       # Run pytest
    """
    if not argv:
        print("Development workflow commands")
        print("\nUsage: python . dev {command} [args]")
        print("\nCommands:")
        print("  test       Run pytest with tier options")
        print("\nExamples:")
        print("  python . dev test --unit           # Fast unit tests")
        print("  python . dev test --integration    # Integration tests")
        print("  python . dev test --mmdc           # Real Mermaid CLI tests")
        return EXIT_USAGE

    subcommand = argv[0]
    subargs = argv[1:]

    dev_commands = {
        "test": lambda: cmd_test(subargs),
    }

    if subcommand in dev_commands:
        setup_logging()
        return dev_commands[subcommand]()

    logger.error(f"Unknown dev command: {subcommand}")
    return handle_dev_command([])


# =============================================================================
# Entry Point
# =============================================================================


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: python . {command} [args]")
    print("\nCommands:")
    print("  render     Render Mermaid diagrams found in Markdown documents")
    print("  check      Check that the rendering backend can run")
    print("  config     Show environment variables")
    print("  dev        Development workflows (test)")
    print("\nExamples:")
    print("  python . render docs                    # Images next to each document")
    print("  python . render docs -o build/diagrams  # Images in a separate directory")
    print("  python . render docs --list-only        # Show what would be rendered")
    print("  python . render docs -r kroki           # Render through Kroki")
    print("  python . check                          # Is mmdc installed?")
    print("  python . config renderer                # Renderer settings")
    print("\nFor command details: python . {command} --help")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    load_dotenv()
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        show_help()
        return EXIT_USAGE

    command = argv[0]
    rest_args = argv[1:]

    if command in ("-h", "--help"):
        show_help()
        return EXIT_OK

    commands = {
        "render": lambda: handle_render_command(rest_args),
        "check": lambda: handle_check_command(rest_args),
        "config": lambda: handle_config_command(rest_args),
        "dev": lambda: handle_dev_command(rest_args),
    }

    if command in commands:
        return commands[command]()

    setup_logging()
    logger.error(f"Unknown command: {command}")
    show_help()
    return EXIT_USAGE


__all__ = ["main"]
