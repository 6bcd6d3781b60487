"""Command-line entry point for TinyTailor."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, List, Optional, Sequence, Tuple

import yaml

from .config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    TinyTailorConfig,
    default_config_document,
    load_config,
    resolve_config_path,
    validate_config,
)
from .menu import confirm, show_main_menu
from .models import ConfigError, TextFeatures
from .processor import (
    ALL_MODULES,
    CSS_MODULE,
    IMAGE_MODULE,
    SIZE_MODULE,
    TEXT_MODULE,
    TinyTailorProcessor,
)
from .report import ReportCollector, log_summary, write_report
from .utils import scan_files

logger = logging.getLogger("tinytailor.cli")

DEFAULT_COMMAND = "run"
COMMANDS = ("run", "init", "images", "text", "css", "check-sizes", "debug")

MODULE_ALIASES = {
    "images": IMAGE_MODULE,
    "image": IMAGE_MODULE,
    "text": TEXT_MODULE,
    "sizes": SIZE_MODULE,
    "css": CSS_MODULE,
}


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return (DEFAULT_COMMAND,)
    first = argv[0]
    if first in commands or first in ("-h", "--help"):
        return argv
    return (DEFAULT_COMMAND, *argv)


def _configure_logging(verbose: bool, console: bool = True) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    if not console:
        for handler in logging.getLogger().handlers:
            handler.setLevel(logging.ERROR)


def parse_modules(value: Optional[str]) -> List[str]:
    """Turn ``"images,css"`` into processor module names; ``None`` means all."""
    if not value or value.strip() == "all":
        return list(ALL_MODULES)
    modules: List[str] = []
    for part in value.split(","):
        name = part.strip()
        if not name:
            continue
        module = MODULE_ALIASES.get(name, name)
        if module not in ALL_MODULES:
            raise argparse.ArgumentTypeError(f"unknown module: {name}")
        if module not in modules:
            modules.append(module)
    return modules


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Path to {CONFIG_FILENAME} or the directory that contains it",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tinytailor",
        description=(
            "Rewrite HTML, Vue and Blade templates in place: responsive WebP images, "
            "non-breaking spaces after short words, unit superscripts and CSS WebP fallbacks."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Process the project (default command)")
    _add_common_arguments(run_parser)
    run_parser.add_argument(
        "-m",
        "--modules",
        default=None,
        help="Comma separated modules: images, text, sizes, css or all",
    )
    run_parser.add_argument(
        "--skip-menu",
        action="store_true",
        help="Do not show the interactive menu or ask for confirmation",
    )

    init_parser = subparsers.add_parser("init", help=f"Write a default {CONFIG_FILENAME}")
    _add_common_arguments(init_parser)
    init_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Overwrite an existing config and update .gitignore without asking",
    )

    for name, help_text in (
        ("images", "Only optimize images in markup"),
        ("text", "Only fix hanging prepositions and unit superscripts"),
        ("css", "Only add WebP rules to stylesheets"),
        ("check-sizes", "Only check for oversized images (experimental)"),
        ("debug", "Show resolved paths and the files that would be processed"),
    ):
        _add_common_arguments(subparsers.add_parser(name, help=help_text))
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, COMMANDS))
    return parser.parse_args(argv)


def _load_validated_config(config_arg: Optional[str]) -> TinyTailorConfig:
    config = load_config(resolve_config_path(config_arg))
    errors = validate_config(config)
    if errors:
        raise ConfigError(errors)
    return config


def _process(
    config: TinyTailorConfig,
    modules: List[str],
    features: TextFeatures,
    interactive: bool,
) -> int:
    collector = ReportCollector()
    package_logger = logging.getLogger("tinytailor")
    package_logger.addHandler(collector)
    try:
        processor = TinyTailorProcessor(config, features)
        files = processor.discover_files(modules)
        if not files:
            logger.warning("No files matched the configured scan globs")
        if interactive and not confirm(f"About to process {len(files)} files. Continue?"):
            logger.info("Processing cancelled")
            return 0

        logger.info("Running modules: %s", ", ".join(modules))
        result = processor.process_files(modules, files)
        log_summary(result)
        if config.logging.markdown_report:
            write_report(
                result,
                config.project_root / config.logging.report_dir,
                log_lines=collector.lines,
                project_root=config.project_root,
                modules=modules,
            )
    finally:
        package_logger.removeHandler(collector)
    return 1 if result.errors else 0


def _run(args: argparse.Namespace) -> int:
    config = _load_validated_config(args.config)
    _configure_logging(args.verbose, config.logging.console)

    interactive = not args.skip_menu
    features = TextFeatures()
    if args.modules:
        modules = parse_modules(args.modules)
    elif interactive:
        modules, features = show_main_menu()
    else:
        modules = list(ALL_MODULES)
    return _process(config, modules, features, interactive)


def _run_single(args: argparse.Namespace, module: str) -> int:
    config = _load_validated_config(args.config)
    _configure_logging(args.verbose, config.logging.console)
    if module == SIZE_MODULE:
        config.size_checking.enabled = True
    return _process(config, [module], TextFeatures(), interactive=False)


def _run_init(args: argparse.Namespace) -> int:
    config_path = resolve_config_path(args.config)
    if config_path.exists() and not args.yes:
        if not confirm(f"{config_path} already exists. Overwrite?", default=False):
            logger.info("Keeping existing %s", config_path)
            return 0

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump(default_config_document(), allow_unicode=True, sort_keys=False),
        encoding="utf-8",
    )
    logger.info("Wrote %s", config_path)

    report_dir_name = DEFAULT_CONFIG["logging"]["report_dir"]
    (config_path.parent / report_dir_name).mkdir(exist_ok=True)

    gitignore = config_path.parent / ".gitignore"
    entry = f"{report_dir_name}/"
    existing = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
    if entry not in existing.splitlines():
        if args.yes or confirm(f"Add {entry} to .gitignore?"):
            prefix = "" if not existing or existing.endswith("\n") else "\n"
            with gitignore.open("a", encoding="utf-8") as handle:
                handle.write(f"{prefix}{entry}\n")
            logger.info("Added %s to %s", entry, gitignore)
    return 0


def _run_debug(args: argparse.Namespace) -> int:
    config = _load_validated_config(args.config)
    print(f"Project root: {config.project_root}")
    print(f"Public root:  {config.public_root} ({'exists' if config.public_root.exists() else 'missing'})")
    print("Scan globs:")
    exclusions = [pattern for pattern in config.scan_globs if pattern.startswith("!")]
    for pattern in config.scan_globs:
        if pattern.startswith("!"):
            print(f"  {pattern} (exclusion)")
            continue
        matched = scan_files([pattern, *exclusions], config.project_root)
        print(f"  {pattern}: {len(matched)} files")
    for ext in config.css_optimization.file_extensions:
        matched = scan_files([f"**/*{ext}", *exclusions], config.project_root)
        print(f"  **/*{ext} (css): {len(matched)} files")
    total = scan_files(
        config.scan_globs,
        config.project_root,
        exclude_paths=config.exclude_paths,
        exclude_files=config.exclude_files,
    )
    print(f"Total markup files after exclusions: {len(total)}")
    return 0


COMMAND_MODULES: Tuple[Tuple[str, str], ...] = (
    ("images", IMAGE_MODULE),
    ("text", TEXT_MODULE),
    ("css", CSS_MODULE),
    ("check-sizes", SIZE_MODULE),
)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    single = dict(COMMAND_MODULES)
    try:
        if args.command == "init":
            return _run_init(args)
        if args.command == "debug":
            return _run_debug(args)
        if args.command in single:
            return _run_single(args, single[args.command])
        return _run(args)
    except ConfigError as exc:
        for error in exc.errors:
            logger.error("Configuration error: %s", error)
        return 1
    except argparse.ArgumentTypeError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
