import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from dictionary_fill.app_config import ConfigurationError, load_app_config
from dictionary_fill.fill import FillOptions, FillReport, fill
from dictionary_fill.git_files import GIT_MODES, GitOptions
from dictionary_fill.logging_config import LOGGER_NAME
from dictionary_fill.oauth import OAuthError
from dictionary_fill.reconciler import MODE_REVIEW, MODES

logger = logging.getLogger(LOGGER_NAME)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dictionary-fill',
        description="Translate content declarations into every output locale with AI."
    )
    parser.add_argument("--source-locale", default=None, help="Locale to translate from (default locale if omitted).")
    parser.add_argument("--output-locales", nargs='+', default=None, help="Locales to translate to.")
    parser.add_argument("--file", nargs='+', default=None, help="Content declaration file(s), relative to base_dir.")
    parser.add_argument("--mode", choices=MODES, default=MODE_REVIEW,
                        help="review: new translations override existing ones; complete: only fill missing ones.")
    parser.add_argument("--keys", nargs='+', default=None, help="Only fill these dictionary keys.")
    parser.add_argument("--excluded-keys", nargs='+', default=None, help="Do not fill these dictionary keys.")
    parser.add_argument("--path-filter", nargs='+', default=None, help="Only fill declarations at these paths.")
    parser.add_argument("--git", nargs='+', choices=GIT_MODES, default=None,
                        help="Only fill declarations changed according to git.")
    parser.add_argument("--git-base-ref", default=GitOptions.base_ref, help="Base ref for --git diff.")
    parser.add_argument("--git-current-ref", default=GitOptions.current_ref, help="Current ref for --git diff.")
    parser.add_argument("--model", default=None, help="Override the AI model name.")
    parser.add_argument("--concurrency", type=int, default=None, help="Maximum concurrent translations.")
    parser.add_argument("--build", action="store_true", help="Build the dictionaries before filling.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--dry-run", action="store_true", help="Do not write any file.")
    parser.add_argument("--config", default=None, help="Path to the YAML configuration file.")
    parser.add_argument("--base-dir", default=None, help="Project base directory (defaults to the CWD).")
    return parser


def options_from_args(args: argparse.Namespace) -> FillOptions:
    git_options = None
    if args.git:
        git_options = GitOptions(mode=list(args.git), base_ref=args.git_base_ref, current_ref=args.git_current_ref)

    return FillOptions(
        source_locale=args.source_locale,
        output_locales=args.output_locales,
        file=args.file,
        mode=args.mode,
        keys=args.keys,
        excluded_keys=args.excluded_keys,
        path_filter=args.path_filter,
        git_options=git_options,
        ai_options={'model': args.model} if args.model else None,
        verbose=args.verbose,
        nb_concurrent_translations=args.concurrency,
        build=args.build,
    )


def _log_report(report: FillReport) -> None:
    if report.written_files:
        logger.info(f"Completed fill: {len(report.written_files)} file(s) written.")
    else:
        logger.info("No files were written.")
    for key, reason in report.skipped.items():
        logger.debug(f"Skipped '{key}': {reason}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.concurrency is not None and args.concurrency < 1:
        print("Error: --concurrency must be at least 1", file=sys.stderr)
        return 2

    try:
        config = load_app_config(config_file=args.config, base_dir=args.base_dir)
        if args.dry_run:
            config = replace(config, dry_run=True)
        report = asyncio.run(fill(options_from_args(args), config))
    except (ConfigurationError, OAuthError) as fatal_exc:
        logger.critical(f"{fatal_exc}")
        return 1

    _log_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
