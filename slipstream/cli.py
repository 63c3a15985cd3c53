"""Command line interface for the Slipstream translator."""

from __future__ import annotations

import argparse
import json
import pathlib
import sys
from typing import Iterable, Optional

from .configuration import browser_options, get_settings, session_timeouts
from .errors import ErrorCategory, SlipstreamError, TranslationProviderConfigurationError
from .logging_config import configure_logging
from .providers import build_provider
from .structures import ChunkPlan
from .translator import TranslationRunner, TranslationSummary, validate_paths

DEFAULT_SOURCE_LANGUAGE = "en"
DEFAULT_TARGET_LANGUAGE = "es"

# Exit status per error category; unlisted categories exit with 1.
EXIT_CODES = {ErrorCategory.TRANSLATION: 2}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slipstream",
        description=(
            "Translate PDF documents that exceed the web translator's upload limit "
            "by splitting, translating and merging them back in order."
        ),
    )
    parser.add_argument(
        "input_file",
        help="Path to the .pdf file to translate or analyze.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        default=DEFAULT_TARGET_LANGUAGE,
        help="Destination language code (default: es).",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        default=DEFAULT_SOURCE_LANGUAGE,
        help="Source language code (default: en).",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to translated_<input name> next to the input.",
    )
    parser.add_argument(
        "-a",
        "--analyze",
        action="store_true",
        help="Only report how the document would be split; nothing is translated.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the analysis as JSON.",
    )
    parser.add_argument(
        "-m",
        "--max-chunk-mb",
        type=float,
        help="Largest chunk in megabytes (default: 9, or SLIPSTREAM_MAX_CHUNK_BYTES).",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (default: browser).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show the browser and save a screenshot of every step.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Write log records to stderr as JSON lines.",
    )
    return parser


def exit_code_for(error: SlipstreamError) -> int:
    return EXIT_CODES.get(error.category, 1)


def derive_output_path(input_path: pathlib.Path) -> pathlib.Path:
    return input_path.with_name(f"translated_{input_path.name}")


def execute_translation(
    *,
    runner: TranslationRunner,
    input_file: str,
    output_file: str | None,
    source_language: str,
    target_language: str,
    force_overwrite: bool,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except SlipstreamError as exc:
        return exit_code_for(exc), None, str(exc)

    try:
        summary = runner.run(
            input_path,
            output_path,
            source_language=source_language,
            target_language=target_language,
        )
    except SlipstreamError as exc:
        return exit_code_for(exc), None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."
    except Exception as exc:  # pragma: no cover - defensive catch
        error_message = (
            f"{exc}\n"
            "An unexpected error occurred. Please rerun with --verbose for more details."
        )
        return 1, None, error_message

    return 0, summary, None


def execute_analysis(
    *,
    runner: TranslationRunner,
    input_file: str,
) -> tuple[int, ChunkPlan | None, str | None]:
    input_path = pathlib.Path(input_file).expanduser().resolve()
    try:
        validate_paths(input_path, None, force_overwrite=False)
        plan = runner.analyze(input_path)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except SlipstreamError as exc:
        return exit_code_for(exc), None, str(exc)
    return 0, plan, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(f"  Pages:           {summary.total_pages}")
    print(f"  Chunks:          {summary.total_chunks}")
    print(f"  Output size:     {summary.output_size / 1024 / 1024:.2f} MB")
    print(f"  Provider:        {summary.provider_name}")
    print(f"  Languages:       {summary.source_language} -> {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")


def print_plan(plan: ChunkPlan) -> None:
    print(f"\n{plan.filename}: {plan.total_pages} pages, {plan.total_size} bytes")
    print(f"  Ceiling:         {plan.max_chunk_bytes} bytes")
    print(f"  Chunks:          {plan.total_chunks}")
    for chunk in plan.chunks:
        print(
            f"    [{chunk.index}] pages {chunk.start_page}-{chunk.end_page} "
            f"({chunk.size_readable})"
        )


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = get_settings()
    except TranslationProviderConfigurationError as exc:
        print(exc)
        return 1

    configure_logging(
        "DEBUG" if args.verbose else settings.SLIPSTREAM_LOG_LEVEL,
        json_output=bool(args.log_json or settings.SLIPSTREAM_LOG_JSON),
    )

    debug = bool(args.debug or settings.SLIPSTREAM_DEBUG)
    max_chunk_bytes = (
        int(args.max_chunk_mb * 1024 * 1024)
        if args.max_chunk_mb is not None
        else settings.SLIPSTREAM_MAX_CHUNK_BYTES
    )
    if max_chunk_bytes <= 0:
        parser.error("--max-chunk-mb must be greater than zero")

    options = browser_options(settings, debug=debug)

    try:
        provider = build_provider(
            args.provider or settings.SLIPSTREAM_PROVIDER,
            browser_options=options,
            base_url=settings.SLIPSTREAM_TRANSLATE_URL,
            timeouts=session_timeouts(settings),
            debug=debug,
            screenshot_dir=pathlib.Path(settings.SLIPSTREAM_SCREENSHOT_DIR).expanduser(),
        )
    except TranslationProviderConfigurationError as exc:
        print(exc)
        return 1

    runner = TranslationRunner(
        provider=provider,
        temp_dir=pathlib.Path(settings.SLIPSTREAM_TEMP_DIR).expanduser(),
        max_chunk_bytes=max_chunk_bytes,
        max_retries=settings.SLIPSTREAM_MAX_RETRIES,
    )

    try:
        if args.analyze:
            exit_code, plan, message = execute_analysis(
                runner=runner,
                input_file=args.input_file,
            )
            if message:
                print(message)
            if plan:
                if args.json:
                    print(json.dumps(plan.to_dict(), indent=2))
                else:
                    print_plan(plan)
            return exit_code

        exit_code, summary, message = execute_translation(
            runner=runner,
            input_file=args.input_file,
            output_file=args.output,
            source_language=args.source_language,
            target_language=args.target_language,
            force_overwrite=args.force,
        )
    finally:
        runner.close()

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
