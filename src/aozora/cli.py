from __future__ import annotations

import argparse
import os
import sys
from importlib import metadata
from pathlib import Path

import tomllib

from .book_io import TEXT_ENCODING, BookFetchError, fetch_book_text
from .core import convert, convert_file
from .formatter import AnnotationFormatError
from .index import (
    INDEX_FILENAME,
    INDEX_URL,
    IndexFetchError,
    IndexLoadError,
    ensure_index,
    load_candidates,
    resolve_data_dir,
)
from .logging_utils import debug_log, set_debug_logging
from .nlp import UNIDIC_DIR_ENV, Tokenizer, TokenizerUnavailableError, get_unidic_dicdir
from .search import TEXT_BASE_URL, narrow_all

# Status codes printed on the first stdout line.
STATUS_OK = 0
STATUS_PREPROCESS_FAILED = 101
STATUS_INDEX_FETCHED = 200
STATUS_INDEX_FETCH_FAILED = 201
STATUS_INDEX_LOAD_FAILED = 301
STATUS_AMBIGUOUS = 400
STATUS_NOT_FOUND = 401
STATUS_BOOK_FETCH_FAILED = 501

_SUCCESS_STATUSES = {STATUS_OK, STATUS_INDEX_FETCHED, STATUS_AMBIGUOUS, STATUS_NOT_FOUND}


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - defensive
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("aozora-getter")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"aozora {__version__}",
    )


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--data-dir",
        help=(
            "Directory holding the cached index "
            "(default: $AOZORA_DATA_DIR or <venv>/share/aozora)."
        ),
    )
    parser.add_argument(
        "--index-url",
        default=INDEX_URL,
        help="Download URL for the zipped index CSV (default: %(default)s).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="HTTP timeout in seconds (default: 60).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print debug logging to stderr.",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description=(
            "Find an Aozora Bunko work by title/author terms, download its text and "
            "convert the annotations. The first output line is a status code."
        ),
        epilog=(
            "Subcommands: format, tools. To search for a term spelled like a "
            "subcommand, put -- before the terms (aozora -- format)."
        ),
    )
    _add_version_flag(ap)
    ap.add_argument(
        "queries",
        nargs="*",
        help="Search terms; every term must appear in the title or the author name.",
    )
    ap.add_argument(
        "-o",
        "--output",
        help="Write the converted text to this file instead of stdout.",
    )
    ap.add_argument(
        "--text-base-url",
        default=TEXT_BASE_URL,
        help="Mirror serving the plain-text editions (default: %(default)s).",
    )
    ap.add_argument(
        "--refresh-index",
        action="store_true",
        help="Download the index again even if a cached copy exists.",
    )
    _add_common_flags(ap)
    return ap


def build_format_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Convert the annotations of a local Aozora Bunko text file.",
    )
    _add_version_flag(ap)
    ap.add_argument("input_path", help="Path to the .txt file (or the card .zip).")
    ap.add_argument(
        "--encoding",
        default=TEXT_ENCODING,
        help="Source encoding (default: %(default)s).",
    )
    ap.add_argument(
        "-o",
        "--output",
        help="Write the converted text to this file instead of stdout.",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Print debug logging to stderr.",
    )
    return ap


def build_tools_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="aozora helper utilities")
    _add_version_flag(ap)
    subparsers = ap.add_subparsers(dest="tool_cmd")

    fetch = subparsers.add_parser(
        "fetch-index",
        help="Download the Aozora Bunko index into the data directory.",
    )
    _add_common_flags(fetch)
    fetch.add_argument(
        "--force",
        action="store_true",
        help="Download again even if the index is cached.",
    )

    status = subparsers.add_parser(
        "index-status",
        help="Show where the cached index lives.",
    )
    _add_common_flags(status)

    subparsers.add_parser(
        "tokenizer-status",
        help="Check that the MeCab tokenizer used for ruby conversion loads.",
    )
    return ap


def _emit(code: int, lines: list[str] | None = None) -> int:
    print(code)
    for line in lines or []:
        print(line)
    return 0 if code in _SUCCESS_STATUSES else 1


def _write_output(text: str, output: str | None) -> str | None:
    if not output:
        return None
    path = Path(output).expanduser()
    path.write_text(text, encoding="utf-8")
    return str(path)


def _run_fetch(args: argparse.Namespace) -> int:
    set_debug_logging(bool(getattr(args, "debug", False)))
    try:
        data_dir = resolve_data_dir(args.data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        debug_log(f"Cannot create data directory: {exc}")
        return _emit(STATUS_PREPROCESS_FAILED)

    try:
        status = ensure_index(
            data_dir,
            url=args.index_url,
            force=args.refresh_index,
            timeout=args.timeout,
        )
    except IndexFetchError as exc:
        debug_log(str(exc))
        return _emit(STATUS_INDEX_FETCH_FAILED)
    if status.downloaded:
        return _emit(STATUS_INDEX_FETCHED)

    if not args.queries:
        return _emit(STATUS_PREPROCESS_FAILED)

    try:
        candidates = load_candidates(status.path)
    except IndexLoadError as exc:
        debug_log(str(exc))
        return _emit(STATUS_INDEX_LOAD_FAILED)

    url, matches = narrow_all(args.queries, candidates, base_url=args.text_base_url)
    debug_log(f"{len(matches)} candidate(s) for {args.queries!r}")
    if len(matches) > 1:
        return _emit(STATUS_AMBIGUOUS, [candidate.summary() for candidate in matches])
    if not url:
        return _emit(STATUS_NOT_FOUND)

    try:
        book = fetch_book_text(url, timeout=args.timeout)
    except BookFetchError as exc:
        debug_log(str(exc))
        return _emit(STATUS_BOOK_FETCH_FAILED)

    try:
        converted = convert(book)
    except (AnnotationFormatError, TokenizerUnavailableError) as exc:
        debug_log(str(exc))
        return _emit(STATUS_PREPROCESS_FAILED)

    try:
        written = _write_output(converted, args.output)
    except OSError as exc:
        debug_log(f"Cannot write output: {exc}")
        return _emit(STATUS_PREPROCESS_FAILED)
    if written:
        return _emit(STATUS_OK, [written])
    exit_code = _emit(STATUS_OK)
    sys.stdout.write(converted)
    return exit_code


def _run_format(args: argparse.Namespace) -> int:
    set_debug_logging(bool(args.debug))
    input_path = Path(args.input_path)
    if not input_path.is_file():
        raise SystemExit(f"Input file not found: {input_path}")
    try:
        converted = convert_file(input_path, encoding=args.encoding)
    except (AnnotationFormatError, TokenizerUnavailableError, BookFetchError) as exc:
        raise SystemExit(str(exc)) from exc
    written = _write_output(converted, args.output)
    if written:
        print(f"Wrote {written}")
    else:
        sys.stdout.write(converted)
    return 0


def _run_tools(args: argparse.Namespace) -> int:
    if not args.tool_cmd:
        raise SystemExit("A tools subcommand is required. Use --help for options.")

    if args.tool_cmd == "fetch-index":
        set_debug_logging(bool(args.debug))
        data_dir = resolve_data_dir(args.data_dir)
        try:
            status = ensure_index(
                data_dir, url=args.index_url, force=args.force, timeout=args.timeout
            )
        except IndexFetchError as exc:
            raise SystemExit(str(exc)) from exc
        state = "Downloaded" if status.downloaded else "Already cached"
        print(f"{state}: {status.path}")
        return 0

    if args.tool_cmd == "index-status":
        data_dir = resolve_data_dir(args.data_dir)
        index_path = data_dir / INDEX_FILENAME
        if index_path.is_file():
            print(f"Index: {index_path}")
        else:
            print(f"No cached index under {data_dir}. Use 'aozora tools fetch-index'.")
        return 0

    if args.tool_cmd == "tokenizer-status":
        dicdir = get_unidic_dicdir()
        print(f"Dictionary: {dicdir or 'fugashi default'}")
        env_dir = os.environ.get(UNIDIC_DIR_ENV)
        if env_dir:
            print(f"{UNIDIC_DIR_ENV} is set to: {env_dir}")
        try:
            Tokenizer()
        except TokenizerUnavailableError as exc:
            raise SystemExit(str(exc)) from exc
        print("Tokenizer: OK")
        return 0

    raise SystemExit(f"Unknown tools subcommand: {args.tool_cmd}")


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "format":
        format_args = build_format_parser().parse_args(argv[1:])
        return _run_format(format_args)
    if argv and argv[0] == "tools":
        tools_args = build_tools_parser().parse_args(argv[1:])
        return _run_tools(tools_args)

    args = build_parser().parse_args(argv)
    return _run_fetch(args)


if __name__ == "__main__":
    raise SystemExit(main())
