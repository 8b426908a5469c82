"""Core logic for fit-size: re-encode an image to land inside a KB range."""

import logging
import mimetypes
import sys
from pathlib import Path

from rich.console import Console

from sizefit.fit_size.search import fit_to_range
from sizefit.models.search import SearchConfig, SearchResult, SizeRange
from sizefit.utils.size import bytes_to_kb

HARD_LIMIT_BYTES = 10 * 1024 * 1024  # 10 MB

logger = logging.getLogger(__name__)


def check_hard_limit(size: int, disable_hard_limit: bool) -> None:
    if not disable_hard_limit and size > HARD_LIMIT_BYTES:
        raise ValueError(
            f"Input exceeds {HARD_LIMIT_BYTES // (1024 * 1024)}MB hard limit. "
            f"Use --disable-hard-limit to override."
        )


def read_input(input_file: str | None, disable_hard_limit: bool) -> tuple[bytes, str | None]:
    """Read the input image and guess its content type from the file name.

    Returns:
        The raw bytes and the guessed MIME type (None for stdin or unknown
        extensions).
    """
    if input_file is None:
        data = sys.stdin.buffer.read()
        check_hard_limit(len(data), disable_hard_limit)
        return data, None

    path = Path(input_file)
    if not path.exists():
        raise FileNotFoundError(f"Input file does not exist: {input_file}")
    if not path.is_file():
        raise ValueError(f"Input path is not a file: {input_file}")
    check_hard_limit(path.stat().st_size, disable_hard_limit)

    content_type, _ = mimetypes.guess_type(path.name)
    return path.read_bytes(), content_type


def report(console: Console, input_size: int, result: SearchResult, verbose: bool) -> None:
    """Print the outcome of a search on stderr."""
    console.print(
        f"[bold green]Processed:[/bold green] {bytes_to_kb(input_size)}KB → {result.size_kb}KB "
        f"({result.width}x{result.height}, quality {result.quality:.2f})"
    )
    if result.message:
        console.print(f"[bold yellow]Warning:[/bold yellow] {result.message}")
    if verbose:
        console.print(
            f"[dim]Encodes: {result.encode_calls}, quality iterations: {result.quality_iterations}[/dim]"
        )


def fit_size(
    input_file: str | None,
    output: str | None,
    min_size: int,
    max_size: int,
    max_iterations: int,
    overwrite: bool,
    disable_hard_limit: bool,
    verbose: bool,
) -> SearchResult:
    """Re-encode an image as JPEG so its size falls within [min_size, max_size] KB.

    Args:
        input_file: Path to input image, or None for stdin.
        output: Path to output file, or None for stdout.
        min_size: Target minimum size in KB.
        max_size: Target maximum size in KB.
        max_iterations: Cap on quality bisection iterations.
        overwrite: Allow overwriting existing output file.
        disable_hard_limit: Bypass the 10MB input limit.
        verbose: Enable verbose reporting.

    Returns:
        The search result, whatever its status. The output is written in
        every case.
    """
    console = Console(stderr=True)

    size_range = SizeRange(min_kb=min_size, max_kb=max_size)
    config = SearchConfig(max_iterations=max_iterations)

    # Check output path before doing any work
    if output is not None:
        output_path = Path(output)
        if output_path.exists() and not overwrite:
            raise FileExistsError(
                f"Output file already exists: {output}. Use --overwrite to replace."
            )

    data, content_type = read_input(input_file, disable_hard_limit)
    logger.debug(f"Read {len(data):,} bytes ({content_type or 'unknown type'})")

    with console.status(f"Fitting image into {min_size}-{max_size}KB..."):
        result = fit_to_range(data, size_range, config=config, content_type=content_type)

    # Write output
    if output is not None:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(result.data)
    else:
        sys.stdout.buffer.write(result.data)

    report(console, len(data), result, verbose)
    return result


def main(
    input_file: str | None,
    output: str | None,
    min_size: int,
    max_size: int,
    max_iterations: int,
    overwrite: bool,
    disable_hard_limit: bool,
    verbose: bool,
) -> SearchResult:
    """Entry point called from cli.py."""
    return fit_size(input_file, output, min_size, max_size, max_iterations, overwrite, disable_hard_limit, verbose)
