"""CLI command for fit-size."""

from typing import Optional

import typer

from sizefit.fit_size.errors import DecodeError, InvalidRangeError
from sizefit.fit_size.main import main
from sizefit.utils.cli import cli_error_handler, setup_logging, stderr_console

EXIT_DECODE_ERROR = 11
EXIT_INVALID_RANGE = 12
EXIT_OUT_OF_RANGE = 20


@cli_error_handler
def fit_size(
    input_file: Optional[str] = typer.Argument(None, help="Path to input image file (omit to read from stdin)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Path to output JPEG file (omit to write to stdout)"),
    min_size: int = typer.Option(50, "--min-size", min=1, help="Target minimum size in KB (default: 50)"),
    max_size: int = typer.Option(100, "--max-size", min=1, help="Target maximum size in KB (default: 100)"),
    max_iterations: int = typer.Option(20, "--max-iterations", min=1, help="Maximum number of quality search iterations (default: 20)"),
    strict: bool = typer.Option(False, "--strict", help=f"Exit with code {EXIT_OUT_OF_RANGE} when the range cannot be reached (output is still written)"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Overwrite output file if it exists"),
    disable_hard_limit: bool = typer.Option(False, "--disable-hard-limit", help="Bypass the 10MB input size limit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """
    Re-encode an image as JPEG so its size lands in a KB range.

    Lowers JPEG quality (and, if needed, dimensions) to get under the maximum,
    or enlarges the image to reach the minimum. When the range cannot be
    reached, the closest result is still written and a warning is shown.
    Reads from a file or stdin, writes to a file or stdout.
    """
    setup_logging(verbose)

    try:
        result = main(
            input_file=input_file,
            output=output,
            min_size=min_size,
            max_size=max_size,
            max_iterations=max_iterations,
            overwrite=overwrite,
            disable_hard_limit=disable_hard_limit,
            verbose=verbose,
        )
    except InvalidRangeError as e:
        stderr_console.print(f"[bold red]Invalid size range:[/bold red] {e}")
        raise typer.Exit(code=EXIT_INVALID_RANGE)
    except DecodeError as e:
        stderr_console.print(f"[bold red]Unreadable image:[/bold red] {e}")
        raise typer.Exit(code=EXIT_DECODE_ERROR)

    if strict and not result.within_range:
        raise typer.Exit(code=EXIT_OUT_OF_RANGE)
