"""Console script for sizefit."""

import typer

from sizefit import __version__
from sizefit.fit_size.cli import fit_size

app = typer.Typer()


@app.command()
def version():
    """Display version information."""
    typer.echo(f"sizefit v{__version__}")
    raise typer.Exit()


app.command()(fit_size)


if __name__ == "__main__":
    app()
