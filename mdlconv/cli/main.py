from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from ..config import FLAGS
from ..core.errors import UnknownOption
from ..sdk import convert_file

app = typer.Typer(help="Convert COLLADA scenes into .mdl engine assets")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("mdlconv").setLevel(numeric)


@app.command()
def convert(
    input_path: Path = typer.Argument(..., dir_okay=False, help="COLLADA (.dae) file to convert."),
    flags: Optional[List[str]] = typer.Argument(None, help=f"Flag tokens: {', '.join(FLAGS)}."),
    options: Optional[Path] = typer.Option(None, "--options", exists=True, dir_okay=False, readable=True, help="YAML file with option overrides (e.g. includeNormals: false)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override the target path (defaults to <input>.mdl)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Convert INPUT_PATH into a binary .mdl container next to it."""

    _configure_logging(log_level)
    try:
        result = convert_file(input_path, flags or [], options_file=options, output=output)
    except UnknownOption as exc:
        raise typer.BadParameter(str(exc), param_hint="FLAGS") from exc
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Input file does not exist: {exc.filename}", param_hint="INPUT_PATH") from exc
    typer.echo(f"Wrote {result.stats.total_size} bytes → {result.output_path}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
