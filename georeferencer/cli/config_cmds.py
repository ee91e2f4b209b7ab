"""Configuration CLI commands."""

from pathlib import Path

import typer
import yaml

from georeferencer.cli.main import config_app
from georeferencer.config import GeoreferencerConfig, get_default_config


@config_app.command("show")
def show_command(
    config_file: Path | None = typer.Option(None, "--config", help="YAML configuration file"),
) -> None:
    """
    Print the effective configuration as YAML.

    Example:
        georef config show
        georef config show --config georeferencer.yaml
    """
    try:
        config = (
            GeoreferencerConfig.from_yaml(str(config_file)) if config_file else get_default_config()
        )
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(yaml.safe_dump({"georeferencer": config.to_dict()}, sort_keys=False), nl=False)


@config_app.command("init")
def init_command(
    output: Path = typer.Argument(Path("georeferencer.yaml"), help="Where to write the file"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """
    Write the default configuration to a YAML file.

    Example:
        georef config init georeferencer.yaml
    """
    if output.exists() and not force:
        typer.echo(f"Error: {output} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(1)

    get_default_config().save_to_yaml(str(output))
    typer.echo(f"Wrote {output}")
