"""Main Typer CLI application for georeferencing tools."""

import logging

import typer

app = typer.Typer(
    help="Georeferencing tools: fit images to GPS control points and export GeoJSON/KML",
    no_args_is_help=True,
)

config_app = typer.Typer(help="Configuration commands")

app.add_typer(config_app, name="config")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _register_commands() -> None:
    """
    Import command modules to register commands with their respective apps.

    Commands use decorators like @app.command() which register themselves
    when the module is imported.
    """
    from georeferencer.cli import config_cmds, georef

    # Avoid "imported but unused" warnings by explicitly using the module
    _ = config_cmds
    _ = georef


_register_commands()


if __name__ == "__main__":
    app()
