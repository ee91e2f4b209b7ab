"""Georeferencing CLI commands."""

import csv
import json
from pathlib import Path
from typing import Any, List

import typer

from georeferencer.cli.main import app
from georeferencer.config import GeoreferencerConfig, get_default_config
from georeferencer.errors import GeoreferencingError
from georeferencer.export import save_feature_collection
from georeferencer.session import GeoreferencingSession
from georeferencer.sources import detect_json_type, load_json_file


def _load_config(config_file: Path | None) -> GeoreferencerConfig:
    if config_file is None:
        return get_default_config()
    try:
        return GeoreferencerConfig.from_yaml(str(config_file))
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _read_csv_rows(path: Path) -> List[List[Any]]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        return [row for row in csv.reader(f)]


def _load_session(
    gps_file: Path, points_file: Path, config_file: Path | None
) -> GeoreferencingSession:
    """Create a session with GPS points and image points loaded."""
    session = GeoreferencingSession(config=_load_config(config_file))
    try:
        if gps_file.suffix.lower() == ".csv":
            session.load_gps_rows(_read_csv_rows(gps_file))
        else:
            session.load_gps_geojson(load_json_file(gps_file))
        session.load_points(load_json_file(points_file))
    except FileNotFoundError as e:
        typer.echo(f"Error: File not found: {e.filename or e}", err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    return session


@app.command("match")
def match_command(
    gps_file: Path = typer.Option(..., "--gps", help="GPS points (GeoJSON or CSV with header row)"),
    points_file: Path = typer.Option(..., "--points", help="Image points JSON"),
    config_file: Path | None = typer.Option(None, "--config", help="YAML configuration file"),
) -> None:
    """
    Match image points to GPS points by identifier and print the report.

    Example:
        georef match --gps gps.geojson --points points.json
    """
    session = _load_session(gps_file, points_file, config_file)
    result = session.match()
    typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))


@app.command("fit")
def fit_command(
    gps_file: Path = typer.Option(..., "--gps", help="GPS points (GeoJSON or CSV with header row)"),
    points_file: Path = typer.Option(..., "--points", help="Image points JSON"),
    documents: List[Path] = typer.Option(
        [], "--document", "-d", help="Route or spot JSON file (repeatable)"
    ),
    image_width: int | None = typer.Option(None, help="Source image width in pixels"),
    image_height: int | None = typer.Option(None, help="Source image height in pixels"),
    image_name: str | None = typer.Option(None, help="Source image file name (names the output)"),
    config_file: Path | None = typer.Option(None, "--config", help="YAML configuration file"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output file (default: <image>-GPS.geojson)"
    ),
    kml: bool = typer.Option(False, "--kml", help="Write KML instead of GeoJSON"),
) -> None:
    """
    Fit an affine transformation and export georeferenced features.

    Matches image points to GPS points, fits the transformation, moves all
    image-based routes and spots, and writes a GeoJSON FeatureCollection.

    Example:
        georef fit --gps gps.geojson --points points.json
        georef fit --gps gps.csv --points points.json -d route.json -d spots.json \\
            --image-width 2000 --image-height 1500 --image-name site.png
    """
    session = _load_session(gps_file, points_file, config_file)

    if image_width and image_height:
        session.load_image(image_width, image_height, name=image_name)
    elif image_name:
        session.image_name = image_name

    if documents:
        try:
            loaded = [(path.name, load_json_file(path)) for path in documents]
        except FileNotFoundError as e:
            typer.echo(f"Error: File not found: {e.filename or e}", err=True)
            raise typer.Exit(1)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
        counts = session.load_documents(loaded)
        typer.echo(
            f"Loaded {counts['routes']} route(s) and {counts['spots']} spot(s); "
            f"{counts['skipped']} document(s) skipped"
        )

    try:
        result = session.georeference()
    except GeoreferencingError as e:
        typer.echo(f"Error: {e}", err=True)
        match = session.match_result.to_dict() if session.match_result else {}
        if match.get("unmatchedIdentifiers"):
            typer.echo(f"Unmatched: {', '.join(match['unmatchedIdentifiers'])}", err=True)
        raise typer.Exit(1)

    accuracy = result.accuracy
    typer.echo(
        f"Fitted from {result.used_points} control points: "
        f"mean {accuracy.mean_error:.2f} m, min {accuracy.min_error:.2f} m, "
        f"max {accuracy.max_error:.2f} m"
    )

    if output is None:
        output = Path(session.output_name() + (".kml" if kml else ".geojson"))

    if kml:
        output.write_text(session.export_kml(), encoding="utf-8")
    else:
        save_feature_collection(session.export(), output)
    typer.echo(f"Wrote {output}")


@app.command("detect")
def detect_command(
    files: List[Path] = typer.Argument(..., help="JSON files to classify"),
) -> None:
    """
    Print the detected type (route, spot, point) of each JSON file.

    Example:
        georef detect route.json spots.json points.json
    """
    for path in files:
        try:
            json_type = detect_json_type(load_json_file(path))
        except (FileNotFoundError, ValueError) as e:
            typer.echo(f"{path}: error ({e})", err=True)
            continue
        typer.echo(f"{path}: {json_type or 'unknown'}")
