from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError

from rgeana.errors import RGEError
from rgeana.pipelines.acceptance import run_acc_corr
from rgeana.pipelines.ntuples import run_make_ntuples

app = typer.Typer(help="CLAS12 RG-E particle reconstruction and acceptance tools")


def _fail(exc: Exception) -> None:
    typer.echo(f"Error. {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("make-ntuples")
def make_ntuples(
    cfg_path: str = typer.Argument(..., help="Path to TOML config file"),
    input_path: Optional[str] = typer.Option(
        None, "--input", "-i", help="Input file; overrides [io].input_path",
    ),
    aux_tracker_layers: Optional[int] = typer.Option(
        None, "--fmt", "-f",
        help="Required FMT layers (0 = DC only, 2 or 3); overrides [fusion].aux_tracker_layers",
    ),
    fiducial_cut: Optional[bool] = typer.Option(
        None, "--fmt-cut / --no-fmt-cut",
        help="Apply the FMT geometry cut; overrides [fusion].fiducial_cut when set",
    ),
    n_events: Optional[int] = typer.Option(
        None, "--n-events", "-n", help="Number of events to process; overrides [run].n_events",
    ),
):
    """Fuse detector banks, identify particles, and write ntuples for one run."""
    try:
        out = run_make_ntuples(
            cfg_path,
            aux_tracker_layers=aux_tracker_layers,
            fiducial_cut=fiducial_cut,
            n_events=n_events,
            input_path=input_path,
        )
    except (RGEError, FileNotFoundError, ValidationError) as exc:
        _fail(exc)
    typer.echo(str(out))


@app.command("acc-corr")
def acc_corr(
    cfg_path: str = typer.Argument(..., help="Path to TOML config file"),
    thrown: Optional[str] = typer.Option(None, "--thrown", "-g", help="Thrown (generated) ntuples"),
    simulated: Optional[str] = typer.Option(None, "--simulated", "-s", help="Simulated (reconstructed) ntuples"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output acceptance file"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing output file"),
):
    """Count thrown and simulated samples in 5D bins and write the acceptance file."""
    try:
        path = run_acc_corr(
            cfg_path,
            overwrite=overwrite,
            thrown_path=thrown,
            simulated_path=simulated,
            output_path=out,
        )
    except (RGEError, FileNotFoundError, ValidationError) as exc:
        _fail(exc)
    typer.echo(str(path))


if __name__ == "__main__":
    app()
