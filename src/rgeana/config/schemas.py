from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional, Dict, List, Any

class RunCfg(BaseModel):
    """
    Global run controls.

    TOML:

    [run]
    diagnostics_level = 1   # 0=off, 1=minimal, 2=verbose
    n_events = 10000        # omit to process every event
    """

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose
    progress: bool = True

    # Limits
    n_events: Optional[int] = None

    # Run metadata overrides (otherwise inferred from the input filename)
    run_number: Optional[int] = None
    beam_energy: Optional[float] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

    @field_validator("n_events")
    def _n_events_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("n_events should be greater than 0")
        return v

class IOCfg(BaseModel):
    """
    I/O paths and high-level source description.

    TOML:

    [io]
    input_path   = "root_io/012016.root"
    input_format = "root"          # "root" | "hdf5"
    output_dir   = "root_io"
    data_dir     = "data"          # sampling fraction files
    """

    input_path: str = ""
    input_format: Literal["root", "hdf5"] = "root"
    output_dir: str = "root_io"
    data_dir: str = "data"

    # Source-specific sub-config, e.g. [io.adapter] tree = "Tree"
    adapter: Dict[str, Any] = Field(default_factory=dict)

class FusionCfg(BaseModel):
    """
    Detector fusion controls.

    aux_tracker_layers: FMT layers a track must have hit (0 = DC only, 2, or 3).
    fiducial_cut: apply the FMT geometry cut to every candidate.
    sf_test: sampling fraction test used for electron identification
             ("curve" = calibrated mean/width curves, "window" = fixed E/p window).
    sf_n_sigma: width multiple accepted by the "curve" test.
    """

    aux_tracker_layers: int = 0
    fiducial_cut: bool = False
    sf_test: Literal["curve", "window"] = "curve"
    sf_n_sigma: float = 2.0

    @field_validator("aux_tracker_layers")
    def _layers(cls, v: int) -> int:
        if v not in (0, 2, 3):
            raise ValueError("aux_tracker_layers must be 0, 2, or 3")
        return v

class CutsCfg(BaseModel):
    q2_min: float = 1.0
    w2_min: float = 4.0

class AcceptanceCfg(BaseModel):
    """
    Acceptance binning inputs.

    TOML:

    [acceptance]
    thrown_path    = "root_io/ntuples_thrown.h5"
    simulated_path = "root_io/ntuples_dc_999001.h5"
    output_path    = "data/acc_corr.txt"

    [acceptance.edges]
    q2    = [1.0, 2.0, 4.0]
    nu    = [2.0, 5.0, 9.0]
    zh    = [0.0, 0.5, 1.0]
    pt2   = [0.0, 0.5, 1.0]
    phipq = [-3.1416, 0.0, 3.1416]

    Edge lists are validated by the binning engine (so errors name the axis).
    """

    thrown_path: str = ""
    simulated_path: str = ""
    output_path: str = "data/acc_corr.txt"
    thrown_phi_degrees: bool = False
    simulated_phi_degrees: bool = False
    edges: Dict[str, List[float]] = Field(default_factory=dict)

    # Column overrides for samples whose ntuples use other names
    thrown_columns: Dict[str, str] = Field(default_factory=dict)
    simulated_columns: Dict[str, str] = Field(default_factory=dict)


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg = Field(default_factory=IOCfg)
    fusion: FusionCfg = Field(default_factory=FusionCfg)
    cuts: CutsCfg = Field(default_factory=CutsCfg)
    acceptance: AcceptanceCfg = Field(default_factory=AcceptanceCfg)
