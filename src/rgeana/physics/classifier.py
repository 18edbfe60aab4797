"""
Particle identification for fused candidates.

Classification depends only on the candidate's own fields plus the sampling
fraction calibration for its sector. The one event-scoped rule (a single
trigger per event) lives in select_trigger().
"""
from __future__ import annotations
from typing import Iterable, Optional

import numpy as np

from rgeana.errors import UnsupportedParticleId
from .particle import DepositedEnergy, FusedParticle, Photoelectrons
from .pid import ELECTRON, PARTICLES, POSITRON, TRIGGER_PID, UNIDENTIFIED, pids_by_charge
from .sampling_fraction import ConformityTest, CurveConformity, sector_params

# Electron-like thresholds
HTCC_NPHE_MIN = 2.0
PCAL_ENERGY_MIN = 0.06  # GeV


class Classifier:
    """
    Assign a final PID and trigger eligibility to fused candidates.

    Parameters
    ----------
    calibration : (NSECTORS, NSFPARAMS, 2) sampling fraction table
    conformity  : sampling fraction test (default CurveConformity)
    """

    def __init__(self, calibration: np.ndarray, conformity: Optional[ConformityTest] = None):
        self.calibration = np.asarray(calibration, dtype=np.float64)
        self.conformity = conformity or CurveConformity()

    def is_electron_like(self, cand: FusedParticle, energy: DepositedEnergy, nphe: Photoelectrons) -> bool:
        if nphe.htcc < HTCC_NPHE_MIN or energy.pcal < PCAL_ENERGY_MIN:
            return False
        params = sector_params(self.calibration, cand.sector)
        if params is None:
            return False
        return self.conformity.conforms(cand.p, energy.total, params)

    def identify(self, cand: FusedParticle, recon_pid: int, energy: DepositedEnergy,
                 nphe: Photoelectrons) -> int:
        """Return the PID code for a candidate (0 when no hypothesis matches)."""
        if recon_pid != UNIDENTIFIED and recon_pid not in PARTICLES:
            raise UnsupportedParticleId(recon_pid, charge=cand.charge)
        try:
            hypotheses = pids_by_charge(cand.charge)
        except UnsupportedParticleId:
            raise UnsupportedParticleId(recon_pid, charge=cand.charge) from None

        electron_like = None
        for hyp in hypotheses:
            if hyp in (ELECTRON, POSITRON):
                if electron_like is None:
                    electron_like = self.is_electron_like(cand, energy, nphe)
                if electron_like:
                    return hyp
            elif hyp == recon_pid:
                return hyp
        return UNIDENTIFIED

    def classify(self, cand: FusedParticle, recon_pid: int, status: int,
                 energy: DepositedEnergy, nphe: Photoelectrons) -> FusedParticle:
        """Set cand.pid and cand.is_trigger (eligibility only) in place and return cand."""
        cand.pid = self.identify(cand, recon_pid, energy, nphe)
        cand.is_trigger = cand.pid == TRIGGER_PID and status < 0
        return cand


def select_trigger(candidates: Iterable[FusedParticle]) -> Optional[FusedParticle]:
    """
    Keep the trigger flag on the first flagged candidate only.

    Candidates are visited in track-row order; the scan stops at the first
    flagged one and later flags are cleared. Returns the trigger or None.
    """
    trigger = None
    for cand in candidates:
        if not cand.is_trigger:
            continue
        if trigger is None:
            trigger = cand
        else:
            cand.is_trigger = False
    return trigger
