from __future__ import annotations
from dataclasses import dataclass
import math

from .pid import PARTICLES

@dataclass(frozen=True, slots=True)
class DepositedEnergy:
    """Calorimeter energy per sub-layer [GeV]."""
    pcal: float = 0.0
    ecin: float = 0.0
    ecou: float = 0.0

    @property
    def total(self) -> float:
        return self.pcal + self.ecin + self.ecou

@dataclass(frozen=True, slots=True)
class Photoelectrons:
    """Photoelectron counts in the two Cherenkov counters."""
    htcc: float = 0.0
    ltcc: float = 0.0

@dataclass(slots=True)
class FusedParticle:
    """
    One track's cross-detector record for a single event.

    Built by rgeana.filters.fusion.build_candidate from a track row and its
    particle-bank row; detector aggregates (energy, nphe, tof) and the
    identity (pid, is_trigger) are filled in afterwards.

    vertex [cm], momentum [GeV], tof [ns]; tof is math.inf when no detector
    provided timing.
    """
    pindex: int
    track_pos: int
    sector: int
    charge: int
    recon_pid: int
    status: int
    vx: float
    vy: float
    vz: float
    px: float
    py: float
    pz: float
    beta: float = 0.0
    chi2: float = 0.0
    ndf: float = 0.0
    tof: float = math.inf
    energy: DepositedEnergy = DepositedEnergy()
    nphe: Photoelectrons = Photoelectrons()
    is_valid: bool = True
    is_trigger: bool = False
    pid: int = 0

    @property
    def p(self) -> float:
        return math.sqrt(self.px * self.px + self.py * self.py + self.pz * self.pz)

    @property
    def theta(self) -> float:
        """Lab-frame polar angle [rad]."""
        return math.atan2(math.hypot(self.px, self.py), self.pz)

    @property
    def phi(self) -> float:
        """Lab-frame azimuthal angle [rad]."""
        return math.atan2(self.py, self.px)

    @property
    def mass(self) -> float:
        species = PARTICLES.get(self.pid)
        return species.mass if species is not None else 0.0

    @property
    def has_timing(self) -> bool:
        return math.isfinite(self.tof)
