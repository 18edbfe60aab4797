"""Particle table: charge, mass and name for every supported PID code.

Codes follow the PDG numbering used by the CLAS12 reconstruction (45 is the
reconstruction's deuteron code). Code 0 means "unidentified".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from rgeana.errors import UnsupportedParticleId

UNIDENTIFIED = 0
ELECTRON = 11
POSITRON = -11
PHOTON = 22
PROTON = 2212
ANTIPROTON = -2212
NEUTRON = 2112
PION_PLUS = 211
PION_MINUS = -211
PION_ZERO = 111
KAON_PLUS = 321
KAON_MINUS = -321
KAON_SHORT = 310
KAON_LONG = 130
DEUTERON = 45

TRIGGER_PID = ELECTRON


@dataclass(frozen=True)
class ParticleSpecies:
    """Named particle species with charge (e) and mass (GeV)."""

    code: int
    charge: int
    mass: float
    name: str


PARTICLES: Dict[int, ParticleSpecies] = {
    s.code: s
    for s in (
        ParticleSpecies(UNIDENTIFIED, 0, 0.0, "unidentified"),
        ParticleSpecies(ELECTRON, -1, 0.00051099895, "e-"),
        ParticleSpecies(POSITRON, 1, 0.00051099895, "e+"),
        ParticleSpecies(PHOTON, 0, 0.0, "photon"),
        ParticleSpecies(PROTON, 1, 0.93827208816, "proton"),
        ParticleSpecies(ANTIPROTON, -1, 0.93827208816, "antiproton"),
        ParticleSpecies(NEUTRON, 0, 0.93956542052, "neutron"),
        ParticleSpecies(PION_PLUS, 1, 0.13957039, "pi+"),
        ParticleSpecies(PION_MINUS, -1, 0.13957039, "pi-"),
        ParticleSpecies(PION_ZERO, 0, 0.1349768, "pi0"),
        ParticleSpecies(KAON_PLUS, 1, 0.493677, "K+"),
        ParticleSpecies(KAON_MINUS, -1, 0.493677, "K-"),
        ParticleSpecies(KAON_SHORT, 0, 0.497611, "K0S"),
        ParticleSpecies(KAON_LONG, 0, 0.497611, "K0L"),
        ParticleSpecies(DEUTERON, 1, 1.87561294257, "deuteron"),
    )
}

# Identification hypotheses per charge, tried in order.
HYPOTHESES: Dict[int, Tuple[int, ...]] = {
    -1: (ELECTRON, PION_MINUS, KAON_MINUS, ANTIPROTON),
    0: (PHOTON, NEUTRON, PION_ZERO),
    1: (POSITRON, PION_PLUS, KAON_PLUS, PROTON, DEUTERON),
}


def get_species(pid: int) -> ParticleSpecies:
    try:
        return PARTICLES[int(pid)]
    except KeyError:
        raise UnsupportedParticleId(int(pid)) from None


def get_charge(pid: int) -> int:
    return get_species(pid).charge


def get_mass(pid: int) -> float:
    return get_species(pid).mass


def get_name(pid: int) -> str:
    return get_species(pid).name


def pids_by_charge(charge: int) -> Tuple[int, ...]:
    """Return the ordered PID hypotheses compatible with a charge."""
    try:
        return HYPOTHESES[int(charge)]
    except KeyError:
        raise UnsupportedParticleId(UNIDENTIFIED, charge=int(charge)) from None
