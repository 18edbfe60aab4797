"""
Per-particle aggregation over detector banks.

All functions scan the full row range of a bank and select rows by `pindex`;
no row ordering is assumed.
"""
from __future__ import annotations
import math
from typing import Dict, Iterable, Tuple

from rgeana.errors import InvalidCalorimeterLayer, InvalidCherenkovId
from rgeana.io.banks import Bank
from .particle import DepositedEnergy, Photoelectrons

# Detector IDs (REC::* "detector" column)
FTOF_ID = 12
HTCC_ID = 15
LTCC_ID = 16

# FTOF panels
FTOF1A_LYR = 1
FTOF1B_LYR = 2
FTOF2_LYR = 3

# Calorimeter layers
PCAL_LYR = 1
ECIN_LYR = 4
ECOU_LYR = 7

# Timing precision rank per layer, lower is better.
FTOF_TIMING_RANK: Dict[int, int] = {FTOF1B_LYR: 0, FTOF1A_LYR: 1, FTOF2_LYR: 2}
CAL_TIMING_RANK: Dict[int, int] = {PCAL_LYR: 0, ECIN_LYR: 1, ECOU_LYR: 2}

NO_TIMING = math.inf


def _best_time(hits: Iterable[Tuple[int, float]], rank: Dict[int, int]) -> float:
    """
    Pick the time of the most precise layer among (layer, time) hits.

    The first hit of a given layer wins over later hits of the same layer; a
    rank-0 hit ends the scan. Unranked layers are ignored.
    """
    best_rank = None
    best_time = NO_TIMING
    for layer, time in hits:
        r = rank.get(layer)
        if r is None:
            continue
        if best_rank is not None and r >= best_rank:
            continue
        best_rank, best_time = r, time
        if r == 0:
            break
    return best_time


def get_tof(scintillator: Bank, calorimeter: Bank, pindex: int) -> float:
    """
    Most precise time of flight [ns] for the particle at `pindex`.

    FTOF1B > FTOF1A > FTOF2, then PCAL > ECIN > ECOU when no FTOF hit matched.
    Returns NO_TIMING (math.inf) when neither detector saw the particle.
    """
    ftof = (
        (r.layer, r.time) for r in scintillator
        if r.pindex == pindex and r.detector == FTOF_ID
    )
    tof = _best_time(ftof, FTOF_TIMING_RANK)
    if math.isfinite(tof):
        return tof

    cal = ((r.layer, r.time) for r in calorimeter if r.pindex == pindex)
    return _best_time(cal, CAL_TIMING_RANK)


def get_deposited_energy(calorimeter: Bank, pindex: int) -> DepositedEnergy:
    """Sum calorimeter energy per layer; raises InvalidCalorimeterLayer on an unknown layer."""
    pcal = ecin = ecou = 0.0
    for i, r in enumerate(calorimeter):
        if r.pindex != pindex:
            continue
        if r.layer == PCAL_LYR:
            pcal += r.energy
        elif r.layer == ECIN_LYR:
            ecin += r.energy
        elif r.layer == ECOU_LYR:
            ecou += r.energy
        else:
            raise InvalidCalorimeterLayer(r.layer, i, pindex)
    return DepositedEnergy(pcal=pcal, ecin=ecin, ecou=ecou)


def count_photoelectrons(cherenkov: Bank, pindex: int) -> Photoelectrons:
    """Sum HTCC and LTCC photoelectrons; raises InvalidCherenkovId on an unknown detector."""
    htcc = ltcc = 0.0
    for i, r in enumerate(cherenkov):
        if r.pindex != pindex:
            continue
        if r.detector == HTCC_ID:
            htcc += r.nphe
        elif r.detector == LTCC_ID:
            ltcc += r.nphe
        else:
            raise InvalidCherenkovId(r.detector, i, pindex)
    return Photoelectrons(htcc=htcc, ltcc=ltcc)
