"""Builders for small synthetic events used across the tests."""
import math

import numpy as np

from rgeana.io.banks import (
    FMT_TRACKS, REC_CALORIMETER, REC_CHERENKOV, REC_PARTICLE, REC_SCINTILLATOR, REC_TRACK,
    SCHEMAS, Bank, BankSet, EventContext,
)
from rgeana.io.sources import InMemoryEventSource
from rgeana.physics.detectors import ECIN_LYR, FTOF_ID, FTOF1A_LYR, FTOF1B_LYR, HTCC_ID, PCAL_LYR

# Sampling fraction: mean 0.25, width 0.02, flat in p, every sector.
SF_MEAN = 0.25
SF_WIDTH = 0.02
CALIB = np.zeros((6, 4, 2))
CALIB[:, :, 0] = [1.0, SF_MEAN, 0.0, 0.0]
CALIB[:, :, 1] = [1.0, SF_WIDTH, 0.0, 0.0]


def columns(bank, rows):
    """Column dict for `bank` from row dicts; absent fields default to 0."""
    return {name: [r.get(name, 0) for r in rows] for name in SCHEMAS[bank].names}


def load_bank(bank, rows):
    b = Bank(bank)
    b.load(columns(bank, rows))
    return b


def event(particles=(), tracks=(), calorimeter=(), cherenkov=(), scintillator=(), aux=()):
    ev = {}
    for bank, rows in ((REC_PARTICLE, particles), (REC_TRACK, tracks), (REC_CALORIMETER, calorimeter),
                       (REC_CHERENKOV, cherenkov), (REC_SCINTILLATOR, scintillator), (FMT_TRACKS, aux)):
        if rows:
            ev[bank] = columns(bank, rows)
    return ev


def load_banks(ev, include_aux=False):
    banks = BankSet.empty()
    banks.advance(EventContext(InMemoryEventSource([ev]), 0), include_aux=include_aux)
    return banks


def electron_hits(pindex, p, time=20.0):
    """Calorimeter/Cherenkov/FTOF rows that make a track of momentum p electron-like."""
    calorimeter = [
        dict(pindex=pindex, layer=PCAL_LYR, energy=0.5, time=time + 1.0, sector=1),
        dict(pindex=pindex, layer=ECIN_LYR, energy=SF_MEAN * p - 0.5, time=time + 2.0, sector=1),
    ]
    cherenkov = [dict(pindex=pindex, detector=HTCC_ID, nphe=12.0)]
    scintillator = [dict(pindex=pindex, detector=FTOF_ID, layer=FTOF1B_LYR, time=time)]
    return calorimeter, cherenkov, scintillator


def mag(px, py, pz):
    return math.sqrt(px * px + py * py + pz * pz)


def dis_event(e_mom=(0.8, 0.0, 3.0), e_status=-2110, second_electron=False):
    """
    Trigger electron at track row 0, pi+ at row 1, pi- at row 2 (and optionally
    a second electron-like track at row 3).
    """
    particles = [
        dict(pid=11, charge=-1, status=e_status, px=e_mom[0], py=e_mom[1], pz=e_mom[2], vz=-1.0, beta=1.0),
        dict(pid=211, charge=1, status=2110, px=0.3, py=-0.2, pz=1.5, vz=-1.2, beta=0.98),
        dict(pid=-211, charge=-1, status=2110, px=-0.2, py=0.4, pz=2.0, vz=-0.8, beta=0.99),
    ]
    tracks = [
        dict(index=0, pindex=0, sector=1, q=-1, chi2=10.0, NDF=20),
        dict(index=1, pindex=1, sector=2, q=1, chi2=12.0, NDF=21),
        dict(index=2, pindex=2, sector=3, q=-1, chi2=9.0, NDF=19),
    ]
    calorimeter, cherenkov, scintillator = electron_hits(0, mag(*e_mom))
    scintillator.append(dict(pindex=1, detector=FTOF_ID, layer=FTOF1A_LYR, time=24.0))
    if second_electron:
        particles.append(dict(pid=11, charge=-1, status=-2110, px=0.5, py=0.5, pz=2.5, vz=-1.0))
        tracks.append(dict(index=3, pindex=3, sector=4, q=-1, chi2=8.0, NDF=18))
        c, k, s = electron_hits(3, mag(0.5, 0.5, 2.5), time=21.0)
        calorimeter += c
        cherenkov += k
        scintillator += s
    return event(particles, tracks, calorimeter, cherenkov, scintillator)
