# src/rgeana/physics/kinematics.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import math
import numpy as np

from .particle import FusedParticle
from .pid import ELECTRON, PROTON, get_mass

# Units: GeV, GeV/c, cm, ns. Beam along +z, fixed proton target.
M_TARGET_GEV = get_mass(PROTON)
M_ELECTRON_GEV = get_mass(ELECTRON)

NTUPLE_VARIABLES: Tuple[str, ...] = (
    "run_no", "event_no", "beam_energy",
    "pid", "charge", "status", "mass",
    "vx", "vy", "vz", "px", "py", "pz", "p", "theta", "phi", "beta",
    "chi2", "ndf",
    "e_pcal", "e_ecin", "e_ecou", "e_total",
    "dtof",
    "nphe_ltcc", "nphe_htcc",
    "q2", "nu", "xb", "yb", "w2",
    "zh", "pt2", "pl2", "phipq", "thetapq",
)


@dataclass(frozen=True)
class DISVariables:
    q2: float
    nu: float
    xb: float
    yb: float
    w2: float


@dataclass(frozen=True)
class SIDISVariables:
    zh: float
    pt2: float
    pl2: float
    phipq: float
    thetapq: float


NO_SIDIS = SIDISVariables(0.0, 0.0, 0.0, 0.0, 0.0)


def _div(a: float, b: float) -> float:
    return a / b if b != 0.0 else math.nan


def rotate_z(v: np.ndarray, th: float) -> np.ndarray:
    c, s = math.cos(th), math.sin(th)
    return np.array([v[0] * c - v[1] * s, v[0] * s + v[1] * c, v[2]])


def rotate_y(v: np.ndarray, th: float) -> np.ndarray:
    c, s = math.cos(th), math.sin(th)
    return np.array([v[0] * c + v[2] * s, v[1], -v[0] * s + v[2] * c])


def angle_between(a: np.ndarray, b: np.ndarray) -> float:
    """Angle [rad] between two 3-vectors (nan if either is null)."""
    na, nb = float(np.linalg.norm(a)), float(np.linalg.norm(b))
    if na == 0.0 or nb == 0.0:
        return math.nan
    cos = float(np.dot(a, b)) / (na * nb)
    return math.acos(min(1.0, max(-1.0, cos)))


def virtual_photon(beam_energy: float, e_p3: np.ndarray) -> np.ndarray:
    """Three-momentum of the virtual photon q = k - k'."""
    return np.array([0.0, 0.0, beam_energy]) - np.asarray(e_p3, dtype=np.float64)


def dis_variables(beam_energy: float, e_p3: np.ndarray) -> DISVariables:
    """
    Inclusive DIS variables from the scattered electron momentum (lab frame).

    Q2 = 4 E E' sin^2(theta/2), nu = E - E', xb = Q2 / (2 M nu),
    yb = nu / E, W2 = M^2 + 2 M nu - Q2.
    """
    e_p3 = np.asarray(e_p3, dtype=np.float64)
    p = float(np.linalg.norm(e_p3))
    e_prime = math.sqrt(p * p + M_ELECTRON_GEV ** 2)
    theta = math.atan2(math.hypot(e_p3[0], e_p3[1]), e_p3[2])
    q2 = 4.0 * beam_energy * e_prime * math.sin(theta / 2.0) ** 2
    nu = beam_energy - e_prime
    M = M_TARGET_GEV
    return DISVariables(
        q2=q2,
        nu=nu,
        xb=_div(q2, 2.0 * M * nu),
        yb=_div(nu, beam_energy),
        w2=M * M + 2.0 * M * nu - q2,
    )


def sidis_variables(beam_energy: float, e_p3: np.ndarray, h_p3: np.ndarray, h_mass: float) -> SIDISVariables:
    """
    Hadron variables in the virtual photon frame.

    zh = E_h / nu; P_T and P_L are the hadron momentum components transverse
    and parallel to q; phi_PQ is the hadron azimuth after rotating q onto +z
    (first about z, then about y).
    """
    h_p3 = np.asarray(h_p3, dtype=np.float64)
    q = virtual_photon(beam_energy, e_p3)
    e_prime = math.sqrt(float(np.dot(e_p3, e_p3)) + M_ELECTRON_GEV ** 2)
    nu = beam_energy - e_prime

    ph = float(np.linalg.norm(h_p3))
    e_h = math.sqrt(ph * ph + h_mass * h_mass)
    theta_pq = angle_between(q, h_p3)

    phi_z = math.pi - math.atan2(q[1], q[0])
    q_rot = rotate_z(q, phi_z)
    h_rot = rotate_z(h_p3, phi_z)
    phi_y = angle_between(q_rot, np.array([0.0, 0.0, 1.0]))
    h_rot = rotate_y(h_rot, phi_y)

    return SIDISVariables(
        zh=_div(e_h, nu),
        pt2=(ph * math.sin(theta_pq)) ** 2,
        pl2=(ph * math.cos(theta_pq)) ** 2,
        phipq=math.atan2(h_rot[1], h_rot[0]),
        thetapq=theta_pq,
    )


def momentum(p: FusedParticle) -> np.ndarray:
    return np.array([p.px, p.py, p.pz], dtype=np.float64)


def particle_row(part: FusedParticle, trigger: FusedParticle, run_no: int, event_no: int,
                 beam_energy: float, dis: Optional[DISVariables] = None) -> Dict[str, float]:
    """
    Flatten one classified particle into the NTUPLE_VARIABLES record.

    DIS variables come from the event's trigger. The trigger's own row carries
    zero SIDIS values and dtof 0.
    """
    if dis is None:
        dis = dis_variables(beam_energy, momentum(trigger))
    if part is trigger:
        sidis = NO_SIDIS
        dtof = 0.0
    else:
        sidis = sidis_variables(beam_energy, momentum(trigger), momentum(part), part.mass)
        dtof = part.tof - trigger.tof

    row = {
        "run_no": run_no, "event_no": event_no, "beam_energy": beam_energy,
        "pid": part.pid, "charge": part.charge, "status": part.status, "mass": part.mass,
        "vx": part.vx, "vy": part.vy, "vz": part.vz,
        "px": part.px, "py": part.py, "pz": part.pz,
        "p": part.p, "theta": part.theta, "phi": part.phi, "beta": part.beta,
        "chi2": part.chi2, "ndf": part.ndf,
        "e_pcal": part.energy.pcal, "e_ecin": part.energy.ecin, "e_ecou": part.energy.ecou,
        "e_total": part.energy.total,
        "dtof": dtof,
        "nphe_ltcc": part.nphe.ltcc, "nphe_htcc": part.nphe.htcc,
        "q2": dis.q2, "nu": dis.nu, "xb": dis.xb, "yb": dis.yb, "w2": dis.w2,
        "zh": sidis.zh, "pt2": sidis.pt2, "pl2": sidis.pl2,
        "phipq": sidis.phipq, "thetapq": sidis.thetapq,
    }
    return {k: float(row[k]) for k in NTUPLE_VARIABLES}
