# src/rgeana/filters/fusion.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rgeana.errors import IndexOutOfRange, InvalidAuxTrackerLayers, UnsupportedParticleId
from rgeana.geometry.fiducial import apply_fmt_geometry_cut
from rgeana.io.banks import AuxTrackRow, BankSet
from rgeana.physics.classifier import Classifier, select_trigger
from rgeana.physics.detectors import count_photoelectrons, get_deposited_energy, get_tof
from rgeana.physics.particle import FusedParticle
from rgeana.physics.pid import PARTICLES

AUX_TRACKER_LAYER_OPTIONS = (0, 2, 3)


@dataclass
class FusionDiagnostics:
    events_seen: int = 0
    events_empty: int = 0
    events_with_trigger: int = 0
    candidates_seen: int = 0
    candidates_invalid: int = 0
    candidates_fiducial: int = 0
    candidates_unsupported: int = 0
    candidates_classified: int = 0
    species: Dict[str, int] = field(default_factory=dict)
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + 1

    def count_species(self, pid: int) -> None:
        name = PARTICLES[pid].name if pid in PARTICLES else str(pid)
        self.species[name] = self.species.get(name, 0) + 1


@dataclass
class EventResult:
    """Classified candidates of one event, in track-row order."""
    event_index: int
    particles: List[FusedParticle] = field(default_factory=list)
    trigger: Optional[FusedParticle] = None

    @property
    def has_trigger(self) -> bool:
        return self.trigger is not None

    def others(self) -> List[FusedParticle]:
        return [p for p in self.particles if p is not self.trigger]


def _find_aux_segment(banks: BankSet, track_index: int, min_layers: int) -> Optional[AuxTrackRow]:
    for seg in banks.aux_tracks:
        if seg.index == track_index and seg.NDF >= min_layers:
            return seg
    return None


def build_candidate(banks: BankSet, pos: int, aux_tracker_layers: int = 0) -> Optional[FusedParticle]:
    """
    Build the fused particle for track row `pos`, or None when it is invalid.

    Invalid means the track points to a missing particle row, or (for
    aux_tracker_layers > 0) no aux-tracker segment with enough layers is
    attached to the track. Vertex and momentum come from the aux segment when
    one is required.
    """
    trk = banks.track.row(pos)
    try:
        part = banks.particle.row(trk.pindex)
    except IndexOutOfRange:
        return None

    vx, vy, vz = part.vx, part.vy, part.vz
    px, py, pz = part.px, part.py, part.pz
    if aux_tracker_layers > 0:
        seg = _find_aux_segment(banks, trk.index, aux_tracker_layers)
        if seg is None:
            return None
        vx, vy, vz = seg.Vtx0_x, seg.Vtx0_y, seg.Vtx0_z
        px, py, pz = seg.p0_x, seg.p0_y, seg.p0_z

    return FusedParticle(
        pindex=trk.pindex,
        track_pos=pos,
        sector=trk.sector,
        charge=part.charge,
        recon_pid=part.pid,
        status=part.status,
        vx=vx, vy=vy, vz=vz,
        px=px, py=py, pz=pz,
        beta=part.beta,
        chi2=trk.chi2,
        ndf=float(trk.NDF),
    )


class FusionEngine:
    """
    Per-event detector fusion + classification.

    Corrupt-bank errors (InvalidCalorimeterLayer, InvalidCherenkovId) and
    degenerate fiducial geometry propagate; invalid, cut, or unidentifiable
    candidates are skipped and counted in `diagnostics`.
    """

    def __init__(self, classifier: Classifier, aux_tracker_layers: int = 0, fiducial_cut: bool = False,
                 diagnostics: Optional[FusionDiagnostics] = None):
        if aux_tracker_layers not in AUX_TRACKER_LAYER_OPTIONS:
            raise InvalidAuxTrackerLayers(aux_tracker_layers)
        self.classifier = classifier
        self.aux_tracker_layers = aux_tracker_layers
        self.fiducial_cut = fiducial_cut
        self.diagnostics = diagnostics or FusionDiagnostics()

    def _fuse(self, banks: BankSet, pos: int) -> Optional[FusedParticle]:
        diag = self.diagnostics
        diag.candidates_seen += 1

        cand = build_candidate(banks, pos, self.aux_tracker_layers)
        if cand is None:
            diag.candidates_invalid += 1
            diag.inc("invalid_candidate")
            return None

        if self.fiducial_cut and not apply_fmt_geometry_cut(cand.vz, cand.px, cand.py, cand.pz):
            diag.candidates_fiducial += 1
            diag.inc("fmt_geometry_cut")
            return None

        cand.energy = get_deposited_energy(banks.calorimeter, cand.pindex)
        cand.nphe = count_photoelectrons(banks.cherenkov, cand.pindex)
        cand.tof = get_tof(banks.scintillator, banks.calorimeter, cand.pindex)

        try:
            self.classifier.classify(cand, cand.recon_pid, cand.status, cand.energy, cand.nphe)
        except UnsupportedParticleId:
            diag.candidates_unsupported += 1
            diag.inc("unsupported_pid")
            return None
        diag.candidates_classified += 1
        return cand

    def process_event(self, banks: BankSet, event_index: int = 0) -> EventResult:
        """Fuse and classify every track row of the loaded event."""
        diag = self.diagnostics
        diag.events_seen += 1
        result = EventResult(event_index=event_index)
        if banks.particle.nrows == 0 or banks.track.nrows == 0:
            diag.events_empty += 1
            return result

        for pos in range(banks.track.nrows):
            cand = self._fuse(banks, pos)
            if cand is not None:
                result.particles.append(cand)

        result.trigger = select_trigger(result.particles)
        if result.trigger is not None:
            diag.events_with_trigger += 1
        return result
