import awkward as ak
import numpy as np
import pytest
import uproot

from rgeana.config.schemas import IOCfg
from rgeana.errors import InvalidColumn
from rgeana.io.banks import FMT_TRACKS, REC_PARTICLE, REC_TRACK, Bank, EventContext, schema_for
from rgeana.io.sources import HDF5EventSource, InMemoryEventSource, ROOTEventSource, make_source, write_hdf5_banks

from bankdata import dis_event, event


def _events():
    return [
        dis_event(),
        event(tracks=[dict(pindex=0, sector=2)]),  # no particle bank
        dis_event(second_electron=True),
    ]


def test_in_memory_source_reads_missing_bank_as_empty():
    src = InMemoryEventSource(_events())
    assert len(src) == 3
    assert src.read_bank(REC_PARTICLE, 1) == {}
    assert src.has_bank(REC_TRACK)
    assert not src.has_bank(FMT_TRACKS)
    with pytest.raises(IndexError):
        src.read_bank(REC_TRACK, 3)


def test_hdf5_bank_store_matches_in_memory(tmp_path):
    events = _events()
    path = write_hdf5_banks(tmp_path / "012016.h5", events)

    mem = InMemoryEventSource(events)
    with HDF5EventSource(path) as h5:
        assert h5.n_events == 3
        assert not h5.has_bank(FMT_TRACKS)
        for ev in range(3):
            for bank in (REC_PARTICLE, REC_TRACK):
                a, b = Bank(bank), Bank(bank)
                a.advance(EventContext(mem, ev))
                b.advance(EventContext(h5, ev))
                assert a.nrows == b.nrows
                for name in a.schema.names:
                    np.testing.assert_array_equal(a.column(name), b.column(name))


def test_make_source_hdf5(tmp_path):
    path = write_hdf5_banks(tmp_path / "012016.h5", _events())
    src = make_source(IOCfg(input_path=str(path), input_format="hdf5"))
    try:
        assert isinstance(src, HDF5EventSource)
        assert src.read_bank(REC_TRACK, 2)["pindex"].tolist() == [0, 1, 2, 3]
    finally:
        src.close()


def _write_root_tree(path, events, tree="Tree", only=None):
    """
    Write `events` as a per-event vector-branch TTree. REC::Particle uses the
    "<bank>::<column>" spelling, the other banks "<bank>_<column>". `only`
    limits the REC::Particle columns written.
    """
    branches = {}
    for bank in (REC_PARTICLE, REC_TRACK):
        names = only if (only is not None and bank == REC_PARTICLE) else schema_for(bank).names
        for name in names:
            key = f"{bank}::{name}" if bank == REC_PARTICLE else f"{bank.replace('::', '_')}_{name}"
            branches[key] = ak.Array([list((ev.get(bank) or {}).get(name, [])) for ev in events])
    with uproot.recreate(path) as f:
        f[tree] = branches
    return path


def test_root_source_matches_in_memory(tmp_path):
    events = _events()
    path = _write_root_tree(tmp_path / "012016.root", events)

    mem = InMemoryEventSource(events)
    with ROOTEventSource(path) as root:
        assert root.n_events == 3
        assert root.has_bank(REC_PARTICLE) and root.has_bank(REC_TRACK)
        assert not root.has_bank(FMT_TRACKS)
        assert root.read_bank(REC_PARTICLE, 1) == {}
        for ev in range(3):
            for bank in (REC_PARTICLE, REC_TRACK):
                a, b = Bank(bank), Bank(bank)
                a.advance(EventContext(mem, ev))
                b.advance(EventContext(root, ev))
                assert a.nrows == b.nrows
                for name in a.schema.names:
                    np.testing.assert_array_equal(a.column(name), b.column(name))


def test_root_source_tree_fallback_and_entry_stop(tmp_path):
    path = _write_root_tree(tmp_path / "012016.root", _events(), tree="events")
    with ROOTEventSource(path, tree="Tree", entry_stop=2) as root:
        assert root.n_events == 2
        assert root.read_bank(REC_TRACK, 0)["pindex"].tolist() == [0, 1, 2]
        with pytest.raises(IndexError):
            root.read_bank(REC_TRACK, 2)


def test_root_source_missing_columns(tmp_path):
    path = _write_root_tree(tmp_path / "012016.root", _events(), only=("pid", "px"))
    with ROOTEventSource(path) as root:
        assert root.has_bank(REC_PARTICLE)
        b = Bank(REC_PARTICLE)
        with pytest.raises(InvalidColumn):
            b.advance(EventContext(root, 0))


def test_make_source_root(tmp_path):
    path = _write_root_tree(tmp_path / "012016.root", _events())
    src = make_source(IOCfg(input_path=str(path), adapter={"tree": "Tree"}), n_events=1)
    try:
        assert isinstance(src, ROOTEventSource)
        assert src.n_events == 1
        assert src.read_bank(REC_PARTICLE, 0)["pid"].tolist() == [11, 211, -211]
    finally:
        src.close()
