import math

import pytest

from rgeana.errors import InvalidCalorimeterLayer, InvalidCherenkovId
from rgeana.io.banks import REC_CALORIMETER, REC_CHERENKOV, REC_SCINTILLATOR
from rgeana.physics.detectors import (
    ECIN_LYR, ECOU_LYR, FTOF1A_LYR, FTOF1B_LYR, FTOF2_LYR, FTOF_ID, HTCC_ID, LTCC_ID, PCAL_LYR,
    count_photoelectrons, get_deposited_energy, get_tof,
)

from bankdata import load_bank


def _sci(*rows):
    return load_bank(REC_SCINTILLATOR, [dict(detector=FTOF_ID, **r) for r in rows])


def _cal(*rows):
    return load_bank(REC_CALORIMETER, list(rows))


def test_tof_prefers_ftof1b_regardless_of_order():
    cal = _cal()
    a_then_b = _sci(dict(pindex=0, layer=FTOF1A_LYR, time=30.0), dict(pindex=0, layer=FTOF1B_LYR, time=25.0))
    b_then_a = _sci(dict(pindex=0, layer=FTOF1B_LYR, time=25.0), dict(pindex=0, layer=FTOF1A_LYR, time=30.0))
    assert get_tof(a_then_b, cal, 0) == pytest.approx(25.0)
    assert get_tof(b_then_a, cal, 0) == pytest.approx(25.0)


def test_tof_ftof_precedence_and_first_duplicate_wins():
    cal = _cal()
    sci = _sci(
        dict(pindex=0, layer=FTOF2_LYR, time=40.0),
        dict(pindex=0, layer=FTOF1A_LYR, time=31.0),
        dict(pindex=0, layer=FTOF1A_LYR, time=33.0),
        dict(pindex=1, layer=FTOF1B_LYR, time=10.0),
    )
    assert get_tof(sci, cal, 0) == pytest.approx(31.0)
    assert get_tof(sci, cal, 1) == pytest.approx(10.0)


def test_tof_ignores_other_scintillators_and_falls_back_to_calorimeter():
    sci = load_bank(REC_SCINTILLATOR, [dict(pindex=0, detector=4, layer=FTOF1B_LYR, time=5.0)])
    cal = _cal(
        dict(pindex=0, layer=ECOU_LYR, time=45.0),
        dict(pindex=0, layer=ECIN_LYR, time=44.0),
        dict(pindex=1, layer=PCAL_LYR, time=1.0),
    )
    assert get_tof(sci, cal, 0) == pytest.approx(44.0)

    cal = _cal(dict(pindex=0, layer=ECIN_LYR, time=44.0), dict(pindex=0, layer=PCAL_LYR, time=43.0))
    assert get_tof(sci, cal, 0) == pytest.approx(43.0)


def test_tof_without_hits_is_infinite():
    tof = get_tof(_sci(), _cal(), 0)
    assert math.isinf(tof) and tof > 0


def test_deposited_energy_per_layer():
    cal = _cal(
        dict(pindex=0, layer=PCAL_LYR, energy=1.0),
        dict(pindex=0, layer=PCAL_LYR, energy=0.5),
        dict(pindex=0, layer=ECIN_LYR, energy=2.0),
        dict(pindex=1, layer=ECOU_LYR, energy=9.0),
    )
    e = get_deposited_energy(cal, 0)
    assert e.pcal == pytest.approx(1.5)
    assert e.ecin == pytest.approx(2.0)
    assert e.ecou == 0.0
    assert e.total == pytest.approx(3.5)


def test_deposited_energy_rejects_unknown_layer():
    cal = _cal(dict(pindex=0, layer=PCAL_LYR, energy=1.0), dict(pindex=0, layer=9, energy=1.0))
    with pytest.raises(InvalidCalorimeterLayer, match="layer 9"):
        get_deposited_energy(cal, 0)
    # rows of other particles are not inspected
    assert get_deposited_energy(cal, 2).total == 0.0


def test_photoelectrons():
    chk = load_bank(REC_CHERENKOV, [
        dict(pindex=0, detector=HTCC_ID, nphe=7.5),
        dict(pindex=0, detector=LTCC_ID, nphe=2.0),
        dict(pindex=0, detector=HTCC_ID, nphe=1.5),
    ])
    n = count_photoelectrons(chk, 0)
    assert n.htcc == pytest.approx(9.0)
    assert n.ltcc == pytest.approx(2.0)

    bad = load_bank(REC_CHERENKOV, [dict(pindex=0, detector=21, nphe=1.0)])
    with pytest.raises(InvalidCherenkovId):
        count_photoelectrons(bad, 0)
