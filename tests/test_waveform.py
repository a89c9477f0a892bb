import pytest

from sensors.waveform import WaveformGenerator, cycle_position, triangle_value


ENVELOPES = [
    (15.0, 22.0, 30.0),
    (0.0, 0.0, 10.0),     # optimal == min
    (0.0, 10.0, 10.0),    # optimal == max
    (6.0, 6.5, 7.0),
    (5.0, 5.0, 5.0),      # fully flat
]


def test_segment_endpoints():
    assert triangle_value(10, 20, 40, 0.0) == 10
    assert triangle_value(10, 20, 40, 0.25) == 20
    assert triangle_value(10, 20, 40, 0.5) == 40
    assert triangle_value(10, 20, 40, 0.75) == 20


def test_midpoints_are_linear():
    assert triangle_value(10, 20, 40, 0.125) == pytest.approx(15)
    assert triangle_value(10, 20, 40, 0.375) == pytest.approx(30)
    assert triangle_value(10, 20, 40, 0.625) == pytest.approx(30)
    assert triangle_value(10, 20, 40, 0.875) == pytest.approx(15)


@pytest.mark.parametrize("envelope", ENVELOPES)
@pytest.mark.parametrize("boundary", [0.25, 0.5, 0.75, 1.0])
def test_continuous_across_segment_boundaries(envelope, boundary):
    eps = 1e-9
    before = triangle_value(*envelope, boundary - eps)
    after = triangle_value(*envelope, boundary % 1.0)
    assert before == pytest.approx(after, abs=1e-6)


@pytest.mark.parametrize("envelope", ENVELOPES)
def test_periodic(envelope):
    gen = WaveformGenerator(period=120, phase_offset=0.3)
    for t in [0, 7.5, 31, 59.99, 90, 119]:
        assert gen.value(*envelope, t) == pytest.approx(gen.value(*envelope, t + 120))


def test_phase_offset_shifts_start():
    assert WaveformGenerator(120, 0.0).value(15, 22, 30, 0) == 15
    assert WaveformGenerator(120, 0.25).value(15, 22, 30, 0) == 22
    assert WaveformGenerator(120, 0.5).value(15, 22, 30, 0) == 30
    assert WaveformGenerator(120, 0.75).value(15, 22, 30, 0) == 22


def test_cycle_position_wraps():
    assert cycle_position(0, 120, 0.5) == 0.5
    assert cycle_position(60, 120, 0.5) == 0.0
    assert 0.0 <= cycle_position(1e6, 120, 0.9) < 1.0


def test_degenerate_optimal_is_flat():
    # optimal == max: the rising half flattens out at max
    assert triangle_value(0, 10, 10, 0.3) == 10
    assert triangle_value(0, 10, 10, 0.6) == 10


def test_inverted_envelope_is_not_rejected():
    value = triangle_value(30, 20, 10, 0.125)
    assert value == pytest.approx(25)


def test_period_must_be_positive():
    with pytest.raises(ValueError):
        WaveformGenerator(0)
