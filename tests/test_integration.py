import math

import numpy as np
import pytest

from delayrc.core.exceptions import ConfigError, NumericInstabilityWarning, ShapeError
from delayrc.core.integration import draw_noise, euler_maruyama, generate_mask, integrate, make_rng
from delayrc.core.models import DDEReservoir, Ikeda

SMALL = {"delay": 0.4, "num_nodes": 8, "theta": 0.05, "integ_step": 0.01, "noise_amp": 1e-3}


class ComplexDecay(DDEReservoir):
    name = "complex_decay"
    dtype = complex


class Exploding(DDEReservoir):
    name = "exploding"

    def dynamics(self, z_t, z_delayed, u_t):
        return z_t * z_t * 1e6


def _ikeda(**overrides):
    rc = Ikeda(dict(SMALL, **overrides))
    rc.init_delay()
    return rc


def test_make_rng_passes_generators_through():
    rng = np.random.default_rng(1)

    assert make_rng(rng) is rng
    assert isinstance(make_rng(3), np.random.Generator)


def test_generate_mask_policies():
    uniform = generate_mask(50, make_rng(0))
    binary = generate_mask(50, make_rng(0), policy="binary", scale=0.2)

    assert uniform.shape == (50,)
    assert np.all((uniform >= -0.5) & (uniform < 0.5))
    assert set(np.unique(binary)) <= {-0.2, 0.2}
    np.testing.assert_array_equal(uniform, generate_mask(50, make_rng(0)))

    with pytest.raises(ConfigError):
        generate_mask(5, make_rng(0), policy="gaussian")


def test_euler_step_real_state():
    rc = DDEReservoir({"delay": 0.05, "theta": 0.01, "integ_step": 0.01, "noise_amp": 0.0})
    rc.init_delay(rng=0)
    rc.z_t = 2.0

    z_next = euler_maruyama(rc, 0.0, make_rng(0))

    assert z_next == pytest.approx(2.0 - 0.01 * 2.0)
    assert rc.z_t == z_next
    assert rc.z_tau.to_array()[-1] == pytest.approx(z_next)


def test_euler_step_reads_oldest_delayed_value():
    rc = Ikeda({"delay": 0.05, "theta": 0.01, "integ_step": 0.01, "noise_amp": 0.0})
    rc.init_delay()
    rc.z_tau.push(0.7)  # history is now [0.1, 0.1, 0.1, 0.1, 0.7]

    z_next = euler_maruyama(rc, 0.5, make_rng(0))

    expected = 0.1 + 0.01 * (-0.1 + 1.6 * math.sin(0.1 + 0.9 * 0.5 + 0.2) ** 2)
    assert z_next == pytest.approx(expected)
    np.testing.assert_allclose(rc.z_tau.to_array(), [0.1, 0.1, 0.1, 0.7, expected])


def test_euler_step_real_noise_uses_one_draw():
    rc = DDEReservoir({"delay": 0.05, "theta": 0.01, "integ_step": 0.01, "noise_amp": 0.5})
    rc.init_delay(rng=0)
    rc.z_t = 1.0

    rng, reference = make_rng(7), make_rng(7)
    z_next = euler_maruyama(rc, 0.0, rng)

    expected = 1.0 - 0.01 + 0.5 * reference.standard_normal() * math.sqrt(0.01)
    assert z_next == pytest.approx(expected)
    assert rng.standard_normal() == reference.standard_normal()


def test_euler_step_complex_noise_uses_two_independent_draws():
    rc = ComplexDecay({"delay": 0.05, "theta": 0.01, "integ_step": 0.01, "noise_amp": 0.5})
    rc.init_delay(rng=1)
    rc.z_t = 1.0 + 1.0j

    rng, reference = make_rng(7), make_rng(7)
    z_next = euler_maruyama(rc, 0.0, rng)

    reference.standard_normal()
    noise = complex(reference.standard_normal(), reference.standard_normal())
    expected = (1.0 + 1.0j) * (1 - 0.01) + 0.5 * noise * math.sqrt(0.01)
    assert isinstance(z_next, complex) or np.iscomplexobj(z_next)
    assert z_next == pytest.approx(expected)
    assert rc.z_tau.to_array()[-1] == pytest.approx(expected)


def test_integrate_shape_and_bias_column():
    rc = _ikeda()
    inputs = np.linspace(-1, 1, 12)
    mask = generate_mask(rc.num_nodes, make_rng(0))

    states = integrate(rc, inputs, mask, make_rng(0))

    assert states.shape == (12, 9)
    np.testing.assert_array_equal(states[:, -1], np.ones(12))
    assert np.all(np.isfinite(states))


def test_integrate_samples_readout_after_each_node():
    rc = _ikeda(noise_amp=0.0)
    twin = _ikeda(noise_amp=0.0)
    mask = generate_mask(rc.num_nodes, make_rng(3))

    states = integrate(rc, [0.4, -0.2], mask, make_rng(0))

    rng = make_rng(0)
    expected = []
    for u_k in (0.4, -0.2):
        for m_n in mask:
            for _ in range(twin.steps_per_node):
                euler_maruyama(twin, m_n * u_k, rng)
            expected.append(twin.readout())

    np.testing.assert_allclose(states[:, :-1].ravel(), expected)


@pytest.mark.parametrize("reservoir_cls", [Ikeda, ComplexDecay])
def test_integrate_noise_matches_step_by_step_draws(reservoir_cls):
    params = dict(SMALL, noise_amp=0.05)
    rc, twin = reservoir_cls(params), reservoir_cls(params)
    rc.init_delay(rng=4)
    twin.init_delay(rng=4)
    mask = generate_mask(rc.num_nodes, make_rng(3))
    inputs = [0.4, -0.2, 0.1]

    rng = make_rng(9)
    states = integrate(rc, inputs, mask, rng)

    reference = make_rng(9)
    expected = []
    for u_k in inputs:
        for m_n in mask:
            for _ in range(twin.steps_per_node):
                euler_maruyama(twin, m_n * u_k, reference)
            expected.append(twin.readout())

    np.testing.assert_allclose(states[:, :-1].ravel(), expected)
    assert twin.z_t == pytest.approx(rc.z_t)
    assert rng.standard_normal() == reference.standard_normal()


def test_draw_noise_keeps_per_step_order():
    rc = ComplexDecay({"delay": 0.05, "theta": 0.01, "integ_step": 0.01})
    reference = make_rng(2)

    noise = draw_noise(rc, make_rng(2), 4)

    expected = []
    for _ in range(4):
        reference.standard_normal()
        expected.append(complex(reference.standard_normal(), reference.standard_normal()))
    assert noise == pytest.approx(expected)
    assert draw_noise(Ikeda(), make_rng(2), 3) == make_rng(2).standard_normal(3).tolist()


def test_integrate_rejects_mask_length_mismatch():
    rc = _ikeda()

    with pytest.raises(ShapeError):
        integrate(rc, [0.1, 0.2], np.ones(rc.num_nodes + 1), make_rng(0))


def test_integrate_rejects_multidimensional_input():
    rc = _ikeda()

    with pytest.raises(ShapeError):
        integrate(rc, np.zeros((3, 2)), np.ones(rc.num_nodes), make_rng(0))


def test_integrate_requires_initialized_delay_line():
    rc = Ikeda(SMALL)

    with pytest.raises(RuntimeError):
        integrate(rc, [0.1], np.ones(rc.num_nodes), make_rng(0))


def test_integrate_is_stateful_across_calls():
    inputs = np.sin(np.arange(10))
    mask = generate_mask(8, make_rng(1))

    split = _ikeda()
    rng = make_rng(4)
    first = integrate(split, inputs[:4], mask, rng)
    second = integrate(split, inputs[4:], mask, rng)

    whole = integrate(_ikeda(), inputs, mask, make_rng(4))

    np.testing.assert_array_equal(np.vstack([first, second]), whole)


def test_integrate_is_deterministic_for_fixed_seed():
    inputs = np.cos(np.arange(15) * 0.3)
    mask = generate_mask(8, make_rng(2))

    a = integrate(_ikeda(noise_amp=0.05), inputs, mask, make_rng(9))
    b = integrate(_ikeda(noise_amp=0.05), inputs, mask, make_rng(9))
    c = integrate(_ikeda(noise_amp=0.05), inputs, mask, make_rng(10))

    np.testing.assert_array_equal(a, b)
    assert not np.array_equal(a, c)


def test_zero_noise_amplitude_is_seed_independent():
    inputs = np.cos(np.arange(15) * 0.3)
    mask = generate_mask(8, make_rng(2))

    a = integrate(_ikeda(noise_amp=0.0), inputs, mask, make_rng(1))
    b = integrate(_ikeda(noise_amp=0.0), inputs, mask, make_rng(2))

    np.testing.assert_array_equal(a, b)


def test_integrate_warns_on_non_finite_states():
    rc = Exploding({"delay": 0.05, "theta": 0.01, "integ_step": 0.01, "num_nodes": 2, "noise_amp": 0.0})
    rc.init_delay(rng=0)
    rc.z_t = 1.0

    with pytest.warns(NumericInstabilityWarning):
        with np.errstate(over="ignore", invalid="ignore"):
            integrate(rc, np.zeros(20), np.ones(2), make_rng(0))


def test_ikeda_settles_at_fixed_point_under_zero_input():
    rc = Ikeda({"num_nodes": 50, "theta": 1.4, "integ_step": 0.01, "delay": 80, "noise_amp": 0.0})
    rc.init_delay()
    mask = generate_mask(rc.num_nodes, make_rng(0))

    states = integrate(rc, np.zeros(100), mask, make_rng(0))

    z_star = rc.fixed_point()
    assert -rc.epsilon * z_star + rc.beta * math.sin(z_star + rc.phi) ** 2 == pytest.approx(0.0, abs=1e-10)
    np.testing.assert_allclose(states[-1, :-1], z_star, atol=1e-4)
    assert rc.z_t == pytest.approx(z_star, abs=1e-4)
