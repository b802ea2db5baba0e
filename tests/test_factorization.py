import numpy as np
import pytest

from scdenoise.core.factorization import (
    ExplicitQ,
    HouseholderQR,
    OrthogonalFactorization,
    qr_factorize,
)


def _design() -> np.ndarray:
    rng = np.random.default_rng(0)
    return np.column_stack([np.ones(10), rng.normal(size=10)])


@pytest.mark.parametrize("representation", ["householder", "explicit"])
def test_round_trip_preserves_vector(representation):
    fac = qr_factorize(_design(), representation=representation)
    assert isinstance(fac, OrthogonalFactorization)
    assert fac.n_obs == 10
    assert fac.n_coefs == 2

    b = np.random.default_rng(1).normal(size=10)
    c = b.copy()
    fac.apply_transpose(c)
    assert np.isclose(np.linalg.norm(c), np.linalg.norm(b))
    fac.apply(c)
    np.testing.assert_allclose(c, b, atol=1e-12)


def test_coefficient_block_spans_design():
    design = _design()
    fac = qr_factorize(design)
    for j in range(design.shape[1]):
        c = design[:, j].copy()
        fac.apply_transpose(c)
        np.testing.assert_allclose(c[2:], 0.0, atol=1e-12)


def test_representation_types():
    assert isinstance(qr_factorize(_design()), HouseholderQR)
    assert isinstance(qr_factorize(_design(), representation="explicit"), ExplicitQ)


def test_one_dimensional_design_is_single_column():
    fac = qr_factorize(np.ones(5))
    assert fac.n_coefs == 1
    c = np.arange(5, dtype=float)
    fac.apply_transpose(c)
    c[:1] = 0.0
    fac.apply(c)
    np.testing.assert_allclose(c, np.arange(5) - 2.0, atol=1e-12)


@pytest.mark.parametrize(
    "design, match",
    [
        (np.ones((2, 3)), "more coefficients"),
        (np.ones((4, 0)), "at least one column"),
        (np.array([[1.0], [np.nan]]), "NaN"),
        (np.ones((2, 2, 2)), "2D"),
    ],
)
def test_invalid_design_rejected(design, match):
    with pytest.raises(ValueError, match=match):
        qr_factorize(design)


def test_unknown_representation_rejected():
    with pytest.raises(ValueError, match="Unknown representation"):
        qr_factorize(_design(), representation="givens")


def test_rank_deficient_design_warns():
    design = np.column_stack([np.ones(6), 2.0 * np.ones(6)])
    with pytest.warns(RuntimeWarning, match="rank deficient"):
        qr_factorize(design)


def test_buffer_length_checked():
    fac = qr_factorize(_design())
    with pytest.raises(ValueError, match="does not match"):
        fac.apply(np.zeros(7))


def test_explicit_q_validation():
    with pytest.raises(ValueError, match="square"):
        ExplicitQ(np.ones((3, 2)), 1)
    with pytest.raises(ValueError, match="n_coefs"):
        ExplicitQ(np.eye(3), 4)
