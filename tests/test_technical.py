import numpy as np
import pandas as pd
import pytest

from scdenoise.core.technical import (
    TechnicalKind,
    TechnicalVariance,
    filter_biological,
    resolve_technical_variance,
)


def _table(total, tech) -> TechnicalVariance:
    return TechnicalVariance.coerce(pd.DataFrame({"total": total, "tech": tech}))


def test_table_rescales_to_observed_total():
    tech = _table([1.0, 4.0, 0.0, 0.0], [0.5, 1.0, 0.2, 0.1])
    all_var = np.array([2.0, 4.0, 0.0, 3.0])
    out = resolve_technical_variance(tech, all_var, np.arange(4))
    np.testing.assert_allclose(out[:3], [1.0, 1.0, 0.0])
    assert np.isposinf(out[3])


def test_table_matching_totals_keep_reported_values():
    reported = np.array([0.3, 0.7, 1.1])
    total = np.array([1.0, 2.0, 3.0])
    tech = _table(total, reported)
    out = resolve_technical_variance(tech, total.copy(), np.arange(3))
    np.testing.assert_allclose(out, reported)


def test_table_follows_row_subset():
    tech = _table([1.0, 2.0, 4.0], [0.1, 0.2, 0.4])
    out = resolve_technical_variance(tech, np.array([8.0, 1.0]), np.array([2, 0]))
    np.testing.assert_allclose(out, [0.8, 0.1])


def test_zero_reported_total_with_observed_variance_excludes_gene():
    tech = _table([0.0, 1.0], [0.0, 0.1])
    all_var = np.array([5.0, 1.0])
    out = resolve_technical_variance(tech, all_var, np.arange(2))
    keep = filter_biological(all_var, out)
    assert keep.tolist() == [False, True]


def test_function_uses_means():
    tech = TechnicalVariance.coerce(lambda m: 0.5 * m)
    assert tech.kind is TechnicalKind.FUNCTION
    assert tech.needs_means
    out = resolve_technical_variance(
        tech, np.ones(2), np.array([0, 1]), means=np.array([2.0, 4.0])
    )
    np.testing.assert_allclose(out, [1.0, 2.0])


def test_scalar_function_result_broadcasts():
    tech = TechnicalVariance.from_function(lambda m: 0.3)
    out = resolve_technical_variance(tech, np.ones(3), np.arange(3), means=np.zeros(3))
    np.testing.assert_allclose(out, [0.3, 0.3, 0.3])


def test_function_requires_means():
    tech = TechnicalVariance.from_function(np.sqrt)
    with pytest.raises(ValueError, match="Mean expression"):
        resolve_technical_variance(tech, np.ones(2), np.arange(2))


def test_function_length_mismatch_rejected():
    tech = TechnicalVariance.from_function(lambda m: np.ones(5))
    with pytest.raises(ValueError, match="returned 5 values"):
        resolve_technical_variance(tech, np.ones(2), np.arange(2), means=np.ones(2))


def test_vector_is_indexed_by_subset():
    tech = TechnicalVariance.coerce(pd.Series([0.1, 0.2, 0.3]))
    assert tech.kind is TechnicalKind.VECTOR
    out = resolve_technical_variance(tech, np.ones(2), np.array([2, 1]))
    np.testing.assert_allclose(out, [0.3, 0.2])


def test_check_n_genes():
    TechnicalVariance.from_vector([1.0, 2.0]).check_n_genes(2)
    with pytest.raises(ValueError, match="3 genes"):
        TechnicalVariance.from_vector([1.0, 2.0]).check_n_genes(3)
    with pytest.raises(ValueError, match="3 genes"):
        _table([1.0], [0.5]).check_n_genes(3)
    TechnicalVariance.from_function(np.sqrt).check_n_genes(3)


def test_coerce_rejects_unsupported_objects():
    with pytest.raises(TypeError, match="technical must be"):
        TechnicalVariance.coerce("modelGeneVar")
    with pytest.raises(KeyError, match="tech"):
        TechnicalVariance.coerce(pd.DataFrame({"total": [1.0]}))
    with pytest.raises(ValueError, match="1D"):
        TechnicalVariance.from_vector(np.ones((2, 2)))


def test_coerce_is_idempotent():
    tech = TechnicalVariance.from_vector([1.0])
    assert TechnicalVariance.coerce(tech) is tech


def test_filter_biological_is_strict():
    keep = filter_biological(np.array([1.0, 1.0, 2.0]), np.array([1.0, np.inf, 0.5]))
    assert keep.tolist() == [False, False, True]
