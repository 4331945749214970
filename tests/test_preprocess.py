"""Tests for data preparation"""
import pytest
import numpy as np
import pandas as pd

from consensus_ensemble.preprocess import prepare_data


@pytest.fixture
def mixed_variance():
    rng = np.random.default_rng(3)
    return pd.DataFrame(
        {
            "wide": rng.normal(0, 5, 40),
            "narrow": rng.normal(0, 0.1, 40),
            "shifted": rng.normal(100, 3, 40),
        },
        index=[f"S{i}" for i in range(40)],
    )


class TestFiltering:

    def test_low_variance_dropped(self, mixed_variance):
        out = prepare_data(mixed_variance, scale=False, min_var=1.0)
        assert list(out.columns) == ["wide", "shifted"]

    def test_row_labels_kept(self, mixed_variance):
        out = prepare_data(mixed_variance)
        assert list(out.index) == list(mixed_variance.index)

    def test_all_dropped(self, mixed_variance):
        out = prepare_data(mixed_variance, min_var=1e6)
        assert out.shape == (40, 0)

    def test_array_input(self):
        x = np.random.default_rng(0).normal(0, 2, (10, 3))
        out = prepare_data(x, min_var=0.0)
        assert isinstance(out, pd.DataFrame)
        assert out.shape == (10, 3)


class TestScaling:

    def test_conventional_unit_sample_sd(self, mixed_variance):
        out = prepare_data(mixed_variance, type="conventional", min_var=0.0)
        assert np.allclose(out.mean(), 0.0)
        assert np.allclose(out.std(ddof=1), 1.0)

    def test_robust_median_centred(self, mixed_variance):
        out = prepare_data(mixed_variance, type="robust", min_var=0.0)
        assert np.allclose(out.median(), 0.0)

    def test_robust_constant_column(self):
        df = pd.DataFrame({"a": [1.0, 1.0, 1.0, 5.0], "b": [1.0, 2.0, 3.0, 4.0]})
        # MAD of 'a' is zero; values are centred but not divided
        out = prepare_data(df, type="robust", min_var=0.0)
        assert out["a"].tolist() == [0.0, 0.0, 0.0, 4.0]

    def test_no_scaling(self, mixed_variance):
        out = prepare_data(mixed_variance, scale=False, min_var=0.0)
        pd.testing.assert_frame_equal(out, mixed_variance.astype(float))

    def test_unknown_type(self, mixed_variance):
        with pytest.raises(ValueError, match="Unknown scaling type"):
            prepare_data(mixed_variance, type="minmax", min_var=0.0)
