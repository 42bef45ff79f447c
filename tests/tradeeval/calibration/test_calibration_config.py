"""Tests for tradeeval.calibration.config."""

from __future__ import annotations

import pytest
import yaml

from tradeeval.calibration.config import (
    CalibrationConfig,
    load_calibration_config,
    merge_overrides,
)


class TestCalibrationConfig:
    def test_defaults(self):
        cfg = CalibrationConfig()
        assert cfg.opportunity_threshold == 0.5
        assert cfg.min_confidence_for_evaluation == 0.5
        assert cfg.hold_penalty_weight == 1.0
        assert cfg.close_too_early_threshold == 0.5
        assert cfg.close_penalty_weight == 1.0
        assert cfg.n_buckets == 10
        assert cfg.min_events == 10

    @pytest.mark.parametrize(
        "field, value",
        [
            ("opportunity_threshold", -0.1),
            ("min_confidence_for_evaluation", 1.5),
            ("hold_penalty_weight", -1.0),
            ("n_buckets", 0),
            ("min_events", 0),
            ("max_age_days", 0),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            CalibrationConfig(**{field: value})


class TestLoad:
    def test_repo_config_matches_defaults(self):
        assert load_calibration_config() == CalibrationConfig()

    def test_unknown_keys_logged(self, tmp_path, caplog):
        path = tmp_path / "cal.yml"
        path.write_text(yaml.safe_dump({"min_events": 20, "smoothing": 0.1}))
        cfg = load_calibration_config(path)
        assert cfg.min_events == 20
        assert "smoothing" in caplog.text

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "cal.yml"
        path.write_text("")
        assert load_calibration_config(path) == CalibrationConfig()

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_calibration_config(tmp_path / "nope.yml")


class TestMergeOverrides:
    def test_none_returns_base(self):
        base = CalibrationConfig()
        assert merge_overrides(base, None) is base

    def test_known_applied_unknown_ignored(self, caplog):
        merged = merge_overrides(
            CalibrationConfig(), {"hold_penalty_weight": 2.0, "foo": 1},
        )
        assert merged.hold_penalty_weight == 2.0
        assert merged.opportunity_threshold == 0.5
        assert "foo" in caplog.text

    def test_validation_runs_on_merge(self):
        with pytest.raises(ValueError):
            merge_overrides(CalibrationConfig(), {"n_buckets": 0})
