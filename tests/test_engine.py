"""
Tests for the Psychometric Engine
=================================

End-to-end report generation, recommendations and text output.
"""

import json
import logging

import numpy as np
import pytest

from psychometric_core import engine
from psychometric_core.efa import FactorLoading
from psychometric_core.logging_config import setup_logging


def loading(item_id, value):
    return FactorLoading(item_id=item_id, loadings=(value,), communality=value ** 2,
                         primary_factor=0)


class TestGenerateReport:
    """Tests for generate_report()."""

    def test_identical_items(self, identical_items):
        report = engine.generate_report(identical_items, iterations=20, rng=0)

        assert report.reliability.cronbach_alpha == pytest.approx(1.0)
        assert report.reliability.interpretation == 'excellent'
        assert report.reliability.mcdonald_omega == pytest.approx(1.0)
        assert report.reliability.split_half == pytest.approx(1.0)
        assert report.factor_analysis.suggested_factors == 1
        assert report.validity.ave == pytest.approx(1.0)
        assert report.validity.convergent_ok
        assert report.validity.discriminant_ok
        assert report.validity.htmt is None
        assert any('redundant' in rec for rec in report.recommendations)
        assert (report.n_subjects, report.n_items) == (10, 4)

    def test_uncorrelated_likert_items(self, random_likert_data):
        report = engine.generate_report(random_likert_data, iterations=20, rng=0)

        assert report.reliability.cronbach_alpha < 0.3
        assert report.reliability.interpretation == 'unacceptable'
        assert report.recommendations[0].startswith('Reliability below 0.70')
        assert report.factor_analysis.suggested_factors == 1

    @pytest.mark.slow
    def test_two_factor_structure(self, two_factor_data):
        report = engine.generate_report(two_factor_data, iterations=30, rng=0)

        assert report.factor_analysis.suggested_factors == 2
        assert report.validity.htmt is not None
        assert report.validity.htmt.shape == (2, 2)
        assert report.validity.discriminant_ok
        assert report.validity.convergent_ok
        assert report.factorability.bartlett_pass
        assert len(report.item_analysis) == 6

    def test_item_ids_propagate(self, single_factor_data):
        ids = [f"Q{i}" for i in range(1, 7)]
        report = engine.generate_report(single_factor_data, item_ids=ids, iterations=10, rng=0)

        assert [fl.item_id for fl in report.factor_analysis.loadings] == ids
        assert [item.item_id for item in report.item_analysis] == ids

    def test_same_seed_same_report(self, single_factor_data):
        first = engine.generate_report(single_factor_data, iterations=10, rng=5)
        second = engine.generate_report(single_factor_data, iterations=10, rng=5)

        np.testing.assert_array_equal(first.factor_analysis.random_eigenvalues,
                                      second.factor_analysis.random_eigenvalues)
        assert first.recommendations == second.recommendations

    def test_input_not_mutated(self, single_factor_data):
        original = single_factor_data.copy()
        engine.generate_report(single_factor_data, iterations=5, rng=0)
        np.testing.assert_array_equal(single_factor_data, original)

    def test_invalid_input(self):
        with pytest.raises(ValueError):
            engine.generate_report([[1, 2, 3]])

    def test_to_dict_is_json_serialisable(self, single_factor_data):
        report = engine.generate_report(single_factor_data, iterations=5, rng=0)

        payload = report.to_dict()
        text = json.dumps(payload)

        assert payload['reliability']['interpretation'] == 'excellent'
        assert isinstance(payload['factor_analysis']['eigenvalues'], list)
        assert 'recommendations' in json.loads(text)

    def test_logs_progress(self, single_factor_data, caplog):
        caplog.set_level(logging.INFO, logger='psychometric_core')
        engine.generate_report(single_factor_data, iterations=5, rng=0)
        assert 'Report complete' in caplog.text


class TestRecommendations:
    """Tests for build_recommendations()."""

    @pytest.mark.unit
    def test_none_for_good_scale(self):
        loadings = [loading(f"item_{i}", 0.8) for i in range(5)]
        assert engine.build_recommendations(0.85, 0.64, loadings) == []

    @pytest.mark.unit
    def test_order_and_content(self):
        loadings = [loading('a', 0.8), loading('b', 0.3), loading('c', -0.2)]

        recs = engine.build_recommendations(0.6, 0.3, loadings,
                                            deletable_items=['c'], n_subjects=40)

        assert len(recs) == 5
        assert recs[0].startswith('Reliability below')
        assert recs[1].startswith('AVE')
        assert '2 item(s)' in recs[2] and 'b, c' in recs[2]
        assert recs[3].startswith('Removing c')
        assert 'n = 40' in recs[4] and '100' in recs[4]

    @pytest.mark.unit
    def test_high_alpha_flags_redundancy(self):
        loadings = [loading('a', 0.9), loading('b', 0.9)]
        recs = engine.build_recommendations(0.97, 0.81, loadings)
        assert recs == [recs[0]]
        assert 'redundant' in recs[0]

    @pytest.mark.unit
    def test_sample_size_scales_with_items(self):
        loadings = [loading(f"item_{i}", 0.8) for i in range(30)]
        recs = engine.build_recommendations(0.9, 0.64, loadings, n_subjects=120)
        assert len(recs) == 1
        assert '150' in recs[0]

    @pytest.mark.unit
    def test_alias(self, identical_items):
        assert engine.calculate_cronbach_alpha(identical_items) == pytest.approx(1.0)


class TestTextOutput:
    """Tests for format_report() and print_report()."""

    def test_print_report(self, identical_items, capsys):
        report = engine.generate_report(identical_items, iterations=5, rng=0)
        engine.print_report(report)
        out = capsys.readouterr().out

        assert 'PSYCHOMETRIC REPORT' in out
        assert "Cronbach's alpha: 1.000 (excellent)" in out
        assert 'RECOMMENDATIONS' in out

    @pytest.mark.unit
    def test_no_recommendations_message(self):
        report = engine.PsychometricReport(
            reliability=engine.ReliabilitySummary(0.85, 0.86, 0.84, 'good'),
            factor_analysis=engine.FactorAnalysisSummary(
                suggested_factors=1,
                eigenvalues=np.array([2.5]),
                variance_explained=np.array([62.5]),
                loadings=(loading('a', 0.8),),
            ),
            validity=engine.ValiditySummary(0.64, 0.88, True, True),
            recommendations=(),
        )
        assert 'None - scale meets all checked criteria' in engine.format_report(report)


class TestLoggingSetup:
    """Tests for setup_logging()."""

    @pytest.mark.unit
    def test_replaces_handlers(self, tmp_path):
        log_file = tmp_path / 'run.log'
        setup_logging(logging.DEBUG)
        logger = setup_logging(logging.INFO, log_file=str(log_file), format_style='detailed')

        stream_handlers = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert len(stream_handlers) == 1
        assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        assert logger.level == logging.INFO

        for handler in list(logger.handlers):
            if not isinstance(handler, logging.NullHandler):
                handler.close()
                logger.removeHandler(handler)
