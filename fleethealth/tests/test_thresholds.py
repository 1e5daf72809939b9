"""
Threshold Resolution Test Module

Contract normalization splits the fleet into OO and LOO; thresholds resolve
to the per-contract override when present and the default otherwise.
"""

import pytest

from fleethealth.models.enums import ContractType
from fleethealth.models.schemas import ThresholdConfig
from fleethealth.services.thresholds import normalize_contract, resolve_threshold


class TestNormalizeContract:

    @pytest.mark.parametrize('raw', ['OO', 'oo', ' Oo ', ContractType.OO])
    def test_owner_operator_variants(self, raw):
        assert normalize_contract(raw) is ContractType.OO

    @pytest.mark.parametrize('raw', ['LOO', 'MCLOO', 'CPM', '', None])
    def test_everything_else_is_lease(self, raw):
        """Unknown, blank and missing contract strings resolve to LOO."""
        assert normalize_contract(raw) is ContractType.LOO


class TestResolveThreshold:

    def test_override_wins(self):
        config = ThresholdConfig(default=1.5, by_contract={'OO': 1.8})
        assert resolve_threshold(config, 'oo') == 1.8

    def test_missing_override_falls_back_to_default(self):
        config = ThresholdConfig(default=1.5, by_contract={'OO': 1.8})
        assert resolve_threshold(config, 'LOO') == 1.5
        assert resolve_threshold(config, 'MCLOO') == 1.5

    def test_lease_override_applies_to_unknown_contracts(self):
        config = ThresholdConfig(default=6000, by_contract={'LOO': 6500})
        assert resolve_threshold(config, None) == 6500

    def test_missing_config_resolves_to_zero(self):
        assert resolve_threshold(None, 'OO') == 0.0
