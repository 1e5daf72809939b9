"""Drop-risk scoring tests."""

import pytest

from fleethealth.models.enums import FlagRule
from fleethealth.models.schemas import DriverFlag
from fleethealth.services.driver_flags import DEFAULT_DRIVER_HEALTH_SETTINGS
from fleethealth.services.drop_risk import calculate_drop_risk


def _flag(rule: FlagRule, positive: bool = False) -> DriverFlag:
    return DriverFlag(rule=rule, label=rule.value, color='#000000', positive=positive)


@pytest.fixture
def weights():
    return dict(DEFAULT_DRIVER_HEALTH_SETTINGS.weights)


class TestDropRisk:

    def test_default_weights_total_one_hundred(self, weights):
        assert sum(weights.values()) == 100

    def test_weighted_share(self, weights):
        flags = [_flag(FlagRule.NEGATIVE), _flag(FlagRule.LOW_RPM)]
        assert calculate_drop_risk(flags, weights) == pytest.approx(25.0)

    def test_no_flags_scores_zero(self, weights):
        assert calculate_drop_risk([], weights) == 0.0

    def test_positive_flag_offsets_negative(self, weights):
        """A veteran flag (20) outweighs a negative balance (15) and floors at 0."""
        flags = [_flag(FlagRule.NEGATIVE), _flag(FlagRule.TENURE, positive=True)]
        assert calculate_drop_risk(flags, weights) == 0.0

    def test_positive_flag_reduces_score(self, weights):
        flags = [
            _flag(FlagRule.DISPATCHER_HOPPER),
            _flag(FlagRule.NEGATIVE),
            _flag(FlagRule.TENURE, positive=True),
        ]
        assert calculate_drop_risk(flags, weights) == pytest.approx(15.0)

    def test_weighted_by_rule_id_not_label(self):
        flag = DriverFlag(rule=FlagRule.NEGATIVE, label='Custom Label', color='#000000')
        assert calculate_drop_risk([flag], {'negative': 10, 'lowRpm': 10}) == pytest.approx(50.0)

    def test_zero_weights_score_zero(self):
        assert calculate_drop_risk([_flag(FlagRule.NEGATIVE)], {'negative': 0}) == 0.0

    def test_score_bounded(self):
        flags = [_flag(rule) for rule in FlagRule]
        assert calculate_drop_risk(flags, {'negative': 10}) == 100.0
