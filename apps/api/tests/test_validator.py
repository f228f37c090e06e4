"""
Protocol Validator Tests

All rules run on every candidate and every violation is reported.
"""

import pytest

from services.recovery.schemas import EquipmentPreference, RecoveryProtocol
from services.recovery.validator import ProtocolValidator
from tests.recovery_helpers import protocol_dict

BODYWEIGHT_SHOULDER = ["wall angel", "sleeper stretch", "shoulder rolls", "doorway chest stretch"]


def _protocol(names, **kwargs) -> RecoveryProtocol:
    return RecoveryProtocol.model_validate(protocol_dict(names, **kwargs))


@pytest.fixture
def validator(catalog):
    return ProtocolValidator(catalog)


class TestAccepted:
    def test_scenario_c_bodyweight_shoulder_protocol_accepted(self, validator, catalog):
        outcome = validator.validate(_protocol(BODYWEIGHT_SHOULDER), EquipmentPreference.BODYWEIGHT_ONLY)
        assert outcome.accepted is True
        assert outcome.reasons == []
        assert [e.canonical_name for e in outcome.resolved] == BODYWEIGHT_SHOULDER
        assert outcome.resolved[0] == catalog.resolve("wall angel")

    def test_names_match_case_insensitively(self, validator):
        names = ["Wall Angel", "  SLEEPER STRETCH ", "Shoulder Rolls", "doorway chest stretch"]
        outcome = validator.validate(_protocol(names), EquipmentPreference.BODYWEIGHT_ONLY)
        assert outcome.accepted is True

    @pytest.mark.parametrize("pref", [EquipmentPreference.HAS_BANDS, EquipmentPreference.UNKNOWN])
    def test_band_exercise_allowed_without_bodyweight_only(self, validator, pref):
        names = BODYWEIGHT_SHOULDER[:3] + ["band external rotation"]
        assert validator.validate(_protocol(names), pref).accepted is True

    def test_six_exercises_accepted(self, validator):
        names = BODYWEIGHT_SHOULDER + ["pendulum swing", "wall slide"]
        assert validator.validate(_protocol(names), EquipmentPreference.BODYWEIGHT_ONLY).accepted is True


class TestRejected:
    def test_scenario_b_band_exercise_for_bodyweight_user(self, validator):
        names = BODYWEIGHT_SHOULDER[:3] + ["band external rotation"]
        outcome = validator.validate(_protocol(names), EquipmentPreference.BODYWEIGHT_ONLY)
        assert outcome.accepted is False
        assert len(outcome.reasons) == 1
        assert "band external rotation" in outcome.reasons[0]

    def test_every_band_violator_is_reported(self, validator):
        names = BODYWEIGHT_SHOULDER[:2] + ["band external rotation", "band pull-apart"]
        outcome = validator.validate(_protocol(names), EquipmentPreference.BODYWEIGHT_ONLY)
        assert len(outcome.reasons) == 2

    @pytest.mark.parametrize("count", [3, 7])
    def test_exercise_count_out_of_range(self, validator, count):
        names = (BODYWEIGHT_SHOULDER + ["pendulum swing", "wall slide", "wall push-up"])[:count]
        outcome = validator.validate(_protocol(names), EquipmentPreference.BODYWEIGHT_ONLY)
        assert outcome.accepted is False
        assert any(f"{count} exercises" in r for r in outcome.reasons)

    def test_every_unknown_name_is_reported(self, validator):
        names = ["wall angel", "wall angels", "shoulder circles", "shoulder rolls"]
        outcome = validator.validate(_protocol(names), EquipmentPreference.HAS_BANDS)
        assert outcome.accepted is False
        assert outcome.reasons == [
            "Exercise not in catalog: wall angels",
            "Exercise not in catalog: shoulder circles",
        ]
        assert outcome.resolved[1] is None

    def test_blank_disclaimer_rejected(self, validator):
        outcome = validator.validate(_protocol(BODYWEIGHT_SHOULDER, disclaimer="   "), EquipmentPreference.HAS_BANDS)
        assert outcome.accepted is False
        assert outcome.reasons == ["Protocol disclaimer is empty"]

    def test_all_reasons_collected_together(self, validator):
        names = ["made up stretch", "band pull-apart", "wall angel"]
        outcome = validator.validate(_protocol(names, disclaimer=""), EquipmentPreference.BODYWEIGHT_ONLY)
        assert outcome.accepted is False
        # count, unknown name, band violator, disclaimer
        assert len(outcome.reasons) == 4
