"""
Recovery Intake Orchestrator Tests

One turn in, exactly one outcome out. The collaborator is an AsyncMock.
"""

import json

import pytest
from unittest.mock import AsyncMock

from services.recovery.errors import ProtocolValidationFailed, UpstreamFailure
from services.recovery.llm import GenerationError
from services.recovery.orchestrator import (
    Continue,
    Escalation,
    IntakeState,
    ProtocolReady,
    RecoveryIntakeOrchestrator,
    to_response,
)
from services.recovery.schemas import EquipmentPreference, RedFlagSeverity
from tests.recovery_helpers import assistant, protocol_dict, user

BODYWEIGHT_SHOULDER = ["wall angel", "sleeper stretch", "shoulder rolls", "doorway chest stretch"]
WITH_BAND = ["wall angel", "sleeper stretch", "shoulder rolls", "band external rotation"]


@pytest.fixture
def orchestrator(mock_generator, catalog):
    return RecoveryIntakeOrchestrator(generator=mock_generator, catalog=catalog)


class TestEscalation:
    @pytest.mark.asyncio
    async def test_scenario_a_high_flag_short_circuits(self, orchestrator, mock_generator):
        result = await orchestrator.handle_turn([], "my pain is a 10 out of 10 and I can't walk")

        assert isinstance(result, Escalation)
        assert result.state == IntakeState.ESCALATED
        assert result.red_flags[0].severity == RedFlagSeverity.HIGH
        mock_generator.generate.assert_not_awaited()

        response = to_response(result)
        assert response.should_proceed is False
        assert response.has_red_flags is True
        assert response.protocol is None

    @pytest.mark.asyncio
    async def test_high_flag_in_earlier_user_message_escalates(self, orchestrator, mock_generator):
        history = [user("I have numbness down my arm"), assistant("When did this start?")]
        result = await orchestrator.handle_turn(history, "two days ago")
        assert isinstance(result, Escalation)
        mock_generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_yes_to_assistant_safety_question_escalates(self, orchestrator, mock_generator):
        history = [
            user("my lower back hurts"),
            assistant("Do you have any numbness or loss of bladder control?"),
        ]
        result = await orchestrator.handle_turn(history, "Yes")
        assert isinstance(result, Escalation)
        assert result.red_flags[0].severity == RedFlagSeverity.HIGH
        mock_generator.generate.assert_not_awaited()


class TestContinue:
    @pytest.mark.asyncio
    async def test_scenario_d_prose_stays_gathering(self, orchestrator, mock_generator):
        mock_generator.generate.return_value = "Thanks. Does it hurt more when you lift your arm?"

        result = await orchestrator.handle_turn([], "my shoulder hurts when I reach overhead")

        assert isinstance(result, Continue)
        assert result.state == IntakeState.GATHERING
        assert result.message == "Thanks. Does it hurt more when you lift your arm?"
        assert result.quick_replies == []
        mock_generator.generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_quick_replies_pass_through(self, orchestrator, mock_generator):
        mock_generator.generate.return_value = json.dumps(
            {"message": "When did this start?", "quickReplies": ["Today", "This week", "Longer"]}
        )
        result = await orchestrator.handle_turn([], "my knee aches")
        assert isinstance(result, Continue)
        assert result.quick_replies == ["Today", "This week", "Longer"]

        response = to_response(result)
        assert response.ai_message == "When did this start?"
        assert response.should_proceed is True
        assert response.requires_paywall is False

    @pytest.mark.asyncio
    async def test_moderate_flag_rides_along(self, orchestrator, mock_generator):
        result = await orchestrator.handle_turn([], "I get some tingling in my fingers")
        assert isinstance(result, Continue)
        assert [f.severity for f in result.red_flags] == [RedFlagSeverity.MODERATE]
        mock_generator.generate.assert_awaited_once()

        response = to_response(result)
        assert response.has_red_flags is True
        assert response.should_proceed is True


class TestProtocol:
    @pytest.mark.asyncio
    async def test_scenario_b_band_exercise_for_bodyweight_user_fails_closed(self, orchestrator, mock_generator):
        mock_generator.generate.return_value = json.dumps(protocol_dict(WITH_BAND))

        with pytest.raises(ProtocolValidationFailed) as exc_info:
            await orchestrator.handle_turn(
                [],
                "my shoulder hurts when I reach overhead",
                equipment_preference=EquipmentPreference.BODYWEIGHT_ONLY,
            )

        assert any("band external rotation" in r for r in exc_info.value.reasons)

    @pytest.mark.asyncio
    async def test_scenario_c_bodyweight_protocol_accepted(self, orchestrator, mock_generator, catalog):
        mock_generator.generate.return_value = json.dumps(protocol_dict(BODYWEIGHT_SHOULDER))

        result = await orchestrator.handle_turn(
            [],
            "my shoulder hurts when I reach overhead",
            equipment_preference=EquipmentPreference.BODYWEIGHT_ONLY,
        )

        assert isinstance(result, ProtocolReady)
        assert result.state == IntakeState.PROTOCOL_ACCEPTED
        assert result.requires_gate is True
        assert [e.catalog_id for e in result.protocol.exercises] == [
            catalog.resolve(n).id for n in BODYWEIGHT_SHOULDER
        ]

        response = to_response(result)
        assert response.requires_paywall is True
        assert response.protocol.exercises[0].name == "wall angel"

    @pytest.mark.asyncio
    async def test_accepted_protocol_is_otherwise_unchanged(self, orchestrator, mock_generator):
        data = protocol_dict(BODYWEIGHT_SHOULDER)
        mock_generator.generate.return_value = json.dumps(data)

        result = await orchestrator.handle_turn([], "shoulder", equipment_preference=EquipmentPreference.HAS_BANDS)

        assert result.protocol.description == data["description"]
        assert result.protocol.disclaimer == data["disclaimer"]
        assert result.protocol.exercises[1].instructions == data["exercises"][1]["instructions"]

    @pytest.mark.asyncio
    async def test_equipment_inferred_from_conversation(self, orchestrator, mock_generator):
        mock_generator.generate.return_value = json.dumps(protocol_dict(WITH_BAND))
        history = [user("my shoulder hurts"), assistant("Do you have bands?")]

        with pytest.raises(ProtocolValidationFailed):
            await orchestrator.handle_turn(history, "no, bodyweight only")

    @pytest.mark.asyncio
    async def test_bodyweight_instructions_omit_band_exercises(self, orchestrator, mock_generator):
        await orchestrator.handle_turn([], "my shoulder is stiff", equipment_preference=EquipmentPreference.BODYWEIGHT_ONLY)

        instructions = mock_generator.generate.await_args.args[0]
        assert "wall angel" in instructions
        assert "band external rotation" not in instructions

    @pytest.mark.asyncio
    async def test_history_and_utterance_forwarded(self, orchestrator, mock_generator):
        history = [user("my hip is tight"), assistant("Since when?")]
        await orchestrator.handle_turn(history, "a week")

        _, sent_history, sent_utterance = mock_generator.generate.await_args.args
        assert sent_history == history
        assert sent_utterance == "a week"


class TestUpstreamFailure:
    @pytest.mark.asyncio
    async def test_generation_error_becomes_upstream_failure(self, catalog):
        generator = AsyncMock()
        generator.generate = AsyncMock(side_effect=GenerationError("timed out"))
        orchestrator = RecoveryIntakeOrchestrator(generator=generator, catalog=catalog)

        with pytest.raises(UpstreamFailure) as exc_info:
            await orchestrator.handle_turn([], "my knee aches")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("output", ["", "   \n"])
    async def test_empty_output_is_upstream_failure(self, orchestrator, mock_generator, output):
        mock_generator.generate.return_value = output
        with pytest.raises(UpstreamFailure):
            await orchestrator.handle_turn([], "my knee aches")
