"""Tests for the wire protocol."""

import json
import time

import pytest

from dicetrain.errors import ProtocolError
from dicetrain.game.machine import GameStateMachine
from dicetrain.game.state import GameStatus, Phase, PlayerConfig
from dicetrain.messages.protocol import (
    ACTION_TYPES,
    PAYLOAD_TYPES,
    ContinueAction,
    GameStartInfo,
    JoinRequest,
    MessageType,
    PlayCardAction,
    RerollAction,
    create_message,
    decode_payload,
    encode_message,
    parse_envelope,
)


class TestMessageTypes:
    def test_every_type_has_a_payload(self):
        assert set(PAYLOAD_TYPES) == set(MessageType)

    def test_payload_types_are_distinct(self):
        assert len(set(PAYLOAD_TYPES.values())) == len(PAYLOAD_TYPES)

    def test_actions_are_client_intents(self):
        assert ACTION_TYPES <= set(MessageType)
        assert {t.value for t in ACTION_TYPES} == {
            t.value for t in MessageType if t.value.startswith("action_")
        }

    def test_wire_values(self):
        assert MessageType.JOIN_REQUEST.value == "join_request"
        assert MessageType.GAME_STATE.value == "game_state"
        assert MessageType.ACTION_END_TURN.value == "action_end_turn"
        assert MessageType("pong") == MessageType.PONG


class TestCreateMessage:
    def test_dataclass_payload(self):
        before = int(time.time() * 1000)
        message = create_message(MessageType.ACTION_REROLL, RerollAction(die_index=2))
        assert message["type"] == "action_reroll"
        assert message["payload"] == {"die_index": 2}
        assert isinstance(message["timestamp"], int)
        assert message["timestamp"] >= before

    def test_empty_payload(self):
        assert create_message(MessageType.ACTION_ROLL)["payload"] == {}

    def test_dict_payload(self):
        message = create_message(MessageType.JOIN_REJECTED, {"reason": "Lobby is full"})
        assert message["payload"] == {"reason": "Lobby is full"}

    def test_rejects_other_payloads(self):
        with pytest.raises(TypeError):
            create_message(MessageType.ACTION_ROLL, "roll")

    def test_nested_payload_serializes(self):
        info = GameStartInfo([PlayerConfig("peer-1", "Ann", is_local=True)], 5)
        data = json.loads(encode_message(MessageType.GAME_START, info))
        assert data["payload"]["player_configs"][0]["peer_id"] == "peer-1"
        assert data["payload"]["round_count"] == 5


class TestParseEnvelope:
    def test_parses_json_text(self):
        envelope = parse_envelope(encode_message(MessageType.ACTION_PLAY_CARD, PlayCardAction(1)))
        assert envelope.type == MessageType.ACTION_PLAY_CARD
        assert envelope.payload == {"card_index": 1}
        assert envelope.timestamp > 0

    def test_missing_payload_is_empty(self):
        assert parse_envelope({"type": "action_roll"}).payload == {}

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            "42",
            json.dumps({"payload": {}}),
            json.dumps({"type": 5}),
            json.dumps({"type": "teleport"}),
            json.dumps({"type": "action_roll", "payload": [1]}),
        ],
    )
    def test_bad_envelopes(self, raw):
        with pytest.raises(ProtocolError):
            parse_envelope(raw)


class TestDecodePayload:
    def test_decodes_into_dataclass(self):
        payload = decode_payload(MessageType.JOIN_REQUEST, {"name": "Ann", "password": None})
        assert payload == JoinRequest(name="Ann", password=None)

    def test_optional_field_defaults(self):
        assert decode_payload(MessageType.JOIN_REQUEST, {"name": "Ann"}).password is None

    def test_enum_field(self):
        payload = decode_payload(MessageType.ACTION_CONTINUE, {"to_phase": "shop"})
        assert payload == ContinueAction(Phase.SHOP)

    def test_missing_field(self):
        with pytest.raises(ProtocolError):
            decode_payload(MessageType.ACTION_REROLL, {})

    def test_wrong_scalar_type(self):
        with pytest.raises(ProtocolError):
            decode_payload(MessageType.ACTION_REROLL, {"die_index": "2"})

    def test_bool_is_not_an_int(self):
        with pytest.raises(ProtocolError):
            decode_payload(MessageType.ACTION_PLAY_CARD, {"card_index": True})

    def test_bad_enum_value(self):
        with pytest.raises(ProtocolError):
            decode_payload(MessageType.ACTION_CONTINUE, {"to_phase": "teleport"})

    def test_game_state_round_trip(self):
        machine = GameStateMachine()
        machine.initialize([PlayerConfig("a", "A"), PlayerConfig("b", "B")], 2)
        snapshot = machine.snapshot()
        wire = json.loads(encode_message(MessageType.GAME_STATE, snapshot))
        decoded = decode_payload(MessageType.GAME_STATE, wire["payload"])
        assert decoded == snapshot
        assert decoded.status == GameStatus.DRAFTING
