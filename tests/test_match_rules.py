"""Tests for the write rules evaluated on every match write.

The rules see only plain documents, so these tests build before/after dicts
directly and check which writes are accepted.
"""

import copy
from datetime import datetime, timezone

import pytest

from app.data.game_config import GameConfig
from app.errors import RuleViolationError
from app.services.match_rules import check_create, check_write

CONFIG = GameConfig()
NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _card(i: int, authenticity: str = "authentic", value: int = 1) -> dict:
    return {"memory": f"m{i}", "authenticity": authenticity, "value": value}


def _doc(**overrides) -> dict:
    deck = [_card(i) for i in range(6)]
    deck[1] = _card(1, "corrupted", -1)
    doc = {
        "id": "ROOM42",
        "status": "playing",
        "players": {"1": {"integrity": 0, "items": []}, "2": {"integrity": 0, "items": []}},
        "order_players": ["1", "2"],
        "turn": 0,
        "turn_state": "draw",
        "memory_deck": deck,
        "cards_drawn": 3,
        "table_cards": copy.deepcopy(deck[:3]),
        "current_card": None,
        "selected_card_index": None,
        "card_initiator": None,
        "current_multiplier": 1,
        "revealed_memories": [],
        "winner": None,
        "win_reason": None,
        "created_at": NOW,
        "last_update": NOW,
        "finished_at": None,
    }
    doc.update(overrides)
    return doc


def _waiting(*players: str) -> dict:
    return _doc(
        status="waiting",
        players={p: {"integrity": 0, "items": []} for p in players},
        order_players=list(players),
        memory_deck=[],
        table_cards=[],
        cards_drawn=0,
    )


def _selected(index: int = 0, actor: str = "1") -> dict:
    before = _doc()
    return _doc(
        turn_state="decide",
        current_card=copy.deepcopy(before["table_cards"][index]),
        selected_card_index=index,
        card_initiator=actor,
    )


def _claimed(before: dict) -> dict:
    """The legal resolution of ``before`` (deciding on slot 0, value +1)."""
    after = copy.deepcopy(before)
    after["players"]["1"]["integrity"] += 1
    after["table_cards"][0] = copy.deepcopy(before["memory_deck"][3])
    after["cards_drawn"] = 4
    after["revealed_memories"] = ["m0"]
    after.update(
        current_card=None,
        selected_card_index=None,
        card_initiator=None,
        current_multiplier=1,
        turn=1,
        turn_state="draw",
    )
    return after


class TestSelect:
    def test_legal_select(self):
        assert check_write(_doc(), _selected(), "1", CONFIG) == "select"

    def test_select_out_of_turn(self):
        before = _doc()
        after = _selected(actor="2")
        with pytest.raises(RuleViolationError, match="not the acting player's turn"):
            check_write(before, after, "2", CONFIG)

    def test_select_cannot_touch_integrity(self):
        after = _selected()
        after["players"]["1"]["integrity"] = 5
        with pytest.raises(RuleViolationError, match="fields not allowed"):
            check_write(_doc(), after, "1", CONFIG)

    def test_current_card_must_come_from_table(self):
        after = _selected()
        after["current_card"] = _card(5)
        with pytest.raises(RuleViolationError):
            check_write(_doc(), after, "1", CONFIG)

    def test_select_needs_a_full_match(self):
        lone = {"players": {"1": {"integrity": 0, "items": []}}, "order_players": ["1"]}
        before = _doc(**lone)
        after = {**_selected(), **copy.deepcopy(lone)}
        with pytest.raises(RuleViolationError, match="needs exactly 2 players"):
            check_write(before, after, "1", CONFIG)


class TestReject:
    def test_legal_reject(self):
        before = _selected()
        after = copy.deepcopy(before)
        after.update(turn_state="opponent_decide", current_multiplier=3)
        assert check_write(before, after, "1", CONFIG) == "reject"

    def test_reject_must_triple(self):
        before = _selected()
        after = copy.deepcopy(before)
        after.update(turn_state="opponent_decide", current_multiplier=2)
        with pytest.raises(RuleViolationError):
            check_write(before, after, "1", CONFIG)

    def test_only_initiator_rejects(self):
        before = _selected()
        after = copy.deepcopy(before)
        after.update(turn_state="opponent_decide", current_multiplier=3)
        with pytest.raises(RuleViolationError):
            check_write(before, after, "2", CONFIG)


class TestResolve:
    def test_legal_claim(self):
        before = _selected()
        assert check_write(before, _claimed(before), "1", CONFIG) == "resolve"

    def test_wrong_delta(self):
        before = _selected()
        after = _claimed(before)
        after["players"]["1"]["integrity"] = 3
        with pytest.raises(RuleViolationError, match="integrity must change by 1"):
            check_write(before, after, "1", CONFIG)

    def test_points_on_wrong_player(self):
        before = _selected()
        after = _claimed(before)
        after["players"]["1"]["integrity"] = 0
        after["players"]["2"]["integrity"] = 1
        with pytest.raises(RuleViolationError, match="wrong player"):
            check_write(before, after, "1", CONFIG)

    def test_opponent_claim_after_reject(self):
        before = _selected()
        before.update(turn_state="opponent_decide", current_multiplier=3)
        after = _claimed(before)
        after["players"]["1"]["integrity"] = 0
        after["players"]["2"]["integrity"] = 3
        assert check_write(before, after, "2", CONFIG) == "resolve"

    def test_initiator_cannot_answer_own_reject(self):
        before = _selected()
        before.update(turn_state="opponent_decide", current_multiplier=3)
        after = _claimed(before)
        after["players"]["1"]["integrity"] = 3
        with pytest.raises(RuleViolationError, match="only the opponent"):
            check_write(before, after, "1", CONFIG)

    def test_turn_must_advance_by_one(self):
        before = _selected()
        after = _claimed(before)
        after["turn"] = 0
        with pytest.raises(RuleViolationError, match="turn must advance"):
            check_write(before, after, "1", CONFIG)

    def test_table_must_be_refreshed_from_supply(self):
        before = _selected()
        after = _claimed(before)
        after["table_cards"][0] = copy.deepcopy(before["memory_deck"][5])
        with pytest.raises(RuleViolationError, match="refreshed"):
            check_write(before, after, "1", CONFIG)

    def test_corrupted_card_is_not_logged(self):
        before = _selected(index=1)
        after = copy.deepcopy(before)
        after["players"]["1"]["integrity"] = -1
        after["table_cards"][1] = copy.deepcopy(before["memory_deck"][3])
        after["cards_drawn"] = 4
        after["revealed_memories"] = ["m1"]
        after.update(
            current_card=None,
            selected_card_index=None,
            card_initiator=None,
            turn=1,
            turn_state="draw",
        )
        with pytest.raises(RuleViolationError, match="revealed memories"):
            check_write(before, after, "1", CONFIG)

    def test_finishing_write_records_result(self):
        before = _selected()
        after = _claimed(before)
        after.update(status="finished", winner="1", win_reason=None)
        with pytest.raises(RuleViolationError, match="record its result"):
            check_write(before, after, "1", CONFIG)


class TestGeneralRules:
    def test_deck_is_immutable(self):
        after = _selected()
        after["memory_deck"] = after["memory_deck"][::-1]
        with pytest.raises(RuleViolationError):
            check_write(_doc(), after, "1", CONFIG)

    def test_unrecognized_write(self):
        after = _doc(turn=1)
        with pytest.raises(RuleViolationError, match="any legal transition"):
            check_write(_doc(), after, "1", CONFIG)

    def test_finished_match_only_accepts_leaving(self):
        before = _doc(status="finished", winner="1", win_reason="deck_exhausted", finished_at=NOW)
        with pytest.raises(RuleViolationError, match="only accepts players leaving"):
            check_write(before, _doc(**{**before, "turn": 1}), "1", CONFIG)

        after = copy.deepcopy(before)
        del after["players"]["1"]
        after["order_players"] = ["2"]
        assert check_write(before, after, "1", CONFIG) == "leave"


class TestLobbyWrites:
    def test_join(self):
        before = _waiting("1")
        after = _waiting("1", "2")
        assert check_write(before, after, "2", CONFIG) == "join"

    def test_join_full_room(self):
        before = _waiting("1", "2")
        after = _waiting("1", "2", "3")
        with pytest.raises(RuleViolationError):
            check_write(before, after, "3", CONFIG)

    def test_cannot_join_after_waiting(self):
        before = {**_waiting("1"), "status": "intro"}
        after = {**_waiting("1", "2"), "status": "intro"}
        with pytest.raises(RuleViolationError, match="any legal transition"):
            check_write(before, after, "2", CONFIG)

    def test_start_by_creator_with_two_players(self):
        before = _waiting("1", "2")
        after = {**before, "status": "intro"}
        assert check_write(before, after, "1", CONFIG) == "start"
        with pytest.raises(RuleViolationError, match="creator"):
            check_write(before, after, "2", CONFIG)

    def test_start_needs_two_players(self):
        before = _waiting("1")
        with pytest.raises(RuleViolationError, match="exactly 2 players"):
            check_write(before, {**before, "status": "intro"}, "1", CONFIG)

    def test_last_player_deletes_waiting_room(self):
        assert check_write(_waiting("1"), None, "1", CONFIG) == "leave"

    def test_cannot_delete_room_with_other_players(self):
        with pytest.raises(RuleViolationError, match="empty waiting match"):
            check_write(_waiting("1", "2"), None, "1", CONFIG)


class TestLeaveDuringPlay:
    def _left(self, before: dict, leaver: str = "1") -> dict:
        after = copy.deepcopy(before)
        del after["players"][leaver]
        after["order_players"] = [p for p in before["order_players"] if p != leaver]
        after["turn"] = 0
        return after

    def test_leaving_puts_pending_card_back(self):
        before = _selected()
        before.update(turn_state="opponent_decide", current_multiplier=3)
        after = self._left(before)
        after.update(
            turn_state="draw",
            current_card=None,
            selected_card_index=None,
            card_initiator=None,
            current_multiplier=1,
        )
        assert check_write(before, after, "1", CONFIG) == "leave"

    def test_leaving_cannot_hand_over_the_card(self):
        before = _selected()
        after = self._left(before)
        after["card_initiator"] = "2"
        with pytest.raises(RuleViolationError):
            check_write(before, after, "1", CONFIG)


class TestCheckCreate:
    def test_accepts_fresh_room(self):
        doc = _waiting("7")
        check_create(doc, "7", CONFIG)

    def test_rejects_room_with_someone_else(self):
        doc = _waiting("7")
        with pytest.raises(RuleViolationError):
            check_create(doc, "8", CONFIG)
