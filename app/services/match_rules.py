"""Write rules for match documents.

A second, independent enforcement of the match state machine, evaluated by
the store on every write (see ``match_store.atomic_update``).  The rules only
look at the document before and after the write plus the acting player; they
never trust the service code that produced the write.

A write is accepted only if it matches exactly one of the legal shapes below.
Each shape declares which fields it may touch and the predicates the
transition must satisfy.  Keep these in lock-step with ``turn_engine`` and
``match_service``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from app.data.game_config import GameConfig
from app.errors import InvalidIndexError, RuleViolationError
from app.models.card import cards_from_dicts
from app.services.table_service import refresh_table

logger = logging.getLogger(__name__)

Doc = dict[str, Any]
# Returns an error message, or None if the predicate holds
Check = Callable[[Doc, Doc, str, GameConfig], "str | None"]

ACTIVE_CARD_STATES = {"decide", "opponent_decide"}

# Fields maintained by the store itself; always writable
STORE_FIELDS = frozenset({"last_update"})
# Fields no write may ever change
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


# ---------------------------------------------------------------------------
# Shape predicates
# ---------------------------------------------------------------------------


def _actor_is_creator(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if not before["order_players"] or before["order_players"][0] != actor:
        return "only the match creator can start the match"
    return None


def _room_is_full(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if len(before["order_players"]) != config.max_players:
        return f"match needs exactly {config.max_players} players"
    return None


def _actor_appended(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if after["order_players"] != before["order_players"] + [actor]:
        return "joining player must be appended to the turn order"
    if len(after["order_players"]) > config.max_players:
        return "match is full"
    if after["players"].get(actor) != {"integrity": config.starting_integrity, "items": []}:
        return "joining player must start with a fresh record"
    if any(after["players"].get(p) != before["players"][p] for p in before["players"]):
        return "joining must not change other players"
    return None


def _actor_removed(before: Doc, after: Doc | None, actor: str, config: GameConfig) -> str | None:
    if after is None:
        if before["status"] != "waiting" or before["order_players"] != [actor]:
            return "only an empty waiting match can be deleted"
        return None
    if actor in after["players"] or actor in after["order_players"]:
        return "leaving player must be removed from the match"
    remaining = [p for p in before["order_players"] if p != actor]
    if after["order_players"] != remaining:
        return "leaving must keep the remaining turn order"
    if any(after["players"].get(p) != before["players"][p] for p in remaining):
        return "leaving must not change other players"
    card_fields = ("current_card", "selected_card_index", "card_initiator", "current_multiplier", "turn_state")
    if any(after[f] != before[f] for f in card_fields) and (
        after["current_card"] is not None
        or after["selected_card_index"] is not None
        or after["card_initiator"] is not None
        or after["current_multiplier"] != 1
        or after["turn_state"] != "draw"
    ):
        return "a pending card may only be put back, returning the turn to draw"
    return None


def _actor_in_match(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if actor not in before["players"]:
        return "acting player is not part of this match"
    return None


def _table_dealt_from_deck(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if before["memory_deck"]:
        return "deck was already generated"
    deck = after["memory_deck"]
    if len(deck) < config.table_size:
        return "deck is too small to set the table"
    if after["table_cards"] != deck[: config.table_size]:
        return "table must be dealt from the top of the deck"
    if after["cards_drawn"] != config.table_size:
        return "cards drawn must match the dealt table"
    if after["turn"] != 0 or after["turn_state"] != "draw" or after["current_multiplier"] != 1:
        return "match must start on the first player's draw"
    return None


def _actor_has_turn(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    order = before["order_players"]
    if not (0 <= before["turn"] < len(order)) or order[before["turn"]] != actor:
        return "it is not the acting player's turn"
    return None


def _card_taken_from_table(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    index = after["selected_card_index"]
    if index is None or not (0 <= index < len(before["table_cards"])):
        return "selected index is not on the table"
    if after["current_card"] != before["table_cards"][index]:
        return "current card must be the selected table card"
    if after["card_initiator"] != actor:
        return "selecting player must become the initiator"
    if after["current_multiplier"] != 1:
        return "multiplier must be 1 while deciding"
    return None


def _actor_is_initiator(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if before["card_initiator"] != actor:
        return "only the initiator can decide on the card"
    return None


def _multiplier_raised(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if after["current_multiplier"] != config.reject_multiplier:
        return f"multiplier must be {config.reject_multiplier} after a reject"
    return None


def _resolver_role(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if actor not in before["players"]:
        return "acting player is not part of this match"
    if before["turn_state"] == "decide" and actor != before["card_initiator"]:
        return "only the initiator can claim while deciding"
    if before["turn_state"] == "opponent_decide" and actor == before["card_initiator"]:
        return "only the opponent can answer a rejected card"
    return None


def _integrity_delta(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    card = before["current_card"]
    if card is None:
        return "no card in play"
    points = card["value"] * before["current_multiplier"]
    if before["turn_state"] == "decide":
        targets = {before["card_initiator"]}
    else:
        targets = {actor, before["card_initiator"]}

    if set(after["players"]) != set(before["players"]):
        return "players cannot change during a resolution"
    changed = {
        p: after["players"][p]["integrity"] - before["players"][p]["integrity"]
        for p in before["players"]
        if after["players"][p] != before["players"][p]
    }
    if points == 0:
        return "zero-value card must not change integrity" if changed else None
    if len(changed) != 1:
        return "exactly one player's integrity must change"
    target, delta = next(iter(changed.items()))
    if target not in targets:
        return "points applied to the wrong player"
    if delta != points:
        return f"integrity must change by {points}, changed by {delta}"
    if after["players"][target]["items"] != before["players"][target]["items"]:
        return "items cannot change during a resolution"
    return None


def _table_refreshed(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    try:
        table, drawn = refresh_table(
            cards_from_dicts(before["table_cards"]),
            before["selected_card_index"] if before["selected_card_index"] is not None else -1,
            cards_from_dicts(before["memory_deck"]),
            before["cards_drawn"],
        )
    except InvalidIndexError:
        return "selected card index is not on the table"
    if [c.to_dict() for c in table] != after["table_cards"] or drawn != after["cards_drawn"]:
        return "table must be refreshed from the supply"
    return None


def _memory_logged(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    card = before["current_card"]
    expected = list(before["revealed_memories"])
    if card is not None and card["authenticity"] == "authentic":
        expected.append(card["memory"])
    if after["revealed_memories"] != expected:
        return "revealed memories must record exactly the resolved authentic card"
    return None


def _turn_closed(before: Doc, after: Doc, actor: str, config: GameConfig) -> str | None:
    if (
        after["current_card"] is not None
        or after["selected_card_index"] is not None
        or after["card_initiator"] is not None
        or after["current_multiplier"] != 1
    ):
        return "card fields must be cleared after a resolution"
    if after["status"] == "finished":
        if after["finished_at"] is None or after["win_reason"] is None:
            return "finished match must record its result"
        return None
    n = len(before["order_players"])
    if after["turn"] != (before["turn"] + 1) % n or after["turn_state"] != "draw":
        return "turn must advance by exactly one to the draw phase"
    return None


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WriteShape:
    name: str
    # (status, turn_state) pairs before/after; None turn_state means "any"
    status_from: frozenset[str]
    status_to: frozenset[str]
    allowed_fields: frozenset[str]
    checks: tuple[Check, ...]
    turn_state_from: frozenset[str] | None = None
    turn_state_to: frozenset[str] | None = None
    membership: str | None = None  # "join" | "leave" | None (unchanged)

    def applies(self, before: Doc, after: Doc | None, actor: str) -> bool:
        if self.membership == "leave":
            return actor in before["players"] and (after is None or actor not in after["players"])
        if after is None:
            return False
        if before["status"] not in self.status_from or after["status"] not in self.status_to:
            return False
        if self.membership == "join":
            return actor not in before["players"] and actor in after["players"]
        if set(after["players"]) != set(before["players"]):
            return False
        if self.turn_state_from is not None and before["turn_state"] not in self.turn_state_from:
            return False
        if self.turn_state_to is not None and after["turn_state"] not in self.turn_state_to:
            return False
        return True


SHAPES: tuple[WriteShape, ...] = (
    WriteShape(
        name="join",
        status_from=frozenset({"waiting"}),
        status_to=frozenset({"waiting"}),
        allowed_fields=frozenset({"players", "order_players"}),
        checks=(_actor_appended,),
        membership="join",
    ),
    WriteShape(
        name="leave",
        status_from=frozenset({"waiting", "intro", "playing", "finished"}),
        status_to=frozenset({"waiting", "intro", "playing", "finished"}),
        allowed_fields=frozenset(
            {
                "players",
                "order_players",
                "turn",
                "status",
                "winner",
                "win_reason",
                "finished_at",
                "turn_state",
                "current_card",
                "selected_card_index",
                "card_initiator",
                "current_multiplier",
            }
        ),
        checks=(_actor_removed,),
        membership="leave",
    ),
    WriteShape(
        name="start",
        status_from=frozenset({"waiting"}),
        status_to=frozenset({"intro"}),
        allowed_fields=frozenset({"status"}),
        checks=(_actor_is_creator, _room_is_full),
    ),
    WriteShape(
        name="complete_intro",
        status_from=frozenset({"intro"}),
        status_to=frozenset({"playing"}),
        allowed_fields=frozenset(
            {
                "status",
                "memory_deck",
                "table_cards",
                "cards_drawn",
                "turn",
                "turn_state",
                "current_multiplier",
                "current_card",
                "selected_card_index",
                "card_initiator",
            }
        ),
        checks=(_actor_in_match, _room_is_full, _table_dealt_from_deck),
    ),
    WriteShape(
        name="select",
        status_from=frozenset({"playing"}),
        status_to=frozenset({"playing"}),
        turn_state_from=frozenset({"draw"}),
        turn_state_to=frozenset({"decide"}),
        allowed_fields=frozenset(
            {"turn_state", "current_card", "selected_card_index", "card_initiator", "current_multiplier"}
        ),
        checks=(_room_is_full, _actor_has_turn, _card_taken_from_table),
    ),
    WriteShape(
        name="reject",
        status_from=frozenset({"playing"}),
        status_to=frozenset({"playing"}),
        turn_state_from=frozenset({"decide"}),
        turn_state_to=frozenset({"opponent_decide"}),
        allowed_fields=frozenset({"turn_state", "current_multiplier"}),
        checks=(_room_is_full, _actor_is_initiator, _multiplier_raised),
    ),
    WriteShape(
        name="resolve",
        status_from=frozenset({"playing"}),
        status_to=frozenset({"playing", "finished"}),
        turn_state_from=frozenset(ACTIVE_CARD_STATES),
        allowed_fields=frozenset(
            {
                "players",
                "table_cards",
                "cards_drawn",
                "turn",
                "turn_state",
                "current_card",
                "selected_card_index",
                "card_initiator",
                "current_multiplier",
                "revealed_memories",
                "status",
                "winner",
                "win_reason",
                "finished_at",
            }
        ),
        checks=(
            _room_is_full,
            _resolver_role,
            _integrity_delta,
            _table_refreshed,
            _memory_logged,
            _turn_closed,
        ),
    ),
)


# ---------------------------------------------------------------------------
# Document invariants (hold after every write)
# ---------------------------------------------------------------------------


def _document_violations(before: Doc, after: Doc, config: GameConfig) -> list[str]:
    problems: list[str] = []
    order = after["order_players"]
    if set(order) != set(after["players"]) or len(order) != len(set(order)):
        problems.append("turn order must list each player exactly once")
    if len(order) > config.max_players:
        problems.append("too many players")
    if order and not (0 <= after["turn"] < len(order)):
        problems.append("turn must index into the turn order")
    if len(after["table_cards"]) > config.table_size:
        problems.append("table holds too many cards")
    if not (0 <= after["cards_drawn"] <= len(after["memory_deck"])):
        problems.append("cards drawn out of range")
    if before["cards_drawn"] > after["cards_drawn"]:
        problems.append("cards drawn cannot decrease")
    if before["memory_deck"] and after["memory_deck"] != before["memory_deck"]:
        problems.append("deck is immutable once generated")
    if after["revealed_memories"][: len(before["revealed_memories"])] != before["revealed_memories"]:
        problems.append("revealed memories are append-only")
    if after["status"] == "playing":
        has_card = after["current_card"] is not None
        if has_card != (after["turn_state"] in ACTIVE_CARD_STATES):
            problems.append("a card is in play iff a decision is pending")
        expected = config.reject_multiplier if after["turn_state"] == "opponent_decide" else 1
        if after["current_multiplier"] != expected:
            problems.append(f"multiplier must be {expected} in {after['turn_state']}")
    return problems


def check_create(document: Doc, actor_id: str, config: GameConfig) -> None:
    """Validate a brand new match document created by ``actor_id``."""
    expected_players = {actor_id: {"integrity": config.starting_integrity, "items": []}}
    if (
        document["status"] != "waiting"
        or document["players"] != expected_players
        or document["order_players"] != [actor_id]
        or document["memory_deck"]
        or document["table_cards"]
    ):
        raise RuleViolationError("create", "new match must hold only its creator and no cards")


def check_write(before: Doc, after: Doc | None, actor_id: str, config: GameConfig) -> str:
    """Accept or reject a write.  Returns the name of the matched shape.

    Raises RuleViolationError when no legal shape matches, a field outside the
    shape's allow-list changed, or one of its predicates fails.
    """
    if before["status"] == "finished" and not (
        after is None or actor_id not in after["players"]
    ):
        raise RuleViolationError("finished", "a finished match only accepts players leaving")

    candidates = [s for s in SHAPES if s.applies(before, after, actor_id)]
    if not candidates:
        logger.warning("Rejected write on match %s by %s: no legal shape", before["id"], actor_id)
        raise RuleViolationError("shape", "write does not match any legal transition")
    shape = candidates[0]

    if after is not None:
        changed = {k for k in after if after[k] != before.get(k)} - STORE_FIELDS
        if changed & IMMUTABLE_FIELDS:
            raise RuleViolationError(shape.name, f"immutable fields changed: {sorted(changed & IMMUTABLE_FIELDS)}")
        forbidden = changed - shape.allowed_fields
        if forbidden:
            logger.warning(
                "Rejected %s on match %s by %s: touched %s",
                shape.name,
                before["id"],
                actor_id,
                sorted(forbidden),
            )
            raise RuleViolationError(shape.name, f"fields not allowed: {sorted(forbidden)}")

    for check in shape.checks:
        problem = check(before, after, actor_id, config)
        if problem:
            logger.warning(
                "Rejected %s on match %s by %s: %s", shape.name, before["id"], actor_id, problem
            )
            raise RuleViolationError(shape.name, problem)

    if after is not None:
        problems = _document_violations(before, after, config)
        if problems:
            raise RuleViolationError(shape.name, "; ".join(problems))

    return shape.name
