"""Victory service for Backup Deathmatch.

Runs after every resolving transition, on the post-mutation players.

Win conditions (thresholds from GameConfig):
  - A player at or above ``max_integrity`` wins (reached_upper_threshold).
  - A player at or below ``min_integrity`` loses; the other player wins
    (opponent_defeated).

The upper check runs first over all players.  If one resolution leaves one
player at the top threshold and the other at the bottom, the player who
reached the top is the winner.

Exhaustion: when the table and supply are both empty with no winner, the
player with the most integrity wins (deck_exhausted); a tie ends with no
winner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.data.game_config import GameConfig
from app.models.match import WinReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VictoryCheck:
    has_winner: bool
    winner_id: str | None = None
    reason: WinReason | None = None


NO_WINNER = VictoryCheck(has_winner=False)


def _opponent_of(player_id: str, order_players: list[str]) -> str | None:
    return next((p for p in order_players if p != player_id), None)


def evaluate_victory(
    players: dict[str, Any],
    order_players: list[str],
    config: GameConfig,
) -> VictoryCheck:
    """Decide whether the match is over after a resolution."""
    for player_id in order_players:
        integrity = players[player_id]["integrity"]
        if integrity >= config.max_integrity:
            logger.info("Victory: %s reached %d integrity", player_id, integrity)
            return VictoryCheck(True, player_id, WinReason.reached_upper_threshold)

    for player_id in order_players:
        integrity = players[player_id]["integrity"]
        if integrity <= config.min_integrity:
            winner_id = _opponent_of(player_id, order_players)
            logger.info(
                "Victory: %s fell to %d integrity, %s wins", player_id, integrity, winner_id
            )
            return VictoryCheck(True, winner_id, WinReason.opponent_defeated)

    return NO_WINNER


def evaluate_exhaustion(players: dict[str, Any], order_players: list[str]) -> VictoryCheck:
    """Decide the result of a match that ran out of cards."""
    if not order_players:
        return VictoryCheck(True, None, WinReason.deck_exhausted)

    best = max(players[p]["integrity"] for p in order_players)
    leaders = [p for p in order_players if players[p]["integrity"] == best]
    winner_id = leaders[0] if len(leaders) == 1 else None
    logger.info("Deck exhausted, winner: %s", winner_id or "none (tie)")
    return VictoryCheck(True, winner_id, WinReason.deck_exhausted)


def get_standings(players: dict[str, Any], order_players: list[str]) -> list[dict]:
    """Return current integrity for all seated players, highest first."""
    standings = [
        {"player_id": p, "integrity": players[p]["integrity"]} for p in order_players
    ]
    return sorted(standings, key=lambda s: s["integrity"], reverse=True)
