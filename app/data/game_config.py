"""Balance constants for Backup Deathmatch.

Adjust these values to tune a match.  Every service takes a ``GameConfig``
argument defaulting to ``settings.game`` so tests can pin their own balance.

Integrity starts at ``starting_integrity`` for every player.  The first player
to reach ``max_integrity`` wins; a player at or below ``min_integrity`` loses
and the opponent is declared winner.
"""

from pydantic import BaseModel, Field


class DeckDistribution(BaseModel):
    authentic: int = 8     # real memories
    corrupted: int = 6     # damaged data
    fatal_glitch: int = 1  # fatal corruption

    @property
    def total(self) -> int:
        return self.authentic + self.corrupted + self.fatal_glitch


class PointValues(BaseModel):
    authentic: int = 1
    corrupted: int = -1
    fatal_glitch: int = -10


class GameConfig(BaseModel):
    # Deck
    total_cards: int = 15
    distribution: DeckDistribution = Field(default_factory=DeckDistribution)
    point_values: PointValues = Field(default_factory=PointValues)
    # Fatal glitches never land before this deck position (index 7 = 8th card)
    fatal_glitch_min_index: int = 7

    # Table
    table_size: int = 3

    # Room
    max_players: int = 2

    # Win conditions
    starting_integrity: int = 0
    max_integrity: int = 10
    min_integrity: int = -10

    # Multiplier applied once a card has been rejected to the opponent
    reject_multiplier: int = 3
