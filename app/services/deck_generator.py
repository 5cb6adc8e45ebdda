"""
Deck generation for Backup Deathmatch.

A match deck is built from two independent shuffles:

  1. ``total_cards`` memory texts drawn without replacement from the pool.
  2. The authenticity labels from the configured distribution.  Non-fatal
     labels are shuffled first; each fatal glitch is then inserted at its own
     random position at or after ``fatal_glitch_min_index`` so the opening
     turns can never be decided by a -10 swing.

Card values come from the configured point values.  Generation is pure: the
pool is passed in and randomness comes from ``rng`` (tests pass a seeded
``random.Random``).
"""

import logging
import random

from app.data.game_config import GameConfig
from app.errors import DistributionMismatchError, InsufficientPoolError
from app.models.card import Authenticity, Card, point_value

logger = logging.getLogger(__name__)

# Below this pool/deck ratio consecutive matches start repeating memories
RECOMMENDED_POOL_RATIO = 3


def build_authenticity_sequence(
    config: GameConfig, rng: random.Random | None = None
) -> list[Authenticity]:
    """Return the shuffled authenticity label for every deck position."""
    rng = rng or random.Random()
    dist = config.distribution

    if dist.total != config.total_cards:
        raise DistributionMismatchError(
            f"Authenticity distribution ({dist.total}) does not match total cards "
            f"({config.total_cards})"
        )

    non_fatal = [Authenticity.authentic] * dist.authentic + [
        Authenticity.corrupted
    ] * dist.corrupted
    if dist.fatal_glitch and len(non_fatal) < config.fatal_glitch_min_index:
        # Inserting at or after the minimum needs that many cards in front of it
        raise DistributionMismatchError(
            f"Cannot place {dist.fatal_glitch} fatal glitch card(s) at or after position "
            f"{config.fatal_glitch_min_index} in a deck of {config.total_cards}"
        )

    labels = list(non_fatal)
    rng.shuffle(labels)

    for _ in range(dist.fatal_glitch):
        position = rng.randint(config.fatal_glitch_min_index, len(labels))
        labels.insert(position, Authenticity.fatal_glitch)

    logger.debug(
        "Fatal glitch positions: %s",
        [i for i, label in enumerate(labels) if label == Authenticity.fatal_glitch],
    )
    return labels


def generate_deck(
    pool: list[str],
    config: GameConfig,
    rng: random.Random | None = None,
) -> list[Card]:
    """Build a randomized, composition-balanced deck from ``pool``.

    Raises InsufficientPoolError if the pool has fewer entries than the deck
    needs, DistributionMismatchError if the configured distribution cannot
    produce a valid deck.  Nothing is returned on failure.
    """
    rng = rng or random.Random()

    if len(pool) < config.total_cards:
        raise InsufficientPoolError(required=config.total_cards, available=len(pool))

    recommended = config.total_cards * RECOMMENDED_POOL_RATIO
    if len(pool) < recommended:
        logger.warning(
            "Memory pool is small (%d entries, %d recommended); matches may feel repetitive",
            len(pool),
            recommended,
        )

    labels = build_authenticity_sequence(config, rng)
    memories = rng.sample(list(pool), config.total_cards)

    deck = [
        Card(
            memory=memory,
            authenticity=authenticity,
            value=point_value(authenticity, config.point_values),
        )
        for memory, authenticity in zip(memories, labels)
    ]

    logger.info(
        "Deck generated: %d cards (%d authentic, %d corrupted, %d fatal)",
        len(deck),
        sum(1 for c in deck if c.authenticity == Authenticity.authentic),
        sum(1 for c in deck if c.authenticity == Authenticity.corrupted),
        sum(1 for c in deck if c.authenticity == Authenticity.fatal_glitch),
    )
    return deck
