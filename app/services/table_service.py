"""Table and supply management.

The table shows up to ``table_size`` face-down cards.  The rest of the match
deck is the hidden supply, consumed in order: ``cards_drawn`` counts how many
deck cards have been placed on the table so far.

When a card on the table is resolved its slot is refilled in place with the
next supply card.  Once the supply is exhausted the slot is removed instead
and the table shrinks; the match can continue until the table is empty.

All functions are pure and return new lists.
"""

import logging

from app.errors import InsufficientDeckError, InvalidIndexError
from app.models.card import Card

logger = logging.getLogger(__name__)

DEFAULT_TABLE_SIZE = 3


def initialize_table(
    deck: list[Card], table_size: int = DEFAULT_TABLE_SIZE
) -> tuple[list[Card], int]:
    """Return the opening table (first cards of the deck) and the new draw count."""
    if len(deck) < table_size:
        raise InsufficientDeckError(required=table_size, available=len(deck))
    table = list(deck[:table_size])
    logger.debug("Table initialized with %d cards", len(table))
    return table, table_size


def refresh_table(
    table_cards: list[Card],
    selected_index: int,
    deck: list[Card],
    cards_drawn: int,
) -> tuple[list[Card], int]:
    """Consume the card at ``selected_index`` and refill its slot from the supply.

    Returns ``(table_cards, cards_drawn)``.  Raises InvalidIndexError, leaving
    the inputs untouched, if the index is not on the table.
    """
    if selected_index < 0 or selected_index >= len(table_cards):
        raise InvalidIndexError(selected_index, len(table_cards))

    new_table = list(table_cards)
    if cards_drawn < len(deck):
        new_table[selected_index] = deck[cards_drawn]
        logger.debug(
            "Slot %d refilled from supply (%d left)",
            selected_index,
            len(deck) - cards_drawn - 1,
        )
        return new_table, cards_drawn + 1

    del new_table[selected_index]
    logger.debug("Supply exhausted, slot %d removed (%d on table)", selected_index, len(new_table))
    return new_table, cards_drawn


def can_continue(table_cards: list[Card], deck: list[Card], cards_drawn: int) -> bool:
    """True while there is still a card to play, on the table or in the supply."""
    return len(table_cards) > 0 or cards_drawn < len(deck)


def remaining_count(table_cards: list[Card], deck: list[Card], cards_drawn: int) -> int:
    """Cards still in play: table plus undrawn supply."""
    return len(table_cards) + max(len(deck) - cards_drawn, 0)
