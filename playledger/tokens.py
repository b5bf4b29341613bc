from typing import List
from sqlmodel import select

from . import models
from .errors import InsufficientBalance, InvalidInput
from .events import TokensSpent
from .logging_utils import get_logger
from .validation import check_int, check_sum, utf8_size

logger = get_logger("playledger.tokens")


def _record(tx, player: models.Player, kind: str, amount: int, reason: str) -> models.TokenTransaction:
    entry = models.TokenTransaction(
        player=player.identity,
        kind=kind,
        amount=amount,
        reason=reason,
        balance_after=player.token_balance,
        created_at=tx.now,
    )
    tx.session.add(entry)
    return entry


def credit(tx, player: models.Player, amount: int, reason: str, issue: bool = True) -> None:
    """Add ``amount`` to the player's balance.

    ``issue`` counts the amount as newly issued tokens in
    ``total_game_tokens``; transfers of already issued tokens (prize
    payouts) pass ``issue=False``.
    """
    balance = check_sum("balance", player.token_balance, amount)
    if issue:
        tx.state.total_game_tokens = check_sum("total_game_tokens", tx.state.total_game_tokens, amount)
    player.token_balance = balance
    tx.session.add(player)
    _record(tx, player, "credit", amount, reason)
    logger.debug("tokens_credited", extra={"identity": player.identity, "amount": amount, "reason": reason})


def debit(tx, player: models.Player, amount: int, reason: str) -> None:
    """Remove ``amount`` from the player's balance.

    ``total_game_tokens`` is a count of tokens issued, so spending never
    lowers it.
    """
    if amount > player.token_balance:
        raise InsufficientBalance(f"balance {player.token_balance} is less than {amount}")
    player.token_balance -= amount
    tx.session.add(player)
    _record(tx, player, "debit", amount, reason)
    logger.debug("tokens_debited", extra={"identity": player.identity, "amount": amount, "reason": reason})


def history(session, identity: str) -> List[models.TokenTransaction]:
    return list(session.exec(
        select(models.TokenTransaction)
        .where(models.TokenTransaction.player == identity)
        .order_by(models.TokenTransaction.id)
    ).all())


ITEM_NAME_MAX_BYTES = 64


def spend(tx, player: models.Player, amount: int, item_name: str) -> None:
    """Debit ``amount`` for an in-game purchase of ``item_name``."""
    check_int("amount", amount, minimum=1)
    size = utf8_size(item_name)
    if size == 0 or size > ITEM_NAME_MAX_BYTES:
        raise InvalidInput(f"item name must be 1-{ITEM_NAME_MAX_BYTES} bytes")
    debit(tx, player, amount, item_name)
    tx.emit(TokensSpent(player=player.identity, amount=amount, item=item_name))
