from typing import List, Optional
from sqlmodel import select

from . import admin, models, players, tokens
from .errors import (
    AlreadyCompleted,
    AlreadyJoined,
    EmptyName,
    InsufficientBalance,
    InvalidDuration,
    InvalidInput,
    NotAParticipant,
    RegistrationClosed,
    TournamentCompleted as TournamentAlreadyCompleted,
    TournamentNotActive,
    TournamentNotFound,
)
from .events import TokensEarned, TokensSpent, TournamentCompleted, TournamentCreated, TournamentJoined
from .logging_utils import get_logger
from .validation import MAX_INT, check_int, check_sum, utf8_size

logger = get_logger("playledger.tournaments")

ENTRY_REASON = "Tournament Entry"
PRIZE_REASON = "Tournament Prize"
NAME_MAX_BYTES = 100


def get_tournament(session, tournament_id: int) -> Optional[models.Tournament]:
    if not 0 < tournament_id <= MAX_INT:
        return None
    return session.get(models.Tournament, tournament_id)


def _require_tournament(session, tournament_id: int) -> models.Tournament:
    t = get_tournament(session, tournament_id)
    if t is None:
        raise TournamentNotFound(f"tournament {tournament_id} does not exist")
    return t


def _entry(session, tournament_id: int, identity: str) -> Optional[models.TournamentEntry]:
    return session.exec(
        select(models.TournamentEntry)
        .where(models.TournamentEntry.tournament_id == tournament_id)
        .where(models.TournamentEntry.player == identity)
    ).first()


def participants(session, tournament_id: int) -> List[str]:
    """Participant identities in join order."""
    return list(session.exec(
        select(models.TournamentEntry.player)
        .where(models.TournamentEntry.tournament_id == tournament_id)
        .order_by(models.TournamentEntry.position)
    ).all())


def list_tournaments(session, active_only: bool = False) -> List[models.Tournament]:
    stmt = select(models.Tournament)
    if active_only:
        stmt = stmt.where(models.Tournament.is_active == True)  # noqa: E712
    return list(session.exec(stmt.order_by(models.Tournament.id)).all())


def create(tx, name: str, entry_fee: int, duration_secs: int) -> int:
    size = utf8_size(name)
    if size == 0:
        raise EmptyName("tournament name is empty")
    if size > NAME_MAX_BYTES:
        raise InvalidInput(f"tournament name must be at most {NAME_MAX_BYTES} bytes")
    check_int("entry fee", entry_fee)
    if duration_secs <= 0:
        raise InvalidDuration("duration must be positive")
    # end_time = now + duration must fit the column
    check_int("duration", duration_secs, minimum=1, maximum=MAX_INT - tx.now, error=InvalidDuration)

    tx.state.tournament_counter += 1
    t = models.Tournament(
        id=tx.state.tournament_counter,
        name=name,
        entry_fee=entry_fee,
        prize_pool=0,
        start_time=tx.now,
        end_time=tx.now + duration_secs,
        is_active=True,
        is_completed=False,
    )
    tx.session.add(t)
    tx.emit(TournamentCreated(
        tournament_id=t.id,
        name=name,
        entry_fee=entry_fee,
        start_time=t.start_time,
        end_time=t.end_time,
    ))
    logger.info("tournament_created", extra={"tournament_id": t.id, "amount": entry_fee})
    return t.id


def join(tx, identity: str, tournament_id: int) -> None:
    admin.require_platform_active(tx)
    player = players.require_active_player(tx, identity)
    t = _require_tournament(tx.session, tournament_id)
    if not t.is_active:
        raise TournamentNotActive(f"tournament {tournament_id} is not active")
    if t.is_completed:
        raise TournamentAlreadyCompleted(f"tournament {tournament_id} is completed")
    if tx.now >= t.end_time:
        raise RegistrationClosed(f"registration for tournament {tournament_id} has closed")
    if _entry(tx.session, tournament_id, identity) is not None:
        raise AlreadyJoined(f"{identity} already joined tournament {tournament_id}")
    if player.token_balance < t.entry_fee:
        raise InsufficientBalance(f"entry fee is {t.entry_fee}")

    if t.entry_fee > 0:
        tokens.debit(tx, player, t.entry_fee, ENTRY_REASON)
        tx.emit(TokensSpent(player=identity, amount=t.entry_fee, item=ENTRY_REASON))
        t.prize_pool = check_sum("prize pool", t.prize_pool, t.entry_fee)

    position = len(participants(tx.session, tournament_id)) + 1
    tx.session.add(models.TournamentEntry(
        tournament_id=tournament_id,
        player=identity,
        position=position,
        joined_at=tx.now,
    ))
    tx.session.add(t)
    tx.emit(TournamentJoined(
        tournament_id=tournament_id,
        player=identity,
        entry_fee=t.entry_fee,
        prize_pool=t.prize_pool,
    ))
    logger.info("tournament_joined", extra={"identity": identity, "tournament_id": tournament_id})


def complete(tx, tournament_id: int, winner: str) -> int:
    """Close the tournament and pay the whole prize pool to ``winner``."""
    t = _require_tournament(tx.session, tournament_id)
    if t.is_completed:
        raise AlreadyCompleted(f"tournament {tournament_id} is already completed")
    if _entry(tx.session, tournament_id, winner) is None:
        raise NotAParticipant(f"{winner} did not join tournament {tournament_id}")

    prize = t.prize_pool
    t.winner = winner
    t.is_completed = True
    t.is_active = False
    tx.session.add(t)

    if prize > 0:
        player = players.get_player(tx.session, winner)
        # pool holds fees that were already issued
        tokens.credit(tx, player, prize, PRIZE_REASON, issue=False)
        tx.emit(TokensEarned(player=winner, amount=prize, reason=PRIZE_REASON))
    tx.emit(TournamentCompleted(tournament_id=tournament_id, winner=winner, prize=prize))
    logger.info("tournament_completed", extra={"tournament_id": tournament_id, "identity": winner, "amount": prize})
    return prize
