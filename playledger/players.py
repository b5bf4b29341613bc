from typing import List, Optional
from sqlmodel import select

from . import models, tokens
from .errors import AlreadyRegistered, InvalidIdentity, InvalidUsername, NotRegistered, PlayerInactive
from .events import PlayerRegistered, PlayerStatusChanged, TokensEarned
from .logging_utils import get_logger
from .validation import utf8_size

logger = get_logger("playledger.players")

WELCOME_BONUS = 500
WELCOME_REASON = "Welcome Bonus"
USERNAME_MAX_BYTES = 20
# null account, never a valid caller or target
ZERO_IDENTITY = "0x0000000000000000000000000000000000000000"


def is_null_identity(identity: Optional[str]) -> bool:
    if identity is None:
        return True
    value = identity.strip()
    return value == "" or value.lower() == ZERO_IDENTITY


def get_player(session, identity: str) -> Optional[models.Player]:
    return session.get(models.Player, identity)


def register(tx, identity: str, username: str) -> models.Player:
    """Create the player record and pay the welcome bonus."""
    if is_null_identity(identity):
        raise InvalidIdentity("identity is empty")
    existing = get_player(tx.session, identity)
    if existing is not None:
        raise AlreadyRegistered(f"{identity} is already registered")
    size = utf8_size(username, InvalidUsername)
    if size == 0 or size > USERNAME_MAX_BYTES:
        raise InvalidUsername(f"username must be 1-{USERNAME_MAX_BYTES} bytes")

    tx.state.total_players_registered += 1
    player = models.Player(
        identity=identity,
        registration_index=tx.state.total_players_registered,
        username=username,
        is_registered=True,
        is_active=True,
        registered_at=tx.now,
    )
    tx.session.add(player)
    tx.emit(PlayerRegistered(player=identity, username=username, timestamp=tx.now))

    tokens.credit(tx, player, WELCOME_BONUS, WELCOME_REASON)
    tx.emit(TokensEarned(player=identity, amount=WELCOME_BONUS, reason=WELCOME_REASON))
    logger.info("player_registered", extra={"identity": identity})
    return player


def require_active_player(tx, identity: str) -> models.Player:
    player = get_player(tx.session, identity)
    if player is None or not player.is_registered:
        raise NotRegistered(f"{identity} is not registered")
    if not player.is_active:
        raise PlayerInactive(f"{identity} is paused")
    return player


def set_active(tx, identity: str, active: bool) -> None:
    """Pause or resume an account.

    Unknown identities are accepted and left untouched: registration always
    starts a player active, so there is nothing to pre-seed.
    """
    if is_null_identity(identity):
        raise InvalidIdentity("identity is empty")
    player = get_player(tx.session, identity)
    if player is None:
        logger.warning("set_active_unknown_player", extra={"identity": identity})
        return
    if player.is_active == active:
        return
    player.is_active = active
    tx.session.add(player)
    tx.emit(PlayerStatusChanged(player=identity, is_active=active))
    logger.info("player_status_changed", extra={"identity": identity, "event": "resume" if active else "pause"})


def registered_players(session) -> List[str]:
    """Identities in registration order."""
    return list(session.exec(
        select(models.Player.identity)
        .where(models.Player.is_registered == True)  # noqa: E712
        .order_by(models.Player.registration_index)
    ).all())
