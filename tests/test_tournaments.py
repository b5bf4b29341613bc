import pytest

from playledger import errors, events
from conftest import ALICE, BOB, CAROL, OWNER, START


@pytest.fixture
def players(platform):
    for identity, name in [(ALICE, "alice"), (BOB, "bob"), (CAROL, "carol")]:
        platform.register_player(identity, name)


def test_create_assigns_sequential_ids(platform, clock):
    assert platform.create_tournament(OWNER, "Spring Cup", 100, 3600) == 1
    assert platform.create_tournament(OWNER, "Summer Cup", 0, 60) == 2

    t = platform.get_tournament(1)
    assert t.name == "Spring Cup" and t.entry_fee == 100
    assert t.prize_pool == 0 and t.participants == []
    assert t.start_time == START and t.end_time == START + 3600
    assert t.is_active is True and t.is_completed is False and t.winner is None
    assert [x.id for x in platform.list_tournaments()] == [1, 2]


def test_create_requires_owner(platform):
    with pytest.raises(errors.AuthorizationError):
        platform.create_tournament(ALICE, "Cup", 10, 60)
    assert platform.get_tournament(1) is None


def test_create_validation(platform):
    with pytest.raises(errors.EmptyName):
        platform.create_tournament(OWNER, "", 10, 60)
    with pytest.raises(errors.InvalidDuration):
        platform.create_tournament(OWNER, "Cup", 10, 0)
    with pytest.raises(errors.InvalidInput):
        platform.create_tournament(OWNER, "Cup", -1, 60)
    with pytest.raises(errors.InvalidInput):
        platform.create_tournament(OWNER, "Cup", 2 ** 63, 60)
    with pytest.raises(errors.InvalidInput):
        platform.create_tournament(OWNER, "x" * 101, 10, 60)
    with pytest.raises(errors.InvalidInput):
        platform.create_tournament(OWNER, "\ud800", 10, 60)
    # failed creations do not consume ids
    assert platform.create_tournament(OWNER, "Cup", 10, 60) == 1


def test_create_requires_active_platform(platform):
    platform.toggle_platform_status(OWNER)
    with pytest.raises(errors.PlatformInactive):
        platform.create_tournament(OWNER, "Cup", 10, 60)


def test_join_accrues_prize_pool(platform, players, recorded):
    tid = platform.create_tournament(OWNER, "Cup", 100, 3600)
    recorded.clear()
    for identity in (ALICE, BOB, CAROL):
        platform.join_tournament(identity, tid)

    t = platform.get_tournament(tid)
    assert t.prize_pool == 3 * 100
    assert t.participants == [ALICE, BOB, CAROL]
    assert platform.get_tournament_participants(tid) == [ALICE, BOB, CAROL]
    assert platform.get_player_stats(ALICE).balance == 400
    # entry fees move issued tokens, they are not new issuance
    assert platform.get_platform_stats().total_tokens == 1500

    joined = [e for e in recorded if isinstance(e, events.TournamentJoined)]
    assert [e.prize_pool for e in joined] == [100, 200, 300]
    assert sum(1 for e in recorded if isinstance(e, events.TokensSpent)) == 3


def test_join_twice_fails(platform, players):
    tid = platform.create_tournament(OWNER, "Cup", 100, 3600)
    platform.join_tournament(ALICE, tid)
    with pytest.raises(errors.AlreadyJoined):
        platform.join_tournament(ALICE, tid)
    assert platform.get_tournament(tid).prize_pool == 100
    assert platform.get_player_stats(ALICE).balance == 400


def test_join_after_end_time_fails(platform, players, clock):
    tid = platform.create_tournament(OWNER, "Cup", 100, 3600)
    clock.advance(3599)
    platform.join_tournament(ALICE, tid)
    clock.advance(1)
    with pytest.raises(errors.RegistrationClosed):
        platform.join_tournament(BOB, tid)


def test_join_unknown_tournament(platform, players):
    with pytest.raises(errors.TournamentNotActive) as exc:
        platform.join_tournament(ALICE, 42)
    assert isinstance(exc.value, errors.TournamentNotFound)


def test_join_requires_balance(platform, players):
    tid = platform.create_tournament(OWNER, "High Roller", 501, 3600)
    with pytest.raises(errors.InsufficientBalance):
        platform.join_tournament(ALICE, tid)
    assert platform.get_tournament(tid).participants == []


def test_join_requires_active_player(platform, players):
    tid = platform.create_tournament(OWNER, "Cup", 0, 3600)
    platform.pause_player_account(OWNER, BOB)
    with pytest.raises(errors.PlayerInactive):
        platform.join_tournament(BOB, tid)
    with pytest.raises(errors.NotRegistered):
        platform.join_tournament("0xghost", tid)


def test_free_tournament_skips_debit(platform, players, recorded):
    tid = platform.create_tournament(OWNER, "Open", 0, 3600)
    recorded.clear()
    platform.join_tournament(ALICE, tid)
    assert [type(e) for e in recorded] == [events.TournamentJoined]
    assert platform.get_player_stats(ALICE).balance == 500


def test_complete_pays_winner(platform, players, recorded):
    tid = platform.create_tournament(OWNER, "Cup", 100, 3600)
    platform.join_tournament(ALICE, tid)
    platform.join_tournament(BOB, tid)
    recorded.clear()

    assert platform.complete_tournament(OWNER, tid, BOB) == 200

    t = platform.get_tournament(tid)
    assert t.winner == BOB
    assert t.is_completed is True and t.is_active is False
    assert platform.get_player_stats(BOB).balance == 600
    assert platform.get_player_stats(ALICE).balance == 400
    assert platform.get_platform_stats().total_tokens == 1500

    assert [type(e) for e in recorded] == [events.TokensEarned, events.TournamentCompleted]
    assert recorded[1].winner == BOB and recorded[1].prize == 200


def test_complete_rejects_non_participant(platform, players):
    tid = platform.create_tournament(OWNER, "Cup", 100, 3600)
    platform.join_tournament(ALICE, tid)
    with pytest.raises(errors.NotAParticipant):
        platform.complete_tournament(OWNER, tid, CAROL)
    assert platform.get_tournament(tid).is_completed is False


def test_complete_twice_fails(platform, players):
    tid = platform.create_tournament(OWNER, "Cup", 100, 3600)
    platform.join_tournament(ALICE, tid)
    platform.complete_tournament(OWNER, tid, ALICE)
    with pytest.raises(errors.AlreadyCompleted):
        platform.complete_tournament(OWNER, tid, ALICE)
    assert platform.get_player_stats(ALICE).balance == 500


def test_complete_requires_owner_and_existing_tournament(platform, players):
    tid = platform.create_tournament(OWNER, "Cup", 100, 3600)
    platform.join_tournament(ALICE, tid)
    with pytest.raises(errors.AuthorizationError):
        platform.complete_tournament(ALICE, tid, ALICE)
    with pytest.raises(errors.TournamentNotFound):
        platform.complete_tournament(OWNER, 99, ALICE)


def test_join_after_completion_fails(platform, players):
    tid = platform.create_tournament(OWNER, "Cup", 0, 3600)
    platform.join_tournament(ALICE, tid)
    platform.complete_tournament(OWNER, tid, ALICE)
    with pytest.raises(errors.TournamentNotActive):
        platform.join_tournament(BOB, tid)
    assert [t.id for t in platform.list_tournaments(active_only=True)] == []


def test_duration_must_keep_end_time_storable(platform):
    with pytest.raises(errors.InvalidDuration):
        platform.create_tournament(OWNER, "Cup", 0, 2 ** 63)
    with pytest.raises(errors.InvalidDuration):
        platform.create_tournament(OWNER, "Cup", 0, 2 ** 63 - START)
    tid = platform.create_tournament(OWNER, "Forever", 0, 2 ** 63 - 1 - START)
    assert platform.get_tournament(tid).end_time == 2 ** 63 - 1


def test_huge_tournament_id_is_not_found(platform, players):
    assert platform.get_tournament(2 ** 64) is None
    with pytest.raises(errors.TournamentNotFound):
        platform.join_tournament(ALICE, 2 ** 64)
    with pytest.raises(errors.TournamentNotFound):
        platform.complete_tournament(OWNER, 2 ** 64, ALICE)
