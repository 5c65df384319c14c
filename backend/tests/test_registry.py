import threading

import pytest

from tictactoe.models import PlayerSlots
from tictactoe.services.games.registry import Conflict, DuplicateId, NotFound, SessionRegistry
from tictactoe.services.games.rules import CellOccupied, GameOver, apply_move, create_game, is_finished


@pytest.fixture()
def games():
    return SessionRegistry()


def test_create_get_list(games):
    a = games.create('AAA')
    b = games.create('BBB', players=PlayerSlots(x='Alice'))
    assert games.get('AAA') is a
    assert games.get('BBB').players.x == 'Alice'
    assert {g.id for g in games.list()} == {'AAA', 'BBB'}
    assert len(games) == 2
    assert 'AAA' in games
    assert 'ZZZ' not in games


def test_duplicate_id_is_rejected(games):
    first = games.create('AAA')
    with pytest.raises(DuplicateId):
        games.create('AAA')
    assert games.get('AAA') is first


def test_get_missing(games):
    with pytest.raises(NotFound) as exc:
        games.get('nope')
    assert str(exc.value) == 'Game not found'


def test_list_is_a_copy(games):
    games.create('AAA')
    listed = games.list()
    listed.clear()
    assert len(games) == 1


def test_mutate_commits_result(games):
    games.create('AAA')
    after = games.mutate('AAA', lambda g: apply_move(g, 4))
    assert games.get('AAA') is after
    assert after.board[4] == 'X'


def test_mutate_error_commits_nothing(games):
    games.mutate(games.create('AAA').id, lambda g: apply_move(g, 0))
    before = games.get('AAA')
    with pytest.raises(CellOccupied):
        games.mutate('AAA', lambda g: apply_move(g, 0))
    assert games.get('AAA') is before


def test_mutate_missing_game(games):
    with pytest.raises(NotFound):
        games.mutate('nope', lambda g: g)


def test_update_requires_existing_game(games):
    with pytest.raises(NotFound):
        games.update('nope', create_game('nope'))


def test_update_rejects_stale_snapshot(games):
    snapshot = games.create('AAA')
    games.update('AAA', apply_move(snapshot, 0), expected=snapshot)
    with pytest.raises(Conflict):
        games.update('AAA', apply_move(snapshot, 1), expected=snapshot)
    assert games.get('AAA').board[0] == 'X'
    assert games.get('AAA').board[1] is None


def test_update_after_concurrent_removal(games):
    snapshot = games.create('AAA')
    games.remove('AAA')
    with pytest.raises(NotFound):
        games.update('AAA', apply_move(snapshot, 0))


def test_update_refuses_mismatched_id(games):
    games.create('AAA')
    with pytest.raises(ValueError):
        games.update('AAA', create_game('BBB'))


def test_remove_if_checks_latest_state(games):
    games.create('AAA')
    assert games.remove_if('AAA', is_finished) is None
    assert 'AAA' in games
    for pos in (0, 3, 1, 4, 2):
        games.mutate('AAA', lambda g, p=pos: apply_move(g, p))
    removed = games.remove_if('AAA', is_finished)
    assert removed.id == 'AAA'
    assert 'AAA' not in games
    assert games.remove_if('AAA') is None


def test_remove_all(games):
    games.create('AAA')
    games.create('BBB')
    assert sorted(games.remove_all()) == ['AAA', 'BBB']
    assert games.list() == []
    # Ids can be reused after a reset
    games.create('AAA')


def test_concurrent_moves_on_same_cell(games):
    games.create('AAA')
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    results_lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            games.mutate('AAA', lambda g: apply_move(g, 4))
            outcome = 'ok'
        except CellOccupied:
            outcome = 'occupied'
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count('ok') == 1
    assert results.count('occupied') == workers - 1
    game = games.get('AAA')
    assert game.board[4] == 'X'
    assert game.current_player == 'O'


def test_concurrent_moves_apply_against_latest_state(games):
    games.create('AAA')
    barrier = threading.Barrier(9)
    errors = []

    def worker(pos):
        barrier.wait()
        try:
            games.mutate('AAA', lambda g: apply_move(g, pos))
        except GameOver as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(pos,)) for pos in range(9)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    game = games.get('AAA')
    placed = [cell for cell in game.board if cell is not None]
    # Every accepted move saw the one before it; a win turns the rest away
    assert len(placed) == 9 - len(errors)
    assert placed.count('X') - placed.count('O') in (0, 1)


def test_different_games_do_not_block_each_other(games):
    games.create('AAA')
    games.create('BBB')
    inside = threading.Event()
    release = threading.Event()

    def slow(g):
        inside.set()
        release.wait(5)
        return apply_move(g, 0)

    holder = threading.Thread(target=games.mutate, args=('AAA', slow))
    holder.start()
    assert inside.wait(5)
    try:
        # AAA's lock is held; BBB must still go through
        after = games.mutate('BBB', lambda g: apply_move(g, 8))
        assert after.board[8] == 'X'
        assert games.get('AAA').board[0] is None
    finally:
        release.set()
        holder.join()
    assert games.get('AAA').board[0] == 'X'


def test_reset_during_move_does_not_touch_recreated_game(games):
    games.create('AAA')
    inside = threading.Event()
    release = threading.Event()
    outcome = []

    def slow(g):
        inside.set()
        release.wait(5)
        return apply_move(g, 0)

    def mover():
        try:
            games.mutate('AAA', slow)
            outcome.append('committed')
        except NotFound:
            outcome.append('not found')

    holder = threading.Thread(target=mover)
    holder.start()
    assert inside.wait(5)
    games.remove_all()
    fresh = games.create('AAA')
    release.set()
    holder.join()

    assert outcome == ['not found']
    assert games.get('AAA') is fresh
    assert fresh.board == (None,) * 9
