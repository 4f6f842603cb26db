from decimal import Decimal
from threading import Thread

from arena.models import GameMove
from arena.services.adjudicator import MatchLocks


def play(arena, match, *moves):
    return [arena.submit_move(match.id, who.id, payload) for who, payload in moves]


def test_pairing_announced_to_both(paired_match):
    match, creator, joiner, channels = paired_match('tictactoe')
    for player in (creator, joiner):
        found = channels[player.id].events('match_found')
        assert len(found) == 1
        assert found[0]['matchId'] == match.id
        assert found[0]['gameState']['current_player'] == joiner.id


def test_tictactoe_game_adjudicated_and_settled(arena, paired_match):
    match, creator, joiner, channels = paired_match('tictactoe', stake='10')
    results = play(
        arena, match,
        (joiner, {'position': 0}), (creator, {'position': 4}),
        (joiner, {'position': 1}), (creator, {'position': 5}),
        (joiner, {'position': 2}),
    )
    assert all(r.accepted for r in results)
    assert [r.move_number for r in results] == [1, 2, 3, 4, 5]
    assert results[-1].finished and results[-1].winner_id == joiner.id

    moves = arena.repo.get_match_moves(match.id)
    assert [m.move_number for m in moves] == [1, 2, 3, 4, 5]
    assert [m.player_id for m in moves] == [joiner.id, creator.id] * 2 + [joiner.id]

    finished = arena.repo.get_match(match.id)
    assert finished.state == 'finished'
    assert finished.winner_id == joiner.id
    assert finished.finished_at is not None

    for player in (creator, joiner):
        updates = channels[player.id].events('game_update')
        assert [u['moveNumber'] for u in updates] == [1, 2, 3, 4, 5]
        [result] = channels[player.id].events('game_result')
        assert result['winnerId'] == joiner.id
        assert result['gameState']['board'][:3] == ['X', 'X', 'X']
    assert channels[joiner.id].events('game_result')[0]['result'] == 'win'
    assert channels[creator.id].events('game_result')[0]['result'] == 'lose'

    assert arena.repo.get_user(joiner.id).balance == Decimal('1356.50')
    assert arena.repo.get_user(creator.id).balance == Decimal('1327.50')


def test_turn_flags_are_computed_per_viewer(arena, paired_match):
    match, creator, joiner, channels = paired_match('sticks')
    play(arena, match, (joiner, {'take': 2}))
    [to_joiner] = channels[joiner.id].events('game_update')
    [to_creator] = channels[creator.id].events('game_update')
    assert to_joiner['currentPlayer'] == to_creator['currentPlayer'] == creator.id
    assert to_joiner['isYourTurn'] is False
    assert to_creator['isYourTurn'] is True
    assert to_creator['gameState']['sticks'] == 19


def test_wrong_turn_is_dropped_silently(arena, paired_match):
    match, creator, joiner, channels = paired_match('tictactoe')
    [result] = play(arena, match, (creator, {'position': 0}))
    assert not result.accepted
    assert result.reason == 'not_your_turn'
    assert arena.repo.get_match_moves(match.id) == []
    assert channels[creator.id].events('game_update') == []
    assert channels[joiner.id].events('game_update') == []


def test_occupied_cell_never_reaches_the_log(arena, paired_match):
    match, creator, joiner, channels = paired_match('tictactoe')
    first, second = play(arena, match, (joiner, {'position': 4}), (creator, {'position': 4}))
    assert first.accepted
    assert not second.accepted and second.reason == 'illegal_move'
    assert len(arena.repo.get_match_moves(match.id)) == 1
    # still the creator's turn
    assert arena.submit_move(match.id, creator.id, {'position': 0}).accepted


def test_over_removal_rejected(arena, paired_match):
    match, creator, joiner, _ = paired_match('sticks')
    [result] = play(arena, match, (joiner, {'take': 4}))
    assert result.reason == 'illegal_move'


def test_rps_resubmission_only_latest_counts(arena, paired_match):
    match, creator, joiner, channels = paired_match('rps')
    results = play(
        arena, match,
        (creator, {'move': 'rock'}),
        (creator, {'move': 'paper'}),
        (joiner, {'move': 'rock'}),
    )
    assert all(r.accepted for r in results)
    assert results[-1].winner_id == creator.id

    # opponent never saw the hand before the reveal
    early = channels[joiner.id].events('game_update')[0]['gameState']
    assert 'choices' not in early and early['committed'] == [creator.id]

    late = arena.submit_move(match.id, joiner.id, {'move': 'scissors'})
    assert not late.accepted
    assert len(arena.repo.get_match_moves(match.id)) == 3
    assert channels[creator.id].events('game_result')[0]['result'] == 'win'


def test_sticks_last_stick_loses(arena, paired_match):
    match, creator, joiner, channels = paired_match('sticks', stake='10')
    takes = [3, 3, 3, 3, 3, 3, 2, 1]
    movers = [joiner, creator] * 4
    results = play(arena, match, *[(movers[i], {'take': t}) for i, t in enumerate(takes)])
    assert results[-1].finished
    # creator took the last stick
    assert results[-1].winner_id == joiner.id
    assert channels[creator.id].events('game_result')[0]['result'] == 'lose'


def test_hangman_duplicate_letter_consumes_a_slot(arena, paired_match):
    match, creator, joiner, _ = paired_match('hangman')
    word = arena.repo.get_match(match.id).setup_dict()['word']
    missing = next(ch for ch in 'QXZJVWKFHYU' if ch not in word)
    results = play(arena, match, (joiner, {'letter': missing}), (creator, {'letter': missing}))
    assert [r.move_number for r in results] == [1, 2]
    state = arena.repo.get_match(match.id).state_dict()
    assert state['wrong_guesses'] == {joiner.id: 1, creator.id: 0}
    assert state['current_player'] == joiner.id


def test_draw_settles_without_transactions(arena, paired_match):
    match, creator, joiner, channels = paired_match('rps')
    play(arena, match, (joiner, {'move': 'rock'}), (creator, {'move': 'rock'}))
    assert arena.repo.get_match(match.id).winner_id is None
    assert arena.repo.get_match_transactions(match.id) == []
    for player in (creator, joiner):
        assert channels[player.id].events('game_result')[0]['result'] == 'draw'
        assert arena.repo.get_user(player.id).balance == Decimal('1337.50')
        assert arena.repo.get_stats(player.id).total_games == 1


def test_moves_after_finish_are_rejected(arena, paired_match):
    match, creator, joiner, _ = paired_match('rps')
    play(arena, match, (joiner, {'move': 'rock'}), (creator, {'move': 'paper'}))
    result = arena.submit_move(match.id, joiner.id, {'move': 'paper'})
    assert result.reason == 'match_not_in_progress'


def test_storage_failure_aborts_without_broadcast(arena, paired_match, monkeypatch):
    match, creator, joiner, channels = paired_match('sticks')

    def broken(*args, **kwargs):
        raise RuntimeError('disk on fire')

    monkeypatch.setattr(arena.repo, 'create_move', broken)
    result = arena.submit_move(match.id, joiner.id, {'take': 1})
    assert not result.accepted and result.reason == 'internal_error'
    assert channels[joiner.id].events('game_update') == []
    monkeypatch.undo()

    # the client can simply resubmit
    assert arena.submit_move(match.id, joiner.id, {'take': 1}).move_number == 1


def test_failed_settlement_rolls_back_the_final_move(arena, paired_match, monkeypatch):
    match, creator, joiner, channels = paired_match('rps', stake='10')
    play(arena, match, (joiner, {'move': 'rock'}))

    def broken(*args, **kwargs):
        raise RuntimeError('ledger unavailable')

    monkeypatch.setattr(arena.settlement, 'settle', broken)
    result = arena.submit_move(match.id, creator.id, {'move': 'paper'})
    assert result.reason == 'internal_error'

    reloaded = arena.repo.get_match(match.id)
    assert reloaded.state == 'in_progress'
    assert GameMove.query.filter_by(match_id=match.id).count() == 1
    assert arena.repo.get_user(creator.id).balance == Decimal('1337.50')
    assert channels[creator.id].events('game_result') == []
    assert len(channels[creator.id].events('game_update')) == 1


def test_left_player_gets_no_updates(arena, paired_match):
    match, creator, joiner, channels = paired_match('sticks')
    arena.presence.leave_match(creator.id)
    assert arena.submit_move(match.id, joiner.id, {'take': 1}).accepted
    assert channels[creator.id].events('game_update') == []
    assert len(channels[joiner.id].events('game_update')) == 1
    # leaving routing is not a resignation
    assert arena.repo.get_match(match.id).state == 'in_progress'


def test_disconnect_forfeits_running_match(arena, paired_match):
    match, creator, joiner, channels = paired_match('tictactoe', stake='10')
    gone = arena.handle_disconnect(f"conn-{creator.id}")
    assert gone == {'player_id': creator.id, 'forfeited': [match.id]}

    finished = arena.repo.get_match(match.id)
    assert finished.state == 'finished'
    assert finished.winner_id == joiner.id
    assert finished.state_dict()['forfeited_by'] == creator.id
    [result] = channels[joiner.id].events('game_result')
    assert result['result'] == 'win'
    assert channels[creator.id].events('game_result') == []
    assert arena.repo.get_user(joiner.id).balance == Decimal('1356.50')
    assert arena.repo.get_user(creator.id).balance == Decimal('1327.50')


def test_disconnect_without_forfeit_leaves_match_running(arena, paired_match):
    match, creator, joiner, _ = paired_match('tictactoe')
    gone = arena.handle_disconnect(f"conn-{creator.id}", forfeit=False)
    assert gone['forfeited'] == []
    assert arena.repo.get_match(match.id).state == 'in_progress'


def test_match_locks_are_per_match():
    locks = MatchLocks()
    held = locks.for_match('a')
    assert locks.for_match('a') is held
    assert locks.for_match('b') is not held
    assert len(locks) == 1
    del held
    assert len(locks) == 0


def test_unknown_match_ids_leave_no_locks(arena):
    for n in range(200):
        result = arena.submit_move(f"missing-{n}", 'nobody', {'take': 1})
        assert result.reason == 'match_not_found'
    assert len(arena.locks) == 0


def test_finished_match_releases_its_lock(arena, paired_match):
    match, creator, joiner, _ = paired_match('rps')
    play(arena, match, (joiner, {'move': 'rock'}), (creator, {'move': 'paper'}))
    arena.submit_move(match.id, joiner.id, {'move': 'paper'})
    assert len(arena.locks) == 0


def test_match_lock_serializes_holders():
    locks = MatchLocks()
    order = []
    lock = locks.for_match('m')
    lock.acquire()

    def contender():
        with locks.for_match('m'):
            order.append('contender')

    worker = Thread(target=contender)
    worker.start()
    order.append('holder')
    lock.release()
    worker.join(timeout=5)
    assert order == ['holder', 'contender']
