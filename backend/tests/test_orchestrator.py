import random

import pytest

from conftest import FlakyStore, config_dict
from partyboard.challenges.catalog import BUILTIN_CHALLENGES
from partyboard.extensions import build_services
from partyboard.game.board import generate_board
from partyboard.game.service import room_public_state
from partyboard.realtime.events import Outbound


def _names(dispatch, to=None):
    return [o.event for o in dispatch.events if to is None or o.to == to]


def _payload(dispatch, event):
    return next(o.payload for o in dispatch.events if o.event == event)


def _error_code(dispatch):
    assert _names(dispatch) == ['error']
    assert dispatch.events[0].to == 'connection'
    return dispatch.events[0].payload['code']


def _lobby(orchestrator, services, *guests):
    room_id = orchestrator.create_room('sid-0', {'playerName': 'Alice'}).room_id
    code = services.registry.get_room(room_id).code
    for i, name in enumerate(guests, start=1):
        orchestrator.join_room(f'sid-{i}', {'code': code, 'playerName': name})

    # Seed "A" on 14 tiles: 1 BONUS, 2 NORMAL, 4 CHALLENGE, 12 PENALTY, 13 FINISH
    room = services.registry.get_room(room_id)
    room.board = generate_board('A', 14)
    services.registry.save(room)
    return room_id


def _started(orchestrator, services, *guests):
    room_id = _lobby(orchestrator, services, *guests)
    orchestrator.start_game('sid-0', {'roomId': room_id})
    return room_id


def test_create_room_replies_to_creator(orchestrator):
    d = orchestrator.create_room('sid-0', {'playerName': 'Alice', 'avatar': 'fox'})

    assert d.join
    assert _names(d, to='connection') == ['room_updated']
    state = _payload(d, 'room_updated')
    assert state['status'] == 'WAITING'
    assert state['players'][0]['playerSessionId']
    assert state['players'][0]['avatar'] == 'fox'


def test_join_unknown_code(orchestrator):
    d = orchestrator.join_room('sid-1', {'code': 'ZZZZZZ', 'playerName': 'Bob'})
    assert d.events == [
        Outbound('error', {'message': 'Room not found', 'code': 'room_not_found'}, 'connection'),
    ]


def test_join_updates_everyone(orchestrator, services):
    room_id = orchestrator.create_room('sid-0', {'playerName': 'Alice'}).room_id
    code = services.registry.get_room(room_id).code

    d = orchestrator.join_room('sid-1', {'code': code.lower(), 'playerName': 'Bob'})

    assert d.room_id == room_id and d.join
    others, mine = d.events
    assert (others.event, others.to) == ('room_updated', 'others')
    assert all('playerSessionId' not in p for p in others.payload['players'])
    assert (mine.event, mine.to) == ('room_updated', 'connection')
    assert 'playerSessionId' in mine.payload['players'][1]


@pytest.mark.parametrize('data', [None, 'Alice', {'playerName': ''}, {'playerName': 42}])
def test_create_room_rejects_bad_payload(orchestrator, data):
    assert _error_code(orchestrator.create_room('sid-0', data)) == 'invalid_payload'


@pytest.mark.parametrize('name', ['A' * 17, '<b>Bob</b>', 'Bo>b', 'Bo\x07b', 'Bob\nSmith'])
def test_player_names_are_validated(orchestrator, services, name):
    assert _error_code(orchestrator.create_room('sid-0', {'playerName': name})) == 'invalid_payload'

    room_id = orchestrator.create_room('sid-0', {'playerName': 'Alice'}).room_id
    code = services.registry.get_room(room_id).code
    d = orchestrator.join_room('sid-1', {'code': code, 'playerName': name})
    assert _error_code(d) == 'invalid_payload'
    assert len(services.registry.get_room(room_id).players) == 1


def test_longest_allowed_name(orchestrator, services):
    d = orchestrator.create_room('sid-0', {'playerName': '  ' + 'A' * 16 + '  '})
    assert _payload(d, 'room_updated')['players'][0]['name'] == 'A' * 16


def test_start_game(orchestrator, services):
    room_id = _lobby(orchestrator, services, 'Bob')

    assert _error_code(orchestrator.start_game('sid-1', {'roomId': room_id})) == 'only_host'

    d = orchestrator.start_game('sid-0', {'roomId': room_id})
    assert _names(d) == ['game_started', 'turn_changed']
    assert _payload(d, 'game_started')['status'] == 'PLAYING'
    turn = _payload(d, 'turn_changed')
    assert turn['currentTurn'] == 0
    assert turn['currentPlayer']['name'] == 'Alice'


def test_start_needs_two_players(orchestrator, services):
    room_id = _lobby(orchestrator, services)
    d = orchestrator.start_game('sid-0', {'roomId': room_id})
    assert d.events[0].payload['message'] == 'Need at least 2 players to start'


def test_roll_dice(orchestrator, services):
    room_id = _lobby(orchestrator, services, 'Bob')
    assert _error_code(orchestrator.roll_dice('sid-0', {'roomId': room_id})) == 'game_not_in_progress'

    orchestrator.start_game('sid-0', {'roomId': room_id})

    d = orchestrator.roll_dice('sid-1', {'roomId': room_id})
    assert d.events[0].payload == {'message': 'Not your turn', 'code': 'not_your_turn'}

    d = orchestrator.roll_dice('sid-0', {'roomId': room_id})
    rolled = _payload(d, 'dice_rolled')
    assert rolled['playerId'] == 'sid-0'
    assert rolled['playerName'] == 'Alice'
    assert 1 <= rolled['diceRoll'] <= 6


def test_move_to_normal_tile_advances_turn(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')

    d = orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': 2})

    assert _names(d) == ['player_moved', 'turn_changed']
    moved = _payload(d, 'player_moved')
    assert moved['newPosition'] == 2
    assert moved['tile']['type'] == 'NORMAL'
    assert _payload(d, 'turn_changed')['currentTurn'] == 1


def test_move_to_challenge_tile_holds_turn(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')

    d = orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': 4})

    assert _names(d) == ['player_moved', 'challenge_started']
    started = _payload(d, 'challenge_started')
    assert started['playerId'] == 'sid-0'
    assert started['tile']['challengeId'] == 'challenge_4'
    assert started['challenge']['ageRating'] == 'ALL'
    assert services.registry.get_room(room_id).current_turn == 0


def test_move_to_finish(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')

    d = orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': 20})

    assert _names(d) == ['player_moved', 'player_finished', 'turn_changed']
    assert _payload(d, 'player_moved')['newPosition'] == 13
    assert _payload(d, 'player_finished') == {'playerId': 'sid-0', 'playerName': 'Alice'}


def test_disabled_challenges_make_special_tiles_plain(orchestrator, services):
    services.settings.update_settings({'enableChallenges': False})
    room_id = _started(orchestrator, services, 'Bob')

    d = orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': 4})
    assert _names(d) == ['player_moved', 'turn_changed']


@pytest.mark.parametrize('roll', ['4', -1, True, None, 2.5])
def test_move_rejects_bad_rolls(orchestrator, services, roll):
    room_id = _started(orchestrator, services, 'Bob')
    d = orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': roll})
    assert _error_code(d) == 'invalid_payload'


def test_move_out_of_turn(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    d = orchestrator.move_player('sid-1', {'roomId': room_id, 'diceRoll': 3})
    assert _error_code(d) == 'not_your_turn'
    assert services.registry.get_room(room_id).find_player('sid-1').position == 0


def test_unknown_rooms_leave_no_locks_behind(orchestrator, services):
    for i in range(500):
        d = orchestrator.roll_dice('sid-0', {'roomId': f'bogus-{i}'})
        assert _error_code(d) == 'room_not_found'
    assert services.registry.lock_count() == 0


def _land_on(orchestrator, services, room_id, challenge_id):
    services.challenges.catalog = tuple(c for c in BUILTIN_CHALLENGES if c.id == challenge_id)
    d = orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': 4})
    assert _payload(d, 'challenge_started')['challenge']['id'] == challenge_id
    return d


def test_landing_records_pending_challenge(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    _land_on(orchestrator, services, room_id, 'action_2')

    room = services.registry.get_room(room_id)
    assert room.pending_challenge.challenge_id == 'action_2'
    assert room.challenger() is room.find_player('sid-0')
    assert room_public_state(room)['pendingChallengeId'] == 'action_2'

    assert _error_code(orchestrator.roll_dice('sid-0', {'roomId': room_id})) == 'challenge_pending'
    d = orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': 2})
    assert _error_code(d) == 'challenge_pending'
    assert services.registry.get_room(room_id).find_player('sid-0').position == 4


def test_trivia_answers_are_checked(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    _land_on(orchestrator, services, room_id, 'trivia_1')

    d = orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'trivia_1', 'answer': 1})
    assert _names(d) == ['challenge_completed', 'turn_changed']
    assert _payload(d, 'challenge_completed')['success'] is True
    assert services.registry.get_room(room_id).pending_challenge is None


def test_wrong_trivia_answer_beats_claimed_success(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    _land_on(orchestrator, services, room_id, 'trivia_1')

    d = orchestrator.complete_challenge('sid-0', {
        'roomId': room_id, 'challengeId': 'trivia_1', 'answer': 3, 'success': True,
    })
    assert _payload(d, 'challenge_completed')['success'] is False


def test_explicit_success(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    _land_on(orchestrator, services, room_id, 'action_2')

    d = orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_2', 'success': True})
    assert _payload(d, 'challenge_completed') == {
        'playerId': 'sid-0', 'playerName': 'Alice', 'challengeId': 'action_2', 'success': True,
    }
    assert _payload(d, 'turn_changed')['currentTurn'] == 1


@pytest.mark.parametrize('challenge_id', ['action_1', 'nope'])
def test_completion_must_match_started_challenge(orchestrator, services, challenge_id):
    room_id = _started(orchestrator, services, 'Bob')
    _land_on(orchestrator, services, room_id, 'action_2')

    d = orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': challenge_id, 'success': True})
    assert _error_code(d) == 'no_challenge_pending'
    assert services.registry.get_room(room_id).current_turn == 0


def test_completion_requires_game_in_progress(orchestrator, services):
    room_id = _lobby(orchestrator, services, 'Bob')
    d = orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_1', 'success': True})
    assert _error_code(d) == 'game_not_in_progress'


def test_bystander_cannot_complete(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob', 'Carol')
    payload = {'roomId': room_id, 'challengeId': 'action_2', 'success': True}

    assert _error_code(orchestrator.complete_challenge('sid-2', payload)) == 'not_your_turn'
    assert _error_code(orchestrator.complete_challenge('sid-0', payload)) == 'no_challenge_pending'

    _land_on(orchestrator, services, room_id, 'action_2')
    assert _error_code(orchestrator.complete_challenge('sid-2', payload)) == 'not_your_turn'
    assert services.registry.get_room(room_id).current_turn == 0


def test_completion_after_plain_move_is_rejected(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob', 'Carol')
    orchestrator.move_player('sid-0', {'roomId': room_id, 'diceRoll': 2})
    payload = {'roomId': room_id, 'challengeId': 'action_2', 'success': True}

    assert _error_code(orchestrator.complete_challenge('sid-0', payload)) == 'not_your_turn'
    assert _error_code(orchestrator.complete_challenge('sid-1', payload)) == 'no_challenge_pending'
    assert services.registry.get_room(room_id).current_turn == 1


def test_challenge_completes_once(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob', 'Carol')
    _land_on(orchestrator, services, room_id, 'action_2')
    payload = {'roomId': room_id, 'challengeId': 'action_2', 'success': True}

    assert _names(orchestrator.complete_challenge('sid-0', payload)) == ['challenge_completed', 'turn_changed']
    assert _error_code(orchestrator.complete_challenge('sid-0', payload)) == 'not_your_turn'
    assert services.registry.get_room(room_id).current_turn == 1


def test_peer_vote_passes(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    _land_on(orchestrator, services, room_id, 'action_1')

    d = orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_1'})
    assert _names(d) == ['vote_started']
    assert _payload(d, 'vote_started') == {
        'challengingPlayerId': 'sid-0',
        'challengingPlayerName': 'Alice',
        'challengeId': 'action_1',
        'totalVoters': 1,
    }

    assert _error_code(orchestrator.cast_vote('sid-0', {'roomId': room_id, 'vote': True})) == 'vote_not_allowed'

    d = orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': True})
    assert _names(d) == ['vote_updated', 'challenge_completed', 'turn_changed']
    assert _payload(d, 'vote_updated') == {'votes': [{'playerId': 'sid-1', 'vote': True}], 'totalVoters': 1}
    assert _payload(d, 'challenge_completed')['success'] is True
    assert services.voting.get_voting_session(room_id) is None
    assert services.registry.get_room(room_id).pending_challenge is None


def test_open_vote_cannot_be_bypassed(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob', 'Carol')
    _land_on(orchestrator, services, room_id, 'action_1')
    orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_1'})

    for extra in ({'success': True}, {}):
        d = orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_1', **extra})
        assert _error_code(d) == 'vote_not_allowed'
    assert services.registry.get_room(room_id).current_turn == 0

    orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': True})
    d = orchestrator.cast_vote('sid-2', {'roomId': room_id, 'vote': True})
    assert _names(d) == ['vote_updated', 'challenge_completed', 'turn_changed']
    assert services.registry.get_room(room_id).current_turn == 1

    assert _error_code(orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': False})) == 'vote_not_allowed'
    assert services.registry.get_room(room_id).current_turn == 1


def test_peer_vote_tie_fails(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob', 'Carol')
    _land_on(orchestrator, services, room_id, 'action_3')
    orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_3'})

    d = orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': True})
    assert _names(d) == ['vote_updated']

    d = orchestrator.cast_vote('sid-2', {'roomId': room_id, 'vote': False})
    assert _payload(d, 'challenge_completed')['success'] is False


def test_vote_with_nobody_to_vote_fails_immediately(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    orchestrator.disconnect('sid-1', room_id)
    _land_on(orchestrator, services, room_id, 'action_1')

    d = orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_1'})
    assert _names(d) == ['challenge_completed', 'turn_changed']
    assert _payload(d, 'challenge_completed')['success'] is False


def _open_vote(orchestrator, services, *guests):
    room_id = _started(orchestrator, services, *guests)
    _land_on(orchestrator, services, room_id, 'action_1')
    orchestrator.complete_challenge('sid-0', {'roomId': room_id, 'challengeId': 'action_1'})
    return room_id


def test_voter_leaving_settles_vote(orchestrator, services):
    room_id = _open_vote(orchestrator, services, 'Bob', 'Carol')
    orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': True})

    d = orchestrator.leave_room('sid-2', {'roomId': room_id})

    assert _names(d, to='room') == ['vote_updated', 'challenge_completed', 'turn_changed']
    assert _payload(d, 'vote_updated')['totalVoters'] == 1
    assert _payload(d, 'challenge_completed')['success'] is True
    assert services.voting.get_voting_session(room_id) is None
    assert services.registry.get_room(room_id).current_turn == 1


def test_voter_disconnect_settles_vote(orchestrator, services):
    room_id = _open_vote(orchestrator, services, 'Bob', 'Carol')
    orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': False})

    d = orchestrator.disconnect('sid-2', room_id)

    assert _names(d) == ['player_disconnected', 'vote_updated', 'challenge_completed', 'turn_changed']
    assert _payload(d, 'challenge_completed')['success'] is False


def test_disconnect_after_voting_keeps_the_ballot(orchestrator, services):
    room_id = _open_vote(orchestrator, services, 'Bob', 'Carol', 'Dan')
    orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': True})

    d = orchestrator.disconnect('sid-1', room_id)

    assert _names(d) == ['player_disconnected']
    assert services.voting.get_voting_session(room_id).total_voters == 3


def test_challenger_leaving_drops_vote(orchestrator, services):
    room_id = _open_vote(orchestrator, services, 'Bob', 'Carol')

    orchestrator.leave_room('sid-0', {'roomId': room_id})

    room = services.registry.get_room(room_id)
    assert services.voting.get_voting_session(room_id) is None
    assert room.pending_challenge is None
    assert room.current_player().name == 'Bob'


def test_reconnected_challenger_still_cannot_vote(orchestrator, services):
    room_id = _open_vote(orchestrator, services, 'Bob', 'Carol')
    session_id = services.registry.get_room(room_id).find_player('sid-0').player_session_id
    orchestrator.disconnect('sid-0', room_id)
    orchestrator.reconnect_player('sid-0b', {'playerSessionId': session_id})

    assert _error_code(orchestrator.cast_vote('sid-0b', {'roomId': room_id, 'vote': True})) == 'vote_not_allowed'
    assert services.voting.get_voting_session(room_id).total_voters == 2


def test_cast_vote_guards(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    assert _error_code(orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': True})) == 'vote_not_allowed'
    assert _error_code(orchestrator.cast_vote('sid-1', {'roomId': room_id, 'vote': 'yes'})) == 'invalid_payload'


def test_reconnect_unknown_session(orchestrator):
    d = orchestrator.reconnect_player('sid-9', {'playerSessionId': 'nope'})
    assert d.events == [
        Outbound('error', {'message': 'Session not found', 'code': 'session_not_found'}, 'connection'),
    ]


def test_reconnect(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    session_id = services.registry.get_room(room_id).find_player('sid-1').player_session_id
    orchestrator.disconnect('sid-1', room_id)

    d = orchestrator.reconnect_player('sid-1b', {'playerSessionId': session_id})

    assert d.join and d.room_id == room_id
    assert _names(d) == ['room_updated', 'player_reconnected']
    state = _payload(d, 'room_updated')
    bob = state['players'][1]
    assert bob['id'] == 'sid-1b'
    assert bob['isConnected'] is True
    assert bob['playerSessionId'] == session_id
    assert _payload(d, 'player_reconnected') == {'playerId': 'sid-1b', 'playerName': 'Bob'}


def test_host_disconnect_promotes_oldest_connected(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob', 'Carol')

    d = orchestrator.disconnect('sid-0', room_id)

    assert _names(d, to='others') == ['player_disconnected', 'host_changed']
    assert _payload(d, 'host_changed') == {'newHostId': 'sid-1', 'newHostName': 'Bob'}
    room = services.registry.get_room(room_id)
    assert room.host_id == 'sid-1'
    assert room.find_player('sid-0').is_connected is False


def test_guest_disconnect(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    d = orchestrator.disconnect('sid-1', room_id)
    assert _names(d) == ['player_disconnected']
    assert services.registry.get_room(room_id).host_id == 'sid-0'


def test_disconnect_of_stranger_is_silent(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')
    assert orchestrator.disconnect('sid-x', room_id).events == []
    assert orchestrator.disconnect('sid-x', 'room_missing').events == []


def test_host_leaves_mid_game(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob', 'Carol')

    d = orchestrator.leave_room('sid-0', {'roomId': room_id})

    assert d.leave
    assert _names(d, to='others') == ['room_updated', 'host_changed', 'turn_changed']
    assert [p['name'] for p in _payload(d, 'room_updated')['players']] == ['Bob', 'Carol']
    assert _payload(d, 'host_changed')['newHostId'] == 'sid-1'


def test_leave_unknown_player(orchestrator, services):
    room_id = _lobby(orchestrator, services, 'Bob')
    assert _error_code(orchestrator.leave_room('sid-x', {'roomId': room_id})) == 'player_not_found'


def test_finish_game(orchestrator, services):
    room_id = _started(orchestrator, services, 'Bob')

    assert _error_code(orchestrator.finish_game('sid-1', {'roomId': room_id})) == 'only_host'

    d = orchestrator.finish_game('sid-0', {'roomId': room_id})
    assert _names(d) == ['game_ended']
    assert _payload(d, 'game_ended')['status'] == 'FINISHED'


def test_store_failure_is_reported_to_actor_only():
    store = FlakyStore()
    services = build_services(config_dict(), store=store, rng=random.Random(1))
    store.failing.add('setex')

    d = services.orchestrator.create_room('sid-0', {'playerName': 'Alice'})
    assert _error_code(d) == 'store_unavailable'
