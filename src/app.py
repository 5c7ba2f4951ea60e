"""
Flask web application for MusikMadness tournaments.
"""
import os
import re
import yaml
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from filelock import FileLock, Timeout
from flask import Flask, render_template, request, jsonify, session, abort
from werkzeug.security import check_password_hash, generate_password_hash

from madness.elimination import bracket_summary
from madness.errors import RegistrationError, TournamentError, TournamentNotFoundError
from madness.layout import compute_layout, preview_layout
from madness.models import Participant
from madness.progression import round_progress
from madness.tournaments import (
    Tournament, begin_tournament, cast_vote, complete_round, create_tournament, get_matchup,
    join_tournament, leave_tournament, record_result, STATUS_COMPLETED,
)

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('MUSIKMADNESS_DATA_DIR', os.path.join(BASE_DIR, 'data'))
USERS_FILE = os.path.join(DATA_DIR, 'users.yaml')
TOURNAMENTS_DIR = os.path.join(DATA_DIR, 'tournaments')
TOURNAMENT_FILE_NAME = 'tournament.yaml'

_TOURNAMENT_ID_RE = re.compile(r'^[a-z0-9][a-z0-9-]*$')
_USERNAME_RE = re.compile(r'^[a-z0-9][a-z0-9_-]+$')


def _load_secret_key() -> bytes:
    """SECRET_KEY from the environment, else a random key kept in the data directory."""
    if os.environ.get('SECRET_KEY'):
        return os.environ['SECRET_KEY'].encode()
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if not os.path.exists(key_file):
        os.makedirs(DATA_DIR, exist_ok=True)
        with open(key_file, 'wb') as f:
            f.write(os.urandom(24))
    with open(key_file, 'rb') as f:
        return f.read()


app.secret_key = _load_secret_key()
app.config['MIN_PARTICIPANTS'] = int(os.environ.get('MUSIKMADNESS_MIN_PARTICIPANTS', '2'))
app.config['LOCK_TIMEOUT'] = float(os.environ.get('MUSIKMADNESS_LOCK_TIMEOUT', '10'))


def ensure_data_structure():
    """Ensure the data directories exist."""
    os.makedirs(TOURNAMENTS_DIR, exist_ok=True)


ensure_data_structure()


def _data_lock() -> FileLock:
    os.makedirs(DATA_DIR, exist_ok=True)
    return FileLock(os.path.join(DATA_DIR, '.lock'), timeout=app.config['LOCK_TIMEOUT'])


def _write_yaml(path: str, data: dict):
    """Write to a temp file and swap it in, so readers never see a partial record."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    tmp_path = path + '.tmp'
    with open(tmp_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    os.replace(tmp_path, path)


def load_users() -> dict:
    """
    Registered users keyed by username.

    Raises yaml.YAMLError when the registry is corrupt; registration lets it
    propagate so a broken file is never overwritten with a single user.
    """
    if not os.path.exists(USERS_FILE):
        return {}
    with open(USERS_FILE, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return data.get('users') or {}


def _normalize_username(username) -> str:
    return str(username or '').lower().strip()


def register_user(username: str, password: str) -> str:
    """Add a user with a hashed password and return the stored username."""
    username = _normalize_username(username)
    if not _USERNAME_RE.match(username):
        raise RegistrationError('Username must be at least 2 characters: letters, numbers, hyphens, underscores.')
    if len(password or '') < 4:
        raise RegistrationError('Password must be at least 4 characters.')
    with _data_lock():
        users = load_users()
        if username in users:
            raise RegistrationError('Username already taken.')
        users[username] = {
            'passwordHash': generate_password_hash(password),
            'created': datetime.now().isoformat(),
        }
        _write_yaml(USERS_FILE, {'users': users})
    return username


def authenticate_user(username: str, password: str) -> bool:
    try:
        users = load_users()
    except yaml.YAMLError as e:
        app.logger.warning(f'Cannot read {USERS_FILE}, refusing login: {e}')
        return False
    user = users.get(_normalize_username(username))
    return user is not None and check_password_hash(user['passwordHash'], password or '')


def login_required(f):
    """Reject requests without a logged in user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'success': False, 'error': 'Login required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _slugify(name: str) -> str:
    """Convert tournament name to filesystem-safe slug."""
    slug = name.lower().strip()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'[\s-]+', '-', slug)
    slug = slug.strip('-')
    return slug or 'tournament'


def _tournament_dir(tournament_id: str) -> str:
    if not _TOURNAMENT_ID_RE.match(tournament_id or ''):
        raise TournamentNotFoundError('Tournament not found')
    return os.path.join(TOURNAMENTS_DIR, tournament_id)


def _tournament_file(tournament_id: str) -> str:
    return os.path.join(_tournament_dir(tournament_id), TOURNAMENT_FILE_NAME)


def _tournament_lock(tournament_id: str) -> FileLock:
    return FileLock(os.path.join(_tournament_dir(tournament_id), '.lock'),
                    timeout=app.config['LOCK_TIMEOUT'])


def _new_tournament_id(name: str) -> str:
    base = _slugify(name)
    tournament_id = base
    suffix = 2
    while os.path.exists(os.path.join(TOURNAMENTS_DIR, tournament_id)):
        tournament_id = f'{base}-{suffix}'
        suffix += 1
    return tournament_id


def load_tournament(tournament_id: str) -> Tournament:
    """Load a tournament record. Raises TournamentNotFoundError if missing."""
    path = _tournament_file(tournament_id)
    if not os.path.exists(path):
        raise TournamentNotFoundError('Tournament not found')
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not data:
        raise TournamentNotFoundError('Tournament not found')
    return Tournament.from_dict(data)


def save_tournament(tournament: Tournament):
    _write_yaml(_tournament_file(tournament.tournament_id), tournament.to_dict())


def list_tournaments() -> list:
    if not os.path.isdir(TOURNAMENTS_DIR):
        return []
    tournaments = []
    for entry in sorted(os.listdir(TOURNAMENTS_DIR)):
        if not os.path.exists(os.path.join(TOURNAMENTS_DIR, entry, TOURNAMENT_FILE_NAME)):
            continue
        try:
            tournaments.append(load_tournament(entry))
        except (yaml.YAMLError, KeyError, TournamentNotFoundError) as e:
            app.logger.warning(f'Failed to load tournament {entry}: {e}')
    return tournaments


@contextmanager
def locked_tournament(tournament_id: str):
    """
    Load a tournament under its file lock and save it when the block exits.

    If the block raises, nothing is written.
    """
    if not os.path.exists(_tournament_file(tournament_id)):
        raise TournamentNotFoundError('Tournament not found')
    with _tournament_lock(tournament_id):
        tournament = load_tournament(tournament_id)
        yield tournament
        save_tournament(tournament)


def tournament_payload(tournament: Tournament) -> dict:
    """Tournament as returned by the API, with bracket statistics once begun."""
    data = tournament.to_dict()
    data['votes'] = {matchup_id: len(ballots) for matchup_id, ballots in tournament.votes.items()}
    if tournament.generated_bracket is not None:
        data['summary'] = bracket_summary(tournament.generated_bracket, tournament.bracket_size)
        data['progress'] = round_progress(tournament.generated_bracket)
    return data


def tournament_layout(tournament: Tournament) -> dict:
    if tournament.generated_bracket is None:
        return preview_layout(tournament.participants, tournament.bracket_size)
    return compute_layout(tournament.generated_bracket, tournament.bracket_size)


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    return jsonify({'success': False, 'error': error.message}), error.http_status


@app.errorhandler(Timeout)
def handle_lock_timeout(error):
    app.logger.warning(f'Lock timeout: {error}')
    return jsonify({'success': False, 'error': 'Tournament is busy, please try again.'}), 503


@app.route('/api/register', methods=['POST'])
def api_register():
    data = request.get_json(silent=True) or {}
    session['user'] = register_user(data.get('username'), data.get('password'))
    return jsonify({'success': True, 'user': session['user']})


@app.route('/api/login', methods=['POST'])
def api_login():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    if not authenticate_user(username, data.get('password')):
        return jsonify({'success': False, 'error': 'Invalid username or password.'}), 401
    session['user'] = _normalize_username(username)
    return jsonify({'success': True})


@app.route('/api/logout', methods=['POST'])
def api_logout():
    session.pop('user', None)
    return jsonify({'success': True})


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    tournaments = [{
        'id': t.tournament_id,
        'name': t.name,
        'status': t.status,
        'creator': t.creator,
        'participants': len(t.participants),
        'maxPlayers': t.max_players,
    } for t in list_tournaments()]
    return jsonify({'success': True, 'tournaments': tournaments})


@app.route('/api/tournaments', methods=['POST'])
@login_required
def api_create_tournament():
    data = request.get_json(silent=True) or {}
    max_players = data.get('maxPlayers', 64)
    if not isinstance(max_players, int):
        return jsonify({'success': False, 'error': 'maxPlayers must be an integer'}), 400

    name = (data.get('name') or '').strip()
    ensure_data_structure()
    with _data_lock():
        tournament = create_tournament(_new_tournament_id(name), name, session['user'],
                                       max_players, data.get('description', ''))
        save_tournament(tournament)

    app.logger.info(f'Tournament {tournament.tournament_id} created by {tournament.creator}')
    return jsonify({'success': True, 'tournament': tournament_payload(tournament)}), 201


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
def api_get_tournament(tournament_id):
    tournament = load_tournament(tournament_id)
    return jsonify({'success': True, 'tournament': tournament_payload(tournament)})


@app.route('/api/tournaments/<tournament_id>/join', methods=['POST'])
@login_required
def api_join_tournament(tournament_id):
    user = session['user']
    with locked_tournament(tournament_id) as tournament:
        join_tournament(tournament, Participant(user, user))
    return jsonify({'success': True, 'tournament': tournament_payload(tournament)})


@app.route('/api/tournaments/<tournament_id>/leave', methods=['POST'])
@login_required
def api_leave_tournament(tournament_id):
    with locked_tournament(tournament_id) as tournament:
        leave_tournament(tournament, session['user'])
    return jsonify({'success': True, 'tournament': tournament_payload(tournament)})


@app.route('/api/tournaments/<tournament_id>/begin', methods=['POST'])
@login_required
def api_begin_tournament(tournament_id):
    """Generate the bracket and start the tournament.

    The status check and the bracket write happen under the tournament's lock,
    so two concurrent requests cannot both seed a bracket.
    """
    with locked_tournament(tournament_id) as tournament:
        begin_tournament(tournament, session['user'],
                         min_participants=app.config['MIN_PARTICIPANTS'])

    app.logger.info(f'Tournament {tournament_id} started with {len(tournament.participants)} '
                    f'participants (bracket of {tournament.bracket_size})')
    return jsonify({
        'success': True,
        'message': 'Tournament successfully started and bracket generated.',
        'tournament': tournament_payload(tournament)
    })


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['GET'])
def api_tournament_bracket(tournament_id):
    tournament = load_tournament(tournament_id)
    return jsonify({'success': True, 'status': tournament.status, 'layout': tournament_layout(tournament)})


@app.route('/api/tournaments/<tournament_id>/matchups/<matchup_id>', methods=['GET'])
def api_get_matchup(tournament_id, matchup_id):
    tournament = load_tournament(tournament_id)
    matchup = get_matchup(tournament, matchup_id)
    return jsonify({
        'success': True,
        'matchup': matchup.to_dict(),
        'votes': len(tournament.votes.get(matchup_id, {}))
    })


@app.route('/api/tournaments/<tournament_id>/matchups/<matchup_id>/vote', methods=['POST'])
@login_required
def api_vote(tournament_id, matchup_id):
    data = request.get_json(silent=True) or {}
    participant_id = data.get('participantId')
    if not participant_id:
        return jsonify({'success': False, 'error': 'participantId is required'}), 400

    with locked_tournament(tournament_id) as tournament:
        matchup = cast_vote(tournament, session['user'], matchup_id, participant_id)
    return jsonify({'success': True, 'matchup': matchup.to_dict()})


@app.route('/api/tournaments/<tournament_id>/matchups/<matchup_id>/result', methods=['POST'])
@login_required
def api_record_result(tournament_id, matchup_id):
    data = request.get_json(silent=True) or {}
    with locked_tournament(tournament_id) as tournament:
        matchup = record_result(tournament, session['user'], matchup_id,
                                data.get('winnerParticipantId'))

    app.logger.info(f'Tournament {tournament_id}: {matchup_id} won by {matchup.winner_participant_id}')
    if tournament.status == STATUS_COMPLETED:
        app.logger.info(f'Tournament {tournament_id} completed, champion {tournament.champion}')
    return jsonify({
        'success': True,
        'matchup': matchup.to_dict(),
        'tournament': tournament_payload(tournament)
    })


@app.route('/api/tournaments/<tournament_id>/rounds/<int:round_number>/complete', methods=['POST'])
@login_required
def api_complete_round(tournament_id, round_number):
    """Decide every open matchup in a round by its votes."""
    with locked_tournament(tournament_id) as tournament:
        decided = complete_round(tournament, session['user'], round_number)

    app.logger.info(f'Tournament {tournament_id}: round {round_number} completed '
                    f'({len(decided)} matchups decided)')
    if tournament.status == STATUS_COMPLETED:
        app.logger.info(f'Tournament {tournament_id} completed, champion {tournament.champion}')
    return jsonify({
        'success': True,
        'matchups': [m.to_dict() for m in decided],
        'tournament': tournament_payload(tournament)
    })


@app.route('/tournaments/<tournament_id>/bracket')
def bracket_page(tournament_id):
    try:
        tournament = load_tournament(tournament_id)
    except TournamentNotFoundError:
        abort(404)
    return render_template('bracket.html', tournament=tournament, layout=tournament_layout(tournament))


if __name__ == '__main__':
    app.run(debug=True, port=5000)
