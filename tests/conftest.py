"""
Shared pytest fixtures for MusikMadness tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from madness.models import Participant


def keep_order(items):
    """Shuffle stand-in that leaves the draw in join order."""


def make_participants(count, prefix='P'):
    return [Participant(f'{prefix}{i + 1}', f'Artist {i + 1}') for i in range(count)]


@pytest.fixture
def participants():
    """Factory for numbered participants: participants(5) -> P1..P5."""
    return make_participants


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app's data files at a temporary directory."""
    import app as app_module

    tournaments_dir = tmp_path / 'tournaments'
    tournaments_dir.mkdir()
    users_file = tmp_path / 'users.yaml'

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(app_module, 'USERS_FILE', str(users_file))
    monkeypatch.setattr(app_module, 'TOURNAMENTS_DIR', str(tournaments_dir))

    return tmp_path


@pytest.fixture
def client():
    """Create a test client logged in as the tournament creator."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'creator'
        yield client


@pytest.fixture
def anonymous_client():
    """Create a test client with no logged in user."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
