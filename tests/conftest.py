"""
Shared pytest fixtures for paddle-bracket tests.

Running tests:
    pytest tests/
"""
import pytest
import random
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.models import Player, Team, TournamentConfig


def score_group_matches(state, scores=None):
    """
    Score every group match of a state.

    ``scores`` maps match id -> (score1, score2); unlisted matches are won
    1-0 by team1.
    """
    from bracket.tournament import record_score
    scores = scores or {}
    for match in state.group_matches:
        score1, score2 = scores.get(match.id, (1, 0))
        state = record_score(state, match.id, score1, score2)
    return state


@pytest.fixture
def rng():
    """Seeded random source for reproducible draws."""
    return random.Random(1234)


@pytest.fixture
def tiered_players():
    """Four A-tier and four B-tier players."""
    players = [Player(id=f"p-{i}", name=f"A Player {i}", level='A') for i in range(4)]
    players += [Player(id=f"p-{i + 4}", name=f"B Player {i}", level='B') for i in range(4)]
    return players


@pytest.fixture
def four_teams():
    """Four teams in Group A, in listing order T1..T4."""
    return [Team(id=f"T{i}", name=f"Team {i}", group='Group A') for i in range(1, 5)]


@pytest.fixture
def roster_text():
    """Sixteen singles entrants."""
    return '\n'.join(f"Player {i:02d}" for i in range(16))


@pytest.fixture
def two_group_config():
    return TournamentConfig(num_groups=2, mode='singles', has_knockout=True,
                            knockout_type='top2', shared_third_place=True)


@pytest.fixture
def client(tmp_path):
    """Flask test client backed by a temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    app.config['DATA_DIR'] = str(tmp_path)
    with app.test_client() as client:
        yield client
