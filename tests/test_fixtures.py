"""
Unit tests for round-robin fixture generation.
"""
import pytest
import sys
import os
from itertools import combinations

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.models import Team
from bracket.fixtures import generate_round_robin, generate_group_fixtures, pairing_order


def _teams(n):
    return [Team(id=f"t{i}", name=f"Team {i}") for i in range(n)]


def _index_pairs(matches, teams):
    index = {t.id: i for i, t in enumerate(teams)}
    return [(index[m.team1_id], index[m.team2_id]) for m in matches]


class TestRoundRobin:
    """Tests for complete round robins."""

    @pytest.mark.parametrize("n", [2, 3, 4, 5, 6, 7, 8])
    def test_every_pair_once(self, n):
        teams = _teams(n)
        matches = generate_round_robin(teams, 'A')
        assert len(matches) == n * (n - 1) // 2
        pairs = [frozenset((m.team1_id, m.team2_id)) for m in matches]
        assert len(set(pairs)) == len(pairs)
        assert set(pairs) == {frozenset((a.id, b.id)) for a, b in combinations(teams, 2)}

    def test_single_team_has_no_matches(self):
        assert generate_round_robin(_teams(1), 'A') == []

    def test_four_team_schedule(self):
        teams = _teams(4)
        matches = generate_round_robin(teams, 'A')
        assert _index_pairs(matches, teams) == [(0, 1), (2, 3), (0, 2), (1, 3), (0, 3), (1, 2)]

    def test_five_team_schedule(self):
        teams = _teams(5)
        matches = generate_round_robin(teams, 'B')
        assert _index_pairs(matches, teams) == [
            (0, 1), (3, 4), (2, 1), (3, 0), (2, 4), (3, 1), (0, 4), (2, 3), (1, 4), (0, 2),
        ]

    def test_four_team_schedule_opens_with_disjoint_pairs(self):
        """All four teams play once before anyone plays a second match."""
        first, second = pairing_order(4)[:2]
        assert set(first) | set(second) == {0, 1, 2, 3}

    def test_generic_order_is_index_order(self):
        assert pairing_order(3) == [(0, 1), (0, 2), (1, 2)]

    def test_match_fields(self):
        matches = generate_round_robin(_teams(3), 'C')
        assert [m.id for m in matches] == ['m-group-C-0', 'm-group-C-1', 'm-group-C-2']
        assert all(m.stage == 'group' for m in matches)
        assert all(m.round_name == 'Group C' for m in matches)
        assert all(m.score1 is None and m.winner_id is None for m in matches)


class TestGroupFixtures:
    def test_all_groups(self):
        groups = {'B': _teams(3), 'A': _teams(4)}
        matches = generate_group_fixtures(groups)
        assert len(matches) == 6 + 3
        assert matches[0].round_name == 'Group A'
        assert matches[-1].round_name == 'Group B'
        assert len({m.id for m in matches}) == len(matches)
