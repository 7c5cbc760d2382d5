"""
Tests for the tournament entry points: generation, score entry and knockout settings.
"""
import pytest
import random
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import score_group_matches
from bracket.models import Resolved, TournamentConfig
from bracket.errors import ValidationError, ScoreRejectedError
from bracket.tournament import (
    regenerate_from_roster, record_score, record_scores, update_knockout_config, coerce_score,
    make_config, get_default_config, group_table, group_tables, podium, tournament_phase,
)


def _roster(n, tiers=False):
    if tiers:
        return '\n'.join(f"Player {i} - {'A' if i % 2 else 'B'}" for i in range(n))
    return '\n'.join(f"Player {i}" for i in range(n))


def _ko_ids(state):
    return [m.id for m in state.knockout_matches]


@pytest.fixture
def two_groups(two_group_config):
    """Eight singles players in two groups of four, nothing scored."""
    return regenerate_from_roster(_roster(8), two_group_config, name='Club Night',
                                  created_by='admin', tournament_id='club-night', rng=random.Random(8))


@pytest.fixture
def groups_done(two_groups):
    return score_group_matches(two_groups)


class TestRegenerate:
    """Tests for building a tournament from a roster."""

    def test_basic_shape(self, two_groups):
        assert two_groups.id == 'club-night'
        assert two_groups.name == 'Club Night'
        assert two_groups.created_by == 'admin'
        assert len(two_groups.teams) == 8
        assert len(two_groups.group_matches) == 12
        assert two_groups.group_names() == ['Group A', 'Group B']
        assert all(t.points == 0 for t in two_groups.teams)

    def test_doubles_cross_tier(self, rng):
        """Eight players, four per tier, become four cross-tier doubles teams."""
        state = regenerate_from_roster(_roster(8, tiers=True), {'mode': 'doubles'}, rng=rng)
        assert len(state.teams) == 4
        for team in state.teams:
            assert sorted(p.level for p in team.players) == ['A', 'B']

    def test_defaults(self, roster_text, rng):
        state = regenerate_from_roster(roster_text, rng=rng)
        assert state.config == TournamentConfig()
        assert _ko_ids(state) == ['ko-final']
        assert state.id.startswith('tournament-')

    def test_same_seed_same_draw(self, roster_text, two_group_config):
        first = regenerate_from_roster(roster_text, two_group_config, tournament_id='t', rng=random.Random(3))
        second = regenerate_from_roster(roster_text, two_group_config, tournament_id='t', rng=random.Random(3))
        assert first == second

    def test_without_knockout(self, roster_text, rng):
        state = regenerate_from_roster(roster_text, {'num_groups': 2, 'has_knockout': False}, rng=rng)
        assert state.knockout_matches == []

    def test_six_groups_round_structure(self, rng):
        state = regenerate_from_roster(_roster(12), {'num_groups': 6}, rng=rng)
        rounds = [m.round for m in state.knockout_matches]
        assert rounds.count('round_of_16') == 8
        assert rounds.count('quarterfinal') == 4
        assert rounds.count('semifinal') == 2
        assert rounds.count('final') == 1
        assert _ko_ids(state)[:3] == ['ko-o1', 'ko-o2', 'ko-o3']
        assert _ko_ids(state)[-1] == 'ko-final'

    @pytest.mark.parametrize("roster", ['', '\n  \n', ' - A'])
    def test_empty_roster(self, roster):
        with pytest.raises(ValidationError):
            regenerate_from_roster(roster)

    def test_single_doubles_player(self):
        with pytest.raises(ValidationError):
            regenerate_from_roster('Solo', {'mode': 'doubles'})

    def test_more_groups_than_teams(self):
        with pytest.raises(ValidationError):
            regenerate_from_roster(_roster(3), {'num_groups': 4})

    @pytest.mark.parametrize("values", [
        {'num_groups': 0},
        {'num_groups': 27},
        {'num_groups': 'two'},
        {'mode': 'triples'},
        {'knockout_type': 'top3'},
        {'colour': 'red'},
        {'has_knockout': 'false'},
        {'shared_third_place': 'false'},
        {'has_knockout': 0},
        {'shared_third_place': None},
    ])
    def test_invalid_config(self, values):
        with pytest.raises(ValidationError):
            regenerate_from_roster(_roster(40), values)

    def test_make_config_fills_defaults(self):
        config = make_config({'num_groups': '3'})
        assert config.num_groups == 3
        assert config.knockout_type == get_default_config()['knockout_type']


class TestCoerceScore:
    @pytest.mark.parametrize("value,expected", [
        (None, None), ('', None), ('  ', None), (3, 3), ('4', 4), (' 7 ', 7), (2.0, 2), (-2, 0), ('-5', 0),
    ])
    def test_accepted(self, value, expected):
        assert coerce_score(value) == expected

    @pytest.mark.parametrize("value", ['abc', '1.5', 2.5, True, float('nan'), [1]])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            coerce_score(value)


class TestRecordScore:
    """Tests for score entry and its effect on standings and the bracket."""

    def test_updates_standings(self, two_groups):
        match = two_groups.group_matches[0]
        state = record_score(two_groups, match.id, 3, 1)
        winner = state.find_team(match.team1_id)
        loser = state.find_team(match.team2_id)
        assert winner.points == 1
        assert winner.goals_scored == 3
        assert loser.goals_conceded == 3
        assert state.find_match(match.id).winner_id == match.team1_id

    def test_does_not_modify_input(self, two_groups):
        match = two_groups.group_matches[0]
        record_score(two_groups, match.id, 3, 1)
        assert two_groups.find_match(match.id).score1 is None
        assert all(t.points == 0 for t in two_groups.teams)

    def test_clear_score(self, two_groups):
        match_id = two_groups.group_matches[0].id
        state = record_score(two_groups, match_id, 3, 1)
        state = record_score(state, match_id, None, '')
        assert not state.find_match(match_id).is_scored
        assert all(t.points == 0 for t in state.teams)

    def test_negative_clamped(self, two_groups):
        match_id = two_groups.group_matches[0].id
        state = record_score(two_groups, match_id, -3, 2)
        assert state.find_match(match_id).score1 == 0

    def test_unknown_match(self, two_groups):
        with pytest.raises(ValidationError):
            record_score(two_groups, 'm-group-Z-9', 1, 0)

    def test_invalid_score(self, two_groups):
        with pytest.raises(ValidationError):
            record_score(two_groups, two_groups.group_matches[0].id, 'x', 0)

    def test_knockout_resolves_after_groups(self, groups_done):
        """With both groups finished the semifinals are cross-seeded from the tables."""
        assert _ko_ids(groups_done) == ['ko-semi-1', 'ko-semi-2', 'ko-final']
        tables = group_tables(groups_done)
        semi1 = groups_done.find_match('ko-semi-1')
        semi2 = groups_done.find_match('ko-semi-2')
        assert semi1.team1 == Resolved(tables['Group A'][0]['team'])
        assert semi1.team2 == Resolved(tables['Group B'][1]['team'])
        assert semi2.team1 == Resolved(tables['Group B'][0]['team'])
        assert semi2.team2 == Resolved(tables['Group A'][1]['team'])
        assert not groups_done.find_match('ko-final').is_playable

    def test_pending_final_rejects_score(self, groups_done):
        with pytest.raises(ScoreRejectedError) as exc:
            record_score(groups_done, 'ko-final', 2, 1)
        assert exc.value.match_id == 'ko-final'

    def test_pending_match_can_be_cleared(self, groups_done):
        state = record_score(groups_done, 'ko-final', None, None)
        assert state.find_match('ko-final').score1 is None

    def test_final_playable_after_semis(self, groups_done):
        state = record_score(groups_done, 'ko-semi-1', 2, 0)
        state = record_score(state, 'ko-semi-2', 0, 2)
        final = state.find_match('ko-final')
        assert final.team1_id == state.find_match('ko-semi-1').team1_id
        assert final.team2_id == state.find_match('ko-semi-2').team2_id
        state = record_score(state, 'ko-final', 1, 0)
        assert state.find_match('ko-final').winner_id == final.team1_id

    def test_knockout_results_count_in_totals_not_tables(self, groups_done):
        before = group_tables(groups_done)
        semi = groups_done.find_match('ko-semi-1')
        state = record_score(groups_done, 'ko-semi-1', 4, 0)
        assert state.find_team(semi.team1_id).goals_scored == groups_done.find_team(semi.team1_id).goals_scored + 4
        assert group_tables(state) == before

    def test_changed_group_result_clears_stale_knockout(self, groups_done):
        state = record_score(groups_done, 'ko-semi-1', 2, 0)
        group_match = state.group_matches[0]
        state = record_score(state, group_match.id, None, None)
        semi = state.find_match('ko-semi-1')
        assert not semi.is_playable
        assert semi.score1 is None

    def test_record_scores_in_bracket_order(self, groups_done):
        state = record_scores(groups_done, {'ko-final': (3, 2), 'ko-semi-2': (1, 0), 'ko-semi-1': (1, 0)})
        assert state.find_match('ko-final').winner_id == state.find_match('ko-semi-1').winner_id

    def test_record_scores_unknown_match(self, groups_done):
        with pytest.raises(ValidationError):
            record_scores(groups_done, {'nope': (1, 0)})


class TestUpdateKnockoutConfig:
    """Tests for changing knockout settings on a running tournament."""

    def test_third_place_match_added(self, groups_done):
        state = record_scores(groups_done, {'ko-semi-1': (2, 0), 'ko-semi-2': (2, 0)})
        state = update_knockout_config(state, {'shared_third_place': False})
        assert _ko_ids(state) == ['ko-semi-1', 'ko-semi-2', 'ko-final', 'ko-third']
        assert state.find_match('ko-semi-1').score1 == 2
        third = state.find_match('ko-third')
        assert third.team1_id == state.find_match('ko-semi-1').team2_id
        assert third.team2_id == state.find_match('ko-semi-2').team2_id

    def test_switch_to_top1(self, groups_done):
        state = update_knockout_config(groups_done, {'knockout_type': 'top1'})
        assert _ko_ids(state) == ['ko-final']
        final = state.find_match('ko-final')
        assert final.is_playable
        assert state.group_matches == groups_done.group_matches

    def test_disable_knockout(self, groups_done):
        state = update_knockout_config(groups_done, {'has_knockout': False})
        assert state.knockout_matches == []
        state = update_knockout_config(state, {'has_knockout': True})
        assert _ko_ids(state) == ['ko-semi-1', 'ko-semi-2', 'ko-final']

    def test_rejects_group_settings(self, two_groups):
        with pytest.raises(ValidationError):
            update_knockout_config(two_groups, {'num_groups': 3})

    def test_rejects_bad_type(self, two_groups):
        with pytest.raises(ValidationError):
            update_knockout_config(two_groups, {'knockout_type': 'top4'})

    @pytest.mark.parametrize("patch", [{'has_knockout': 'false'}, {'shared_third_place': 'no'}])
    def test_rejects_non_boolean_flags(self, two_groups, patch):
        with pytest.raises(ValidationError):
            update_knockout_config(two_groups, patch)


class TestPodiumAndPhase:
    def _finished(self, groups_done, shared=True):
        state = groups_done if shared else update_knockout_config(groups_done, {'shared_third_place': False})
        scores = {'ko-semi-1': (2, 0), 'ko-semi-2': (2, 1), 'ko-final': (1, 0)}
        if not shared:
            scores['ko-third'] = (0, 3)
        return record_scores(state, scores)

    def test_shared_third_place(self, groups_done):
        state = self._finished(groups_done)
        result = podium(state)
        semi1 = state.find_match('ko-semi-1')
        semi2 = state.find_match('ko-semi-2')
        assert result['champion'].id == semi1.team1_id
        assert result['runner_up'].id == semi2.team1_id
        assert [t.id for t in result['third_place']] == [semi1.team2_id, semi2.team2_id]

    def test_third_place_match(self, groups_done):
        state = self._finished(groups_done, shared=False)
        result = podium(state)
        assert [t.id for t in result['third_place']] == [state.find_match('ko-semi-2').team2_id]

    def test_no_podium_before_final(self, groups_done):
        assert podium(groups_done) == {'champion': None, 'runner_up': None, 'third_place': []}

    def test_phases(self, two_groups, groups_done):
        assert tournament_phase(None) == 'setup'
        assert tournament_phase(two_groups) == 'group'
        assert tournament_phase(groups_done) == 'knockout'
        assert tournament_phase(self._finished(groups_done)) == 'complete'

    def test_group_table(self, groups_done):
        table = group_table(groups_done, 'Group B')
        assert table == group_tables(groups_done)['Group B']
        assert [row['position'] for row in table] == [1, 2, 3, 4]
        assert group_table(groups_done, 'Group Q') == []
