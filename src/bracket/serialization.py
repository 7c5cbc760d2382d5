"""
Import and export of tournament snapshots.

Snapshots are plain dicts that round-trip through JSON and YAML without
loss. Imports validate everything and rebuild derived state, so a bad file
raises ImportFormatError and never yields a half-valid tournament.
"""
import csv
import io
import json
from itertools import combinations
from typing import Dict, List

import yaml

from bracket.models import (
    Match, Pending, Player, Resolved, Team, TeamRef, TournamentState,
    STAGE_GROUP, STAGE_KNOCKOUT, KNOCKOUT_ROUNDS, LEVELS, decide_winner, group_name,
)
from bracket.errors import ImportFormatError, ValidationError
from bracket.groups import group_letters
from bracket.tournament import make_config, rebuild, record_scores, coerce_score

CSV_COLUMNS = ['ID', 'Stage', 'Round', 'Team 1', 'Score 1', 'Score 2', 'Team 2', 'Winner']


def team_ref_to_dict(ref: TeamRef) -> Dict:
    if ref.is_resolved:
        return {'team_id': ref.team_id}
    return {'pending': ref.description}


def player_to_dict(player: Player) -> Dict:
    return {'id': player.id, 'name': player.name, 'level': player.level, 'address': player.address}


def team_to_dict(team: Team) -> Dict:
    return {
        'id': team.id,
        'name': team.name,
        'players': [player_to_dict(p) for p in team.players],
        'points': team.points,
        'goals_scored': team.goals_scored,
        'goals_conceded': team.goals_conceded,
        'group': team.group,
    }


def match_to_dict(match: Match) -> Dict:
    return {
        'id': match.id,
        'stage': match.stage,
        'round_name': match.round_name,
        'round': match.round,
        'slot': match.slot,
        'team1': team_ref_to_dict(match.team1),
        'team2': team_ref_to_dict(match.team2),
        'score1': match.score1,
        'score2': match.score2,
        'winner_id': match.winner_id,
    }


def state_to_dict(state: TournamentState) -> Dict:
    config = state.config
    return {
        'id': state.id,
        'name': state.name,
        'created_by': state.created_by,
        'config': {
            'num_groups': config.num_groups,
            'mode': config.mode,
            'has_knockout': config.has_knockout,
            'knockout_type': config.knockout_type,
            'shared_third_place': config.shared_third_place,
        },
        'teams': [team_to_dict(t) for t in state.teams],
        'matches': [match_to_dict(m) for m in state.matches],
    }


def _require(data, key, kind, where):
    if not isinstance(data, dict) or key not in data:
        raise ImportFormatError(f"{where}: missing '{key}'")
    value = data[key]
    if not isinstance(value, kind):
        raise ImportFormatError(f"{where}: '{key}' has the wrong type")
    return value


def _optional_str(data, key, where) -> str:
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ImportFormatError(f"{where}: '{key}' has the wrong type")
    return value


def _score_from_dict(value, where):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ImportFormatError(f"{where}: invalid score {value!r}")
    return value


def _team_ref_from_dict(data, where) -> TeamRef:
    if isinstance(data, dict) and isinstance(data.get('team_id'), str):
        return Resolved(data['team_id'])
    if isinstance(data, dict) and isinstance(data.get('pending'), str):
        return Pending(data['pending'])
    raise ImportFormatError(f"{where}: invalid team reference {data!r}")


def _player_from_dict(data, where) -> Player:
    level = data.get('level', 'None') if isinstance(data, dict) else None
    if level not in LEVELS:
        raise ImportFormatError(f"{where}: invalid level {level!r}")
    return Player(
        id=_require(data, 'id', str, where),
        name=_require(data, 'name', str, where),
        level=level,
        address=_optional_str(data, 'address', where),
    )


def _teams_from_list(items, group_names) -> List[Team]:
    """Teams of a snapshot; every team must sit in one of ``group_names``."""
    teams = []
    seen = set()
    for idx, data in enumerate(items):
        where = f"teams[{idx}]"
        team_id = _require(data, 'id', str, where)
        if team_id in seen:
            raise ImportFormatError(f"{where}: duplicate team id {team_id!r}")
        seen.add(team_id)
        players = [_player_from_dict(p, f"{where}.players[{i}]")
                   for i, p in enumerate(data.get('players') or [])]
        group = data.get('group')
        if group not in group_names:
            raise ImportFormatError(f"{where}: invalid group {group!r}")
        teams.append(Team(id=team_id, name=_require(data, 'name', str, where), players=players, group=group))
    return teams


def _matches_from_list(items, team_groups: Dict[str, str]) -> List[Match]:
    matches = []
    seen = set()
    for idx, data in enumerate(items):
        where = f"matches[{idx}]"
        match_id = _require(data, 'id', str, where)
        if match_id in seen:
            raise ImportFormatError(f"{where}: duplicate match id {match_id!r}")
        seen.add(match_id)

        stage = _require(data, 'stage', str, where)
        if stage not in (STAGE_GROUP, STAGE_KNOCKOUT):
            raise ImportFormatError(f"{where}: invalid stage {stage!r}")
        round_name = _require(data, 'round_name', str, where)
        team1 = _team_ref_from_dict(data.get('team1'), where)
        team2 = _team_ref_from_dict(data.get('team2'), where)
        for ref in (team1, team2):
            if ref.is_resolved and ref.team_id not in team_groups:
                raise ImportFormatError(f"{where}: unknown team {ref.team_id!r}")
            if stage == STAGE_GROUP and not ref.is_resolved:
                raise ImportFormatError(f"{where}: group matches need real teams")
            if stage == STAGE_GROUP and team_groups[ref.team_id] != round_name:
                raise ImportFormatError(f"{where}: team {ref.team_id!r} is not in {round_name!r}")

        knockout_round = data.get('round')
        if stage == STAGE_KNOCKOUT and knockout_round not in KNOCKOUT_ROUNDS:
            raise ImportFormatError(f"{where}: invalid knockout round {knockout_round!r}")

        score1 = _score_from_dict(data.get('score1'), where)
        score2 = _score_from_dict(data.get('score2'), where)
        winner_id = data.get('winner_id')
        if winner_id != decide_winner(team1, team2, score1, score2):
            raise ImportFormatError(f"{where}: winner does not match the score")

        matches.append(Match(
            id=match_id,
            stage=stage,
            round_name=round_name,
            team1=team1,
            team2=team2,
            score1=score1,
            score2=score2,
            winner_id=winner_id,
            round=knockout_round if stage == STAGE_KNOCKOUT else None,
            slot=data.get('slot') if stage == STAGE_KNOCKOUT else None,
        ))
    return matches


def _check_round_robins(teams: List[Team], matches: List[Match]):
    """Every group must hold each pairing of its teams exactly once."""
    for group in sorted({t.group for t in teams}):
        expected = {frozenset(pair) for pair in combinations([t.id for t in teams if t.group == group], 2)}
        pairs = [frozenset((m.team1_id, m.team2_id)) for m in matches
                 if m.stage == STAGE_GROUP and m.round_name == group]
        if len(pairs) != len(set(pairs)) or set(pairs) != expected:
            raise ImportFormatError(f"{group}: matches do not form a complete round robin")


def state_from_dict(data: Dict) -> TournamentState:
    """
    Rebuild a tournament from a snapshot dict.

    Standings and the knockout stage are recomputed from the imported
    scores, so stored totals are never trusted.
    """
    if not isinstance(data, dict):
        raise ImportFormatError('Tournament data must be a mapping')

    try:
        config = make_config(_require(data, 'config', dict, 'tournament'))
    except ValidationError as e:
        raise ImportFormatError(f"Invalid config: {e}")

    group_names = {group_name(letter) for letter in group_letters(config.num_groups)}
    teams = _teams_from_list(_require(data, 'teams', list, 'tournament'), group_names)
    matches = _matches_from_list(_require(data, 'matches', list, 'tournament'), {t.id: t.group for t in teams})
    _check_round_robins(teams, matches)

    teams, matches = rebuild(teams, matches, config)
    return TournamentState(
        id=_require(data, 'id', str, 'tournament'),
        name=_optional_str(data, 'name', 'tournament'),
        created_by=_optional_str(data, 'created_by', 'tournament'),
        teams=teams,
        matches=matches,
        config=config,
    )


def to_json(state: TournamentState) -> str:
    return json.dumps(state_to_dict(state), indent=2, ensure_ascii=False)


def from_json(text: str) -> TournamentState:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ImportFormatError(f"Invalid JSON: {e}")
    return state_from_dict(data)


def to_yaml(state: TournamentState) -> str:
    return yaml.safe_dump(state_to_dict(state), default_flow_style=False, allow_unicode=True, sort_keys=False)


def from_yaml(text: str) -> TournamentState:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ImportFormatError(f"Invalid YAML: {e}")
    return state_from_dict(data)


def _display(state: TournamentState, ref: TeamRef) -> str:
    if not ref.is_resolved:
        return ref.description
    team = state.find_team(ref.team_id)
    return team.name if team else ref.team_id


def matches_to_csv(state: TournamentState) -> str:
    """Export the match sheet: one row per match with team names and scores."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for match in state.matches:
        winner = state.find_team(match.winner_id)
        writer.writerow({
            'ID': match.id,
            'Stage': match.stage,
            'Round': match.round_name,
            'Team 1': _display(state, match.team1),
            'Score 1': '' if match.score1 is None else match.score1,
            'Score 2': '' if match.score2 is None else match.score2,
            'Team 2': _display(state, match.team2),
            'Winner': winner.name if winner else '',
        })
    return output.getvalue()


def apply_scores_csv(state: TournamentState, text: str) -> TournamentState:
    """
    Apply the scores of an edited match sheet to an existing tournament.

    Rows are matched by ID; rows for unknown matches are ignored. Returns a
    new state, or raises ImportFormatError leaving ``state`` as it was.
    """
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or not {'ID', 'Score 1', 'Score 2'} <= set(reader.fieldnames):
        raise ImportFormatError('Match sheet needs ID, Score 1 and Score 2 columns')

    known = {m.id: m for m in state.matches}
    scores = {}
    try:
        for row in reader:
            match = known.get((row.get('ID') or '').strip())
            if match is None:
                continue
            score1 = coerce_score(row.get('Score 1'))
            score2 = coerce_score(row.get('Score 2'))
            if (score1, score2) != (match.score1, match.score2):
                scores[match.id] = (score1, score2)
        return record_scores(state, scores)
    except ValidationError as e:
        raise ImportFormatError(f"Invalid match sheet: {e}")
    except csv.Error as e:
        raise ImportFormatError(f"Invalid CSV: {e}")
