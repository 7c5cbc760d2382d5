"""
Tournament entry points.

Every function here takes a state and returns a brand-new one; nothing is
modified in place. Each edit recomputes standings and rebuilds the knockout
stage from scratch, carrying recorded knockout scores over by match id.
"""
import logging
import math
import random
import time
import uuid
from dataclasses import replace, fields
from typing import Dict, List, Optional, Union, Iterable

from bracket.models import (
    Match, Team, TournamentConfig, TournamentState,
    MODES, KNOCKOUT_TYPES, STAGE_KNOCKOUT, SEMIFINAL, FINAL, THIRD_PLACE,
    knockout_match_id,
)
from bracket.errors import ValidationError, ScoreRejectedError
from bracket.roster import parse_roster
from bracket.teams import build_teams
from bracket.groups import split_groups, MAX_GROUPS
from bracket.fixtures import generate_group_fixtures
from bracket.standings import calculate_standings, calculate_group_standings
from bracket.knockout import derive_knockout_matches, merge_matches

logger = logging.getLogger(__name__)

# Keys that update_knockout_config may change; the rest need a regeneration.
KNOCKOUT_CONFIG_KEYS = {'has_knockout', 'knockout_type', 'shared_third_place'}


def get_default_config() -> Dict:
    """Default tournament settings."""
    return {
        'num_groups': 1,
        'mode': 'singles',
        'has_knockout': True,
        'knockout_type': 'top2',
        'shared_third_place': True,
    }


def make_config(values: Optional[Dict] = None) -> TournamentConfig:
    """Build a validated config from a (possibly partial) dict, filling in defaults."""
    data = get_default_config()
    if values:
        unknown = set(values) - {f.name for f in fields(TournamentConfig)}
        if unknown:
            raise ValidationError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        data.update(values)

    try:
        num_groups = int(data['num_groups'])
    except (TypeError, ValueError):
        raise ValidationError(f"Number of groups must be an integer, got {data['num_groups']!r}")
    if num_groups < 1:
        raise ValidationError(f"Number of groups must be at least 1, got {num_groups}")
    if num_groups > MAX_GROUPS:
        raise ValidationError(f"Number of groups must be at most {MAX_GROUPS}, got {num_groups}")
    if data['mode'] not in MODES:
        raise ValidationError(f"Unknown team mode: {data['mode']!r}")
    if data['knockout_type'] not in KNOCKOUT_TYPES:
        raise ValidationError(f"Unknown knockout type: {data['knockout_type']!r}")
    for key in ('has_knockout', 'shared_third_place'):
        if not isinstance(data[key], bool):
            raise ValidationError(f"{key} must be true or false, got {data[key]!r}")

    return TournamentConfig(
        num_groups=num_groups,
        mode=data['mode'],
        has_knockout=data['has_knockout'],
        knockout_type=data['knockout_type'],
        shared_third_place=data['shared_third_place'],
    )


def new_tournament_id() -> str:
    return f"tournament-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def rebuild(teams: List[Team], matches: List[Match], config: TournamentConfig):
    """Recompute standings and the knockout stage. Returns ``(teams, matches)``."""
    if config.has_knockout:
        knockout = derive_knockout_matches(teams, config, matches)
        matches = merge_matches(matches, knockout)
    else:
        matches = [m for m in matches if m.stage != STAGE_KNOCKOUT]
    return calculate_standings(teams, matches), matches


def regenerate_from_roster(roster: Union[str, Iterable[str]], config: Union[TournamentConfig, Dict, None] = None,
                           name: str = '', created_by: str = '', tournament_id: Optional[str] = None,
                           rng: Optional[random.Random] = None) -> TournamentState:
    """
    Create a tournament from roster text and settings.

    Raises ValidationError for an empty roster or an impossible group count.
    Team pairing and group draw use ``rng`` (a fresh generator if omitted).
    """
    if not isinstance(config, TournamentConfig):
        config = make_config(config)
    else:
        config = make_config({f.name: getattr(config, f.name) for f in fields(TournamentConfig)})

    players = parse_roster(roster)
    if not players:
        raise ValidationError('The roster is empty')

    rng = rng or random.Random()
    teams = build_teams(players, config.mode, rng)
    if not teams:
        raise ValidationError('Not enough players to form a team')
    if config.num_groups > len(teams):
        raise ValidationError(f"Cannot split {len(teams)} teams into {config.num_groups} groups")

    groups = split_groups(teams, config.num_groups, rng)
    matches = generate_group_fixtures(groups)
    grouped_teams = [team for letter in sorted(groups) for team in groups[letter]]

    teams, matches = rebuild(grouped_teams, matches, config)
    logger.info(f"Generated tournament {name!r}: {len(teams)} teams, {config.num_groups} groups, {len(matches)} matches")

    return TournamentState(
        id=tournament_id or new_tournament_id(),
        name=name,
        created_by=created_by,
        teams=teams,
        matches=matches,
        config=config,
    )


def coerce_score(value) -> Optional[int]:
    """
    Normalise a score from user input.

    None and blank strings mean "no score". Negative numbers are clamped to
    zero. Anything that is not a whole number is rejected.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid score: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if value == '':
            return None
        try:
            score = int(value)
        except ValueError:
            raise ValidationError(f"Invalid score: {value!r}")
    elif isinstance(value, int):
        score = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(f"Invalid score: {value!r}")
        score = int(value)
    else:
        raise ValidationError(f"Invalid score: {value!r}")

    if score < 0:
        logger.warning(f"Negative score {score} clamped to 0")
        score = 0
    return score


def record_score(state: TournamentState, match_id: str, score1, score2) -> TournamentState:
    """
    Record (or clear, with both scores None) the score of one match.

    Knockout matches whose participants are not both known yet accept no
    score and raise ScoreRejectedError.
    """
    score1 = coerce_score(score1)
    score2 = coerce_score(score2)

    target = state.find_match(match_id)
    if target is None:
        raise ValidationError(f"Unknown match: {match_id}")
    if not target.is_playable and (score1 is not None or score2 is not None):
        raise ScoreRejectedError(match_id, 'participants are not determined yet')

    matches = [m.with_score(score1, score2) if m.id == match_id else m for m in state.matches]
    teams, matches = rebuild(state.teams, matches, state.config)
    logger.debug(f"Recorded {match_id}: {score1}-{score2}")
    return replace(state, teams=teams, matches=matches)


def record_scores(state: TournamentState, scores: Dict[str, tuple]) -> TournamentState:
    """
    Apply several ``{match_id: (score1, score2)}`` edits.

    Edits are applied in match-list order (groups, then earlier knockout
    rounds first) so a later round sees the winners of the earlier ones.
    """
    known = {m.id for m in state.matches}
    unknown = set(scores) - known
    if unknown:
        raise ValidationError(f"Unknown matches: {', '.join(sorted(unknown))}")

    for match_id in [m.id for m in state.matches]:
        if match_id in scores:
            score1, score2 = scores[match_id]
            state = record_score(state, match_id, score1, score2)
    return state


def update_knockout_config(state: TournamentState, patch: Dict) -> TournamentState:
    """Change knockout settings and rebuild the bracket; recorded scores survive where ids match."""
    unknown = set(patch) - KNOCKOUT_CONFIG_KEYS
    if unknown:
        raise ValidationError(f"Only knockout settings can be changed here, not: {', '.join(sorted(unknown))}")

    values = {f.name: getattr(state.config, f.name) for f in fields(TournamentConfig)}
    values.update(patch)
    config = make_config(values)

    teams, matches = rebuild(state.teams, state.matches, config)
    return replace(state, teams=teams, matches=matches, config=config)


def group_tables(state: TournamentState) -> Dict[str, List[Dict]]:
    return calculate_group_standings(state.teams, state.group_matches)


def group_table(state: TournamentState, group: str) -> List[Dict]:
    """Ordered table of one group, e.g. ``group_table(state, 'Group A')``. Empty for an unknown group."""
    return group_tables(state).get(group, [])


def podium(state: TournamentState) -> Dict:
    """
    Final placings once the final has a winner.

    Third place goes to both semifinal losers when it is shared, otherwise
    to the winner of the third-place match.
    """
    result = {'champion': None, 'runner_up': None, 'third_place': []}
    final = state.find_match(knockout_match_id(FINAL, 1))
    if final is None or not final.winner_id:
        return result

    result['champion'] = state.find_team(final.winner_id)
    result['runner_up'] = state.find_team(final.loser_id)
    if state.config.shared_third_place:
        for slot in (1, 2):
            semi = state.find_match(knockout_match_id(SEMIFINAL, slot))
            if semi is not None and semi.loser_id:
                result['third_place'].append(state.find_team(semi.loser_id))
    else:
        third = state.find_match(knockout_match_id(THIRD_PLACE, 1))
        if third is not None and third.winner_id:
            result['third_place'].append(state.find_team(third.winner_id))
    return result


def tournament_phase(state: Optional[TournamentState]) -> str:
    """One of: 'setup', 'group', 'knockout', 'complete'."""
    if state is None or not state.matches:
        return 'setup'
    if podium(state)['champion'] is not None:
        return 'complete'
    if any(m.is_scored for m in state.knockout_matches):
        return 'knockout'
    group = state.group_matches
    if group and all(m.is_scored for m in group) and state.knockout_matches:
        return 'knockout'
    return 'group'
