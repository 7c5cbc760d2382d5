"""
Standings: team totals and per-group tables computed from match scores.
"""
from dataclasses import replace
from typing import Dict, List

from bracket.models import Match, Team, STAGE_GROUP

POINTS_FOR_WIN = 1


def calculate_standings(teams: List[Team], matches: List[Match]) -> List[Team]:
    """
    Recompute points and goals for every team from scratch.

    Every match with both scores contributes goals to both sides and one
    point to the higher scorer; draws award nothing. The result depends only
    on the set of scored matches, not on their order.
    """
    totals = {t.id: [0, 0, 0] for t in teams}  # points, scored, conceded
    for match in matches:
        if not match.is_scored:
            continue
        t1, t2 = match.team1_id, match.team2_id
        if t1 not in totals or t2 not in totals:
            continue
        totals[t1][1] += match.score1
        totals[t1][2] += match.score2
        totals[t2][1] += match.score2
        totals[t2][2] += match.score1
        if match.score1 > match.score2:
            totals[t1][0] += POINTS_FOR_WIN
        elif match.score2 > match.score1:
            totals[t2][0] += POINTS_FOR_WIN

    return [
        replace(t, points=totals[t.id][0], goals_scored=totals[t.id][1], goals_conceded=totals[t.id][2])
        for t in teams
    ]


def _tally(team_ids: List[str], matches: List[Match]) -> Dict[str, Dict]:
    """Per-team table rows over the matches played among ``team_ids``."""
    stats = {}
    for tid in team_ids:
        stats[tid] = {
            'team': tid,
            'played': 0,
            'wins': 0,
            'draws': 0,
            'losses': 0,
            'goals_for': 0,
            'goals_against': 0,
            'points': 0,
        }

    for match in matches:
        if not match.is_scored:
            continue
        t1, t2 = match.team1_id, match.team2_id
        if t1 not in stats or t2 not in stats:
            continue
        for tid, scored, conceded in ((t1, match.score1, match.score2), (t2, match.score2, match.score1)):
            row = stats[tid]
            row['played'] += 1
            row['goals_for'] += scored
            row['goals_against'] += conceded
            if scored > conceded:
                row['wins'] += 1
                row['points'] += POINTS_FOR_WIN
            elif scored < conceded:
                row['losses'] += 1
            else:
                row['draws'] += 1

    for row in stats.values():
        row['goal_diff'] = row['goals_for'] - row['goals_against']
    return stats


def _break_ties(cluster: List[Dict], matches: List[Match], order: Dict[str, int]) -> List[Dict]:
    """Order teams level on points and goal difference: head-to-head, goals scored, listing order."""
    if len(cluster) < 2:
        return cluster
    h2h = _tally([row['team'] for row in cluster], matches)
    return sorted(cluster, key=lambda row: (
        -h2h[row['team']]['points'],
        -h2h[row['team']]['goal_diff'],
        -row['goals_for'],
        order[row['team']],
    ))


def rank_group(teams: List[Team], matches: List[Match]) -> List[Dict]:
    """
    Build the ordered table of one group from its group-stage matches.

    Ranking: points -> goal difference -> head-to-head points -> head-to-head
    goal difference -> goals scored -> order the teams were listed in.
    """
    team_ids = [t.id for t in teams]
    order = {tid: idx for idx, tid in enumerate(team_ids)}
    group_matches = [m for m in matches if m.stage == STAGE_GROUP]
    stats = _tally(team_ids, group_matches)

    rows = sorted(stats.values(), key=lambda r: (-r['points'], -r['goal_diff'], order[r['team']]))

    ranked = []
    i = 0
    while i < len(rows):
        j = i
        while j + 1 < len(rows) and (rows[j + 1]['points'], rows[j + 1]['goal_diff']) == (rows[i]['points'], rows[i]['goal_diff']):
            j += 1
        ranked.extend(_break_ties(rows[i:j + 1], group_matches, order))
        i = j + 1

    names = {t.id: t.name for t in teams}
    for position, row in enumerate(ranked, start=1):
        row['position'] = position
        row['name'] = names[row['team']]
    return ranked


def teams_in_group(teams: List[Team], group: str) -> List[Team]:
    return [t for t in teams if t.group == group]


def matches_in_group(matches: List[Match], group: str) -> List[Match]:
    return [m for m in matches if m.stage == STAGE_GROUP and m.round_name == group]


def is_group_finished(group: str, teams: List[Team], matches: List[Match]) -> bool:
    """A group is finished once it has teams and every one of its matches has both scores."""
    if not teams_in_group(teams, group):
        return False
    return all(m.is_scored for m in matches_in_group(matches, group))


def calculate_group_standings(teams: List[Team], matches: List[Match]) -> Dict[str, List[Dict]]:
    """
    Calculate the table for each group.

    Returns: {group_name: [{'team': id, 'name': str, 'position': n, 'played': n,
                            'wins': n, 'draws': n, 'losses': n, 'goals_for': n,
                            'goals_against': n, 'goal_diff': n, 'points': n}, ...]}
    """
    groups = sorted({t.group for t in teams if t.group})
    return {
        group: rank_group(teams_in_group(teams, group), matches_in_group(matches, group))
        for group in groups
    }
