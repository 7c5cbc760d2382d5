"""
Round-robin fixture generation for groups.
"""
from itertools import combinations
from typing import Dict, List, Tuple

from bracket.models import Match, Resolved, Team, STAGE_GROUP, group_name

# Hand-ordered schedules that spread each team's matches across the group.
FIXED_PAIRINGS = {
    4: [(0, 1), (2, 3), (0, 2), (1, 3), (0, 3), (1, 2)],
    5: [(0, 1), (3, 4), (2, 1), (3, 0), (2, 4),
        (3, 1), (0, 4), (2, 3), (1, 4), (0, 2)],
}


def pairing_order(num_teams: int) -> List[Tuple[int, int]]:
    """Index pairs to play, in schedule order, for a group of ``num_teams``."""
    if num_teams in FIXED_PAIRINGS:
        return list(FIXED_PAIRINGS[num_teams])
    return list(combinations(range(num_teams), 2))


def group_match_id(letter: str, index: int) -> str:
    return f"m-group-{letter}-{index}"


def generate_round_robin(teams: List[Team], letter: str) -> List[Match]:
    """Generate every match of one group, each pair exactly once."""
    name = group_name(letter)
    matches = []
    for idx, (i, j) in enumerate(pairing_order(len(teams))):
        matches.append(Match(
            id=group_match_id(letter, idx),
            stage=STAGE_GROUP,
            round_name=name,
            team1=Resolved(teams[i].id),
            team2=Resolved(teams[j].id),
        ))
    return matches


def generate_group_fixtures(groups: Dict[str, List[Team]]) -> List[Match]:
    """Generate fixtures for all groups, in group letter order."""
    matches = []
    for letter in sorted(groups):
        matches.extend(generate_round_robin(groups[letter], letter))
    return matches
