"""
Team building: one team per player (singles) or tier-balanced pairs (doubles).
"""
import logging
import random
from typing import List, Optional

from bracket.models import Player, Team, LEVEL_A, LEVEL_B, SINGLES, DOUBLES
from bracket.errors import ValidationError

logger = logging.getLogger(__name__)

TEAM_NAME_SEPARATOR = ' / '


def create_team(players: List[Player]) -> Team:
    """Create a doubles team; the id is built from the sorted player ids."""
    team_id = 'team-' + '-'.join(sorted(p.id for p in players))
    return Team(id=team_id, name=TEAM_NAME_SEPARATOR.join(p.name for p in players),
                players=list(players))


def build_singles_teams(players: List[Player]) -> List[Team]:
    return [Team(id=f"t-{p.id}", name=p.name, players=[p]) for p in players]


def pair_doubles(players: List[Player], rng: Optional[random.Random] = None) -> List[Team]:
    """
    Pair players into doubles teams.

    A-tier and B-tier players are shuffled and paired across tiers first.
    Once either tier runs out, everyone left (remaining A or B players, then
    untiered players) is paired off in order. An odd player out is dropped.
    """
    rng = rng or random.Random()

    tier_a = [p for p in players if p.level == LEVEL_A]
    tier_b = [p for p in players if p.level == LEVEL_B]
    untiered = [p for p in players if p.level not in (LEVEL_A, LEVEL_B)]
    for pool in (tier_a, tier_b, untiered):
        rng.shuffle(pool)

    teams = []
    while tier_a and tier_b:
        teams.append(create_team([tier_a.pop(), tier_b.pop()]))

    remaining = tier_a + tier_b + untiered
    while len(remaining) >= 2:
        teams.append(create_team([remaining.pop(), remaining.pop()]))

    if remaining:
        logger.warning(f"Odd number of players: {remaining[0].name} was left without a partner")

    return teams


def build_teams(players: List[Player], mode: str, rng: Optional[random.Random] = None) -> List[Team]:
    if mode == SINGLES:
        return build_singles_teams(players)
    elif mode == DOUBLES:
        return pair_doubles(players, rng)
    raise ValidationError(f"Unknown team mode: {mode!r}")
