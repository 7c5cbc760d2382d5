"""
Group partitioning: deal teams into groups A, B, C... after a shuffle.
"""
import random
import string
from dataclasses import replace
from typing import Dict, List, Optional

from bracket.models import Team, group_name
from bracket.errors import ValidationError

MAX_GROUPS = len(string.ascii_uppercase)


def group_letters(num_groups: int) -> List[str]:
    return list(string.ascii_uppercase[:num_groups])


def split_groups(teams: List[Team], num_groups: int,
                 rng: Optional[random.Random] = None) -> Dict[str, List[Team]]:
    """
    Distribute teams over ``num_groups`` groups.

    Teams are shuffled, then the team at shuffled index ``i`` goes to group
    ``i % num_groups``, so group sizes differ by at most one. Returns a dict
    keyed by group letter; each returned team carries its group name.
    """
    if num_groups < 1 or num_groups > MAX_GROUPS:
        raise ValidationError(f"Number of groups must be between 1 and {MAX_GROUPS}, got {num_groups}")

    rng = rng or random.Random()
    shuffled = list(teams)
    rng.shuffle(shuffled)

    letters = group_letters(num_groups)
    groups = {letter: [] for letter in letters}
    for idx, team in enumerate(shuffled):
        letter = letters[idx % num_groups]
        groups[letter].append(replace(team, group=group_name(letter)))
    return groups
