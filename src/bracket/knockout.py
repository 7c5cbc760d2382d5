"""
Knockout stage derivation from group standings.

The bracket is rebuilt from scratch every time results change. Each position
in the bracket is described by a plan entry (round, slot and where its two
participants come from); participants that cannot be determined yet are
``Pending`` references. Scores already recorded for a knockout match are
carried over by match id.
"""
import logging
from typing import Dict, List, Optional, Tuple

from bracket.models import (
    Match, Pending, Resolved, Team, TeamRef, TournamentConfig,
    STAGE_GROUP, STAGE_KNOCKOUT, TOP1, TOP2,
    ROUND_OF_16, QUARTERFINAL, SEMIFINAL, FINAL, THIRD_PLACE,
    knockout_match_id, round_label, group_name,
)
from bracket.standings import rank_group, teams_in_group, matches_in_group, is_group_finished
from bracket.groups import group_letters

logger = logging.getLogger(__name__)

# Groups that can feed the largest (round of 16) bracket.
BRACKET_LETTERS = group_letters(8)

# Reverse of knockout_match_id for every position a bracket can contain.
_POSITIONS_BY_ID = {}
for _round, _slots in ((ROUND_OF_16, 8), (QUARTERFINAL, 4), (SEMIFINAL, 2), (FINAL, 1), (THIRD_PLACE, 1)):
    for _slot in range(1, _slots + 1):
        _POSITIONS_BY_ID[knockout_match_id(_round, _slot)] = (_round, _slot)


def describe_match(match_id: str) -> str:
    """Display label for a knockout match id ('Quarterfinal 2', 'Final', ...)."""
    position = _POSITIONS_BY_ID.get(match_id)
    if position is None:
        return 'previous round'
    return round_label(*position)


# Participant sources used in bracket plans
def from_rank(letter: str, position: int) -> Tuple:
    return ('rank', letter, position)


def from_winner(match_id: str) -> Tuple:
    return ('winner', match_id)


def from_loser(match_id: str) -> Tuple:
    return ('loser', match_id)


def from_best_runner_up(letters: Tuple[str, ...]) -> Tuple:
    return ('best_runner_up', letters)


def _entry(round_name: str, slot: int, source1: Tuple, source2: Tuple) -> Dict:
    return {'round': round_name, 'slot': slot, 'sources': (source1, source2)}


def _cross_seeded(round_name: str, letters: List[str], first_slot: int = 1) -> List[Dict]:
    """Winner of X vs runner-up of Y and winner of Y vs runner-up of X, for paired groups X, Y."""
    entries = []
    slot = first_slot
    for i in range(0, len(letters), 2):
        x, y = letters[i], letters[i + 1]
        entries.append(_entry(round_name, slot, from_rank(x, 1), from_rank(y, 2)))
        entries.append(_entry(round_name, slot + 1, from_rank(y, 1), from_rank(x, 2)))
        slot += 2
    return entries


def _fed_by_winners(round_name: str, previous_round: str, num_matches: int) -> List[Dict]:
    """Match k takes the winners of matches 2k-1 and 2k of the previous round."""
    return [
        _entry(round_name, k,
               from_winner(knockout_match_id(previous_round, 2 * k - 1)),
               from_winner(knockout_match_id(previous_round, 2 * k)))
        for k in range(1, num_matches + 1)
    ]


def knockout_plan(num_groups: int, knockout_type: str, shared_third_place: bool = True) -> List[Dict]:
    """
    Describe every knockout match for a group count and advancement rule.

    Returns a list of ``{'round', 'slot', 'sources'}`` dicts in dependency
    order: a match only refers to matches listed before it.
    """
    plan = []
    if num_groups <= 0:
        return plan

    if num_groups == 1:
        # Top-1 from a single group leaves nobody to play.
        if knockout_type == TOP2:
            plan.append(_entry(FINAL, 1, from_rank('A', 1), from_rank('A', 2)))
    elif num_groups == 2:
        if knockout_type == TOP1:
            plan.append(_entry(FINAL, 1, from_rank('A', 1), from_rank('B', 1)))
        else:
            plan.append(_entry(SEMIFINAL, 1, from_rank('A', 1), from_rank('B', 2)))
            plan.append(_entry(SEMIFINAL, 2, from_rank('B', 1), from_rank('A', 2)))
    elif num_groups <= 4:
        if knockout_type == TOP1:
            fourth = from_rank('D', 1) if num_groups == 4 else from_best_runner_up(('A', 'B'))
            plan.append(_entry(SEMIFINAL, 1, from_rank('A', 1), from_rank('B', 1)))
            plan.append(_entry(SEMIFINAL, 2, from_rank('C', 1), fourth))
        else:
            plan.append(_entry(QUARTERFINAL, 1, from_rank('A', 1), from_rank('C', 2)))
            plan.append(_entry(QUARTERFINAL, 2, from_rank('B', 1), from_rank('D', 2)))
            plan.append(_entry(QUARTERFINAL, 3, from_rank('C', 1), from_rank('A', 2)))
            plan.append(_entry(QUARTERFINAL, 4, from_rank('D', 1), from_rank('B', 2)))
            plan.extend(_fed_by_winners(SEMIFINAL, QUARTERFINAL, 2))
    else:
        if num_groups > len(BRACKET_LETTERS):
            logger.warning(f"{num_groups} groups: only groups A-H feed the knockout stage")
        if knockout_type == TOP1:
            for k in range(4):
                x, y = BRACKET_LETTERS[2 * k], BRACKET_LETTERS[2 * k + 1]
                plan.append(_entry(QUARTERFINAL, k + 1, from_rank(x, 1), from_rank(y, 1)))
        else:
            plan.extend(_cross_seeded(ROUND_OF_16, BRACKET_LETTERS))
            plan.extend(_fed_by_winners(QUARTERFINAL, ROUND_OF_16, 4))
        plan.extend(_fed_by_winners(SEMIFINAL, QUARTERFINAL, 2))

    semifinals = [e for e in plan if e['round'] == SEMIFINAL]
    if len(semifinals) == 2:
        semi1 = knockout_match_id(SEMIFINAL, 1)
        semi2 = knockout_match_id(SEMIFINAL, 2)
        plan.append(_entry(FINAL, 1, from_winner(semi1), from_winner(semi2)))
        if not shared_third_place:
            plan.append(_entry(THIRD_PLACE, 1, from_loser(semi1), from_loser(semi2)))
    return plan


def rank(letter: str, position: int, teams: List[Team], matches: List[Match], num_groups: int) -> TeamRef:
    """
    Team holding ``position`` (1 = winner, 2 = runner-up) in a group.

    Pending until every match of the group has been scored.
    """
    if ord(letter) - ord('A') >= num_groups:
        return Pending(f"Group {letter} (not created)")

    group = group_name(letter)
    label = 'Winner' if position == 1 else 'Runner-up' if position == 2 else f"#{position}"
    pending = Pending(f"{label} of {group}")
    if not is_group_finished(group, teams, matches):
        return pending

    table = rank_group(teams_in_group(teams, group), matches_in_group(matches, group))
    if len(table) < position:
        return pending
    return Resolved(table[position - 1]['team'])


def best_runner_up(letters, teams: List[Team], matches: List[Match], num_groups: int) -> TeamRef:
    """Best second-placed team across ``letters`` (points, goal difference, goals scored, group order)."""
    pending = Pending('Best runner-up')
    candidates = []
    for order, letter in enumerate(letters):
        if ord(letter) - ord('A') >= num_groups:
            continue
        group = group_name(letter)
        if not is_group_finished(group, teams, matches):
            return pending
        table = rank_group(teams_in_group(teams, group), matches_in_group(matches, group))
        if len(table) >= 2:
            row = table[1]
            candidates.append((-row['points'], -row['goal_diff'], -row['goals_for'], order, row['team']))
    if not candidates:
        return pending
    return Resolved(min(candidates)[-1])


def _find(match_id: str, matches: List[Match]) -> Optional[Match]:
    for match in matches:
        if match.id == match_id:
            return match
    return None


def winner_of(match_id: str, matches: List[Match]) -> TeamRef:
    """Winner of a knockout match, or a pending reference while undecided or missing."""
    match = _find(match_id, matches)
    if match is not None and match.winner_id:
        return Resolved(match.winner_id)
    return Pending(f"Winner of {describe_match(match_id)}")


def loser_of(match_id: str, matches: List[Match]) -> TeamRef:
    """Loser of a knockout match, or a pending reference while undecided or missing."""
    match = _find(match_id, matches)
    if match is not None and match.loser_id:
        return Resolved(match.loser_id)
    return Pending(f"Loser of {describe_match(match_id)}")


def carry_forward(match: Match, previous: Dict[str, Match]) -> Match:
    """
    Copy the score recorded for the same match id onto a freshly derived match.

    Only matches whose participants are both known can hold a score; the
    winner is recomputed against the current participants.
    """
    old = previous.get(match.id)
    if old is None or old.stage != STAGE_KNOCKOUT:
        return match
    if old.score1 is None and old.score2 is None:
        return match
    if not match.is_playable:
        return match
    return match.with_score(old.score1, old.score2)


def derive_knockout_matches(teams: List[Team], config: TournamentConfig, matches: List[Match]) -> List[Match]:
    """
    Build the complete knockout match list for the current results.

    ``matches`` is the full current match list: group matches provide the
    standings, knockout matches provide scores to carry forward. Later rounds
    resolve against the matches built earlier in the same pass.
    """
    group_matches = [m for m in matches if m.stage == STAGE_GROUP]
    previous = {m.id: m for m in matches if m.stage == STAGE_KNOCKOUT}
    num_groups = config.num_groups

    def resolve(source, built):
        kind = source[0]
        if kind == 'rank':
            return rank(source[1], source[2], teams, group_matches, num_groups)
        elif kind == 'winner':
            return winner_of(source[1], built)
        elif kind == 'loser':
            return loser_of(source[1], built)
        elif kind == 'best_runner_up':
            return best_runner_up(source[1], teams, group_matches, num_groups)
        raise ValueError(f"Unknown participant source: {source!r}")

    built = []
    for entry in knockout_plan(num_groups, config.knockout_type, config.shared_third_place):
        source1, source2 = entry['sources']
        match = Match(
            id=knockout_match_id(entry['round'], entry['slot']),
            stage=STAGE_KNOCKOUT,
            round_name=round_label(entry['round'], entry['slot']),
            team1=resolve(source1, built),
            team2=resolve(source2, built),
            round=entry['round'],
            slot=entry['slot'],
        )
        built.append(carry_forward(match, previous))

    logger.debug(f"Derived {len(built)} knockout matches for {num_groups} groups ({config.knockout_type})")
    return built


def merge_matches(old_matches: List[Match], knockout_matches: List[Match]) -> List[Match]:
    """
    Keep the old group matches as they are and attach a freshly derived knockout stage.

    ``knockout_matches`` must come from ``derive_knockout_matches``, which has
    already carried the recorded scores over; the old knockout matches are dropped.
    """
    group_matches = [m for m in old_matches if m.stage == STAGE_GROUP]
    return group_matches + list(knockout_matches)
