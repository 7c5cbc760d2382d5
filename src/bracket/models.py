"""
Data model for tournaments: players, teams, matches and the tournament snapshot.

Knockout matches carry an explicit ``(round, slot)`` position; their ids are
assigned from that position by ``knockout_match_id`` and their display labels
by ``round_label``, so identity and formatting never depend on each other.
"""
from dataclasses import dataclass, field, replace
from typing import List, Optional


LEVEL_A = 'A'
LEVEL_B = 'B'
LEVEL_NONE = 'None'
LEVELS = (LEVEL_A, LEVEL_B, LEVEL_NONE)

SINGLES = 'singles'
DOUBLES = 'doubles'
MODES = (SINGLES, DOUBLES)

TOP1 = 'top1'
TOP2 = 'top2'
KNOCKOUT_TYPES = (TOP1, TOP2)

STAGE_GROUP = 'group'
STAGE_KNOCKOUT = 'knockout'

ROUND_OF_16 = 'round_of_16'
QUARTERFINAL = 'quarterfinal'
SEMIFINAL = 'semifinal'
FINAL = 'final'
THIRD_PLACE = 'third_place'
KNOCKOUT_ROUNDS = (ROUND_OF_16, QUARTERFINAL, SEMIFINAL, FINAL, THIRD_PLACE)

# Id assignment for knockout positions. Single-match rounds have a fixed id.
_ROUND_ID_PREFIXES = {
    ROUND_OF_16: 'ko-o',
    QUARTERFINAL: 'ko-q',
    SEMIFINAL: 'ko-semi-',
}
_SINGLE_MATCH_IDS = {
    FINAL: 'ko-final',
    THIRD_PLACE: 'ko-third',
}


def knockout_match_id(round_name: str, slot: int) -> str:
    """Return the stable id of the knockout match at ``(round_name, slot)``."""
    if round_name in _SINGLE_MATCH_IDS:
        return _SINGLE_MATCH_IDS[round_name]
    return f"{_ROUND_ID_PREFIXES[round_name]}{slot}"


def round_label(round_name: str, slot: int) -> str:
    """Get the display label of a knockout position."""
    if round_name == ROUND_OF_16:
        return f"Round of 16 (Match {slot})"
    elif round_name == QUARTERFINAL:
        return f"Quarterfinal {slot}"
    elif round_name == SEMIFINAL:
        return f"Semifinal {slot}"
    elif round_name == FINAL:
        return "Final"
    elif round_name == THIRD_PLACE:
        return "Third Place"
    return round_name


def group_name(letter: str) -> str:
    """Display name of a group, e.g. ``'A'`` -> ``'Group A'``."""
    return f"Group {letter}"


def group_letter(name: str) -> str:
    """Inverse of ``group_name``."""
    return name.rsplit(' ', 1)[-1]


class TeamRef:
    """A match participant: either a real team or a not-yet-determined slot."""

    is_resolved = False

    @property
    def team_id(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class Resolved(TeamRef):
    id: str

    is_resolved = True

    @property
    def team_id(self) -> Optional[str]:
        return self.id


@dataclass(frozen=True)
class Pending(TeamRef):
    description: str


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    level: str = LEVEL_NONE
    address: str = ''


@dataclass(frozen=True)
class Team:
    """
    A singles (one player) or doubles (two players) team.

    ``points``, ``goals_scored`` and ``goals_conceded`` are derived from the
    match list by the standings calculator and are never edited directly.
    """
    id: str
    name: str
    players: List[Player] = field(default_factory=list)
    points: int = 0
    goals_scored: int = 0
    goals_conceded: int = 0
    group: Optional[str] = None

    @property
    def goal_difference(self) -> int:
        return self.goals_scored - self.goals_conceded


def decide_winner(team1: TeamRef, team2: TeamRef,
                  score1: Optional[int], score2: Optional[int]) -> Optional[str]:
    """Return the winning team id, or None for unscored, drawn or pending matches."""
    if score1 is None or score2 is None or score1 == score2:
        return None
    winner = team1 if score1 > score2 else team2
    return winner.team_id


@dataclass(frozen=True)
class Match:
    id: str
    stage: str
    round_name: str
    team1: TeamRef
    team2: TeamRef
    score1: Optional[int] = None
    score2: Optional[int] = None
    winner_id: Optional[str] = None
    round: Optional[str] = None
    slot: Optional[int] = None

    @property
    def team1_id(self) -> Optional[str]:
        return self.team1.team_id

    @property
    def team2_id(self) -> Optional[str]:
        return self.team2.team_id

    @property
    def is_scored(self) -> bool:
        return self.score1 is not None and self.score2 is not None

    @property
    def is_playable(self) -> bool:
        """Both participants are real teams, so a score may be entered."""
        return self.team1.is_resolved and self.team2.is_resolved

    @property
    def loser_id(self) -> Optional[str]:
        if self.winner_id is None:
            return None
        return self.team2_id if self.winner_id == self.team1_id else self.team1_id

    def with_score(self, score1: Optional[int], score2: Optional[int]) -> 'Match':
        """Return a copy carrying the given score and the matching winner."""
        return replace(self, score1=score1, score2=score2,
                       winner_id=decide_winner(self.team1, self.team2, score1, score2))


@dataclass(frozen=True)
class TournamentConfig:
    num_groups: int = 1
    mode: str = SINGLES
    has_knockout: bool = True
    knockout_type: str = TOP2
    shared_third_place: bool = True


@dataclass(frozen=True)
class TournamentState:
    id: str
    name: str
    created_by: str
    teams: List[Team]
    matches: List[Match]
    config: TournamentConfig

    @property
    def group_matches(self) -> List[Match]:
        return [m for m in self.matches if m.stage == STAGE_GROUP]

    @property
    def knockout_matches(self) -> List[Match]:
        return [m for m in self.matches if m.stage == STAGE_KNOCKOUT]

    def find_match(self, match_id: str) -> Optional[Match]:
        for match in self.matches:
            if match.id == match_id:
                return match
        return None

    def find_team(self, team_id: Optional[str]) -> Optional[Team]:
        for team in self.teams:
            if team.id == team_id:
                return team
        return None

    def group_names(self) -> List[str]:
        """Group names in label order, as they appear on the teams."""
        return sorted({t.group for t in self.teams if t.group}, key=group_letter)
