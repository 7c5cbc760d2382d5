"""
Roster parsing: free-form entrant lines and spreadsheet rows to Player records.
"""
import logging
import uuid
from typing import Iterable, List, Sequence, Union

from bracket.models import Player, LEVEL_A, LEVEL_B, LEVEL_NONE

logger = logging.getLogger(__name__)


def normalize_level(token) -> str:
    """Map a tier token to 'A', 'B' or 'None' (case-insensitive)."""
    if token is None:
        return LEVEL_NONE
    level = str(token).strip().upper()
    if level in (LEVEL_A, LEVEL_B):
        return level
    return LEVEL_NONE


def parse_roster_line(line: str):
    """
    Split one roster line into ``(name, level)``.

    Entries look like ``"Name - A"`` or ``"Name, B"``; the first ``-`` or ``,``
    separates the name from the tier. Returns None for lines without a name.
    """
    parts = line.replace(',', '-').split('-')
    name = parts[0].strip()
    if not name:
        return None
    level = normalize_level(parts[1]) if len(parts) > 1 else LEVEL_NONE
    return name, level


def parse_roster(roster: Union[str, Iterable[str]]) -> List[Player]:
    """
    Parse roster text (or an iterable of lines) into players.

    Players get the synthetic id ``p-<index>`` where index counts the kept
    entries, so the same roster always yields the same ids. Blank and
    unrecognised lines are dropped.
    """
    lines = roster.splitlines() if isinstance(roster, str) else roster
    players = []
    for line in lines:
        if line is None:
            continue
        parsed = parse_roster_line(str(line))
        if parsed is None:
            continue
        name, level = parsed
        players.append(Player(id=f"p-{len(players)}", name=name, level=level))
    logger.debug(f"Parsed roster: {len(players)} players")
    return players


def _new_import_id() -> str:
    return f"p-import-{uuid.uuid4().hex[:12]}"


def players_from_rows(rows: Iterable[Sequence]) -> List[Player]:
    """
    Build players from spreadsheet-style rows ``(name, address, level)``.

    Missing trailing columns are allowed. Ids are random so imported players
    can be merged into an existing list without collisions.
    """
    players = []
    for row in rows:
        if not row:
            continue
        name = str(row[0]).strip() if row[0] is not None else ''
        if not name:
            continue
        address = str(row[1]).strip() if len(row) > 1 and row[1] is not None else ''
        level = normalize_level(row[2]) if len(row) > 2 else LEVEL_NONE
        players.append(Player(id=_new_import_id(), name=name, level=level, address=address))
    return players


def merge_players(existing: List[Player], imported: List[Player]) -> List[Player]:
    """Append imported players to an existing list, re-keying any clashing id."""
    taken = {p.id for p in existing}
    merged = list(existing)
    for player in imported:
        if player.id in taken:
            player = Player(id=_new_import_id(), name=player.name,
                            level=player.level, address=player.address)
        taken.add(player.id)
        merged.append(player)
    return merged


def roster_text(players: Iterable[Player]) -> str:
    """Render players back into roster lines that ``parse_roster`` accepts."""
    lines = []
    for player in players:
        if player.level == LEVEL_NONE:
            lines.append(player.name)
        else:
            lines.append(f"{player.name} - {player.level}")
    return '\n'.join(lines)
