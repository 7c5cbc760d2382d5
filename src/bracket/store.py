"""
File-backed tournament store.

Each tournament is one YAML snapshot under ``<data_dir>/tournaments/<id>.yaml``.
Writes replace the whole snapshot under a file lock (last write wins), then
notify subscribers so a transport layer can broadcast the new state.
"""
import logging
import os
import re
from typing import Callable, Dict, List, Optional

import yaml
from filelock import FileLock

from bracket.models import TournamentState
from bracket.errors import ImportFormatError, ValidationError
from bracket.serialization import state_to_dict, state_from_dict
from bracket.tournament import get_default_config

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]*$')

EVENT_REPLACED = 'replaced'
EVENT_DELETED = 'deleted'


class TournamentStore:
    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        self.tournaments_dir = os.path.join(data_dir, 'tournaments')
        os.makedirs(self.tournaments_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)
        self._subscribers = []

    def _path(self, tournament_id: str) -> str:
        # Ids become file names, so reject anything that could escape the directory.
        if not tournament_id or not _SAFE_ID.match(tournament_id):
            raise ValidationError(f"Invalid tournament id: {tournament_id!r}")
        return os.path.join(self.tournaments_dir, f"{tournament_id}.yaml")

    def subscribe(self, callback: Callable[[str, str, Optional[TournamentState]], None]):
        """Register ``callback(event, tournament_id, state)``, called after every write."""
        self._subscribers.append(callback)

    def _publish(self, event: str, tournament_id: str, state: Optional[TournamentState]):
        for callback in self._subscribers:
            callback(event, tournament_id, state)

    def list(self) -> List[Dict]:
        """Summaries (id, name, created_by) of all stored tournaments, by id."""
        summaries = []
        for filename in sorted(os.listdir(self.tournaments_dir)):
            if not filename.endswith('.yaml'):
                continue
            path = os.path.join(self.tournaments_dir, filename)
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                logger.warning(f"Failed to parse {path}: {e}")
                continue
            summaries.append({
                'id': data.get('id', filename[:-len('.yaml')]),
                'name': data.get('name', ''),
                'created_by': data.get('created_by', ''),
            })
        return summaries

    def get(self, tournament_id: str) -> Optional[TournamentState]:
        """Load a tournament, or None if it does not exist."""
        path = self._path(tournament_id)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ImportFormatError(f"Failed to parse {path}: {e}")
        return state_from_dict(data)

    def replace(self, state: TournamentState) -> TournamentState:
        """Store ``state`` as the current snapshot of its tournament."""
        path = self._path(state.id)
        tmp_path = path + '.tmp'
        with self._lock:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(state_to_dict(state), f, default_flow_style=False,
                               allow_unicode=True, sort_keys=False)
            os.replace(tmp_path, path)
        self._publish(EVENT_REPLACED, state.id, state)
        return state

    def delete(self, tournament_id: str) -> bool:
        """Delete a tournament. Returns False if it did not exist."""
        path = self._path(tournament_id)
        with self._lock:
            if not os.path.exists(path):
                return False
            os.remove(path)
        self._publish(EVENT_DELETED, tournament_id, None)
        return True

    def load_defaults(self) -> Dict:
        """Tournament defaults, with overrides from ``defaults.yaml`` when present."""
        defaults = get_default_config()
        path = os.path.join(self.data_dir, 'defaults.yaml')
        if not os.path.exists(path):
            return defaults
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not data:
            return defaults
        for key in defaults:
            if key in data:
                defaults[key] = data[key]
        return defaults
