"""
Flask web application for paddle-bracket.

A thin JSON layer: every write loads the tournament, runs one engine entry
point, and replaces the stored snapshot with the result.
"""
import os
import random

from flask import Flask, Response, current_app, jsonify, request

from bracket.errors import ImportFormatError, ValidationError
from bracket.serialization import (
    apply_scores_csv, from_json, from_yaml, matches_to_csv, state_to_dict, team_to_dict, to_json, to_yaml,
)
from bracket.store import TournamentStore
from bracket.tournament import (
    group_tables, podium, record_score, regenerate_from_roster, tournament_phase, update_knockout_config,
)

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKET_DATA_DIR', os.path.join(BASE_DIR, 'data'))
app.config['DATA_DIR'] = DATA_DIR
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10 MB
app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE

EXPORT_FORMATS = {
    'json': ('application/json', 'json'),
    'yaml': ('application/x-yaml', 'yaml'),
    'csv': ('text/csv', 'csv'),
}


def get_store() -> TournamentStore:
    """Store for the configured data directory."""
    return TournamentStore(current_app.config['DATA_DIR'])


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    app.logger.warning(f'Rejected input: {e}')
    return jsonify({'error': str(e)}), 400


@app.errorhandler(ImportFormatError)
def handle_import_error(e):
    app.logger.warning(f'Import failed: {e}')
    return jsonify({'error': str(e)}), 400


def _load_or_404(store, tournament_id):
    state = store.get(tournament_id)
    if state is None:
        return None, (jsonify({'error': f'Tournament not found: {tournament_id}'}), 404)
    return state, None


def _snapshot(state):
    """State dict plus the phase, as returned by every endpoint."""
    data = state_to_dict(state)
    data['phase'] = tournament_phase(state)
    return data


def _rng_from(data):
    seed = data.get('seed')
    return random.Random(seed) if seed is not None else None


def _build_config(store, data):
    """Request config merged over the stored defaults."""
    config = store.load_defaults()
    config.update(data.get('config') or {})
    return config


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    """List stored tournaments."""
    return jsonify({'tournaments': get_store().list()})


@app.route('/api/tournaments', methods=['POST'])
def api_create_tournament():
    """Create a tournament from roster text and settings."""
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Tournament name is required'}), 400

    store = get_store()
    state = regenerate_from_roster(
        data.get('roster') or '',
        _build_config(store, data),
        name=name,
        created_by=data.get('created_by') or '',
        rng=_rng_from(data),
    )
    store.replace(state)
    app.logger.info(f'Created tournament {state.id} ({name}): {len(state.teams)} teams')
    return jsonify(_snapshot(state)), 201


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
def api_get_tournament(tournament_id):
    state, error = _load_or_404(get_store(), tournament_id)
    if error:
        return error
    return jsonify(_snapshot(state))


@app.route('/api/tournaments/<tournament_id>', methods=['DELETE'])
def api_delete_tournament(tournament_id):
    if not get_store().delete(tournament_id):
        return jsonify({'error': f'Tournament not found: {tournament_id}'}), 404
    app.logger.info(f'Deleted tournament {tournament_id}')
    return jsonify({'success': True})


@app.route('/api/tournaments/<tournament_id>/regenerate', methods=['POST'])
def api_regenerate_tournament(tournament_id):
    """Rebuild a tournament from a new roster. All recorded results are discarded."""
    store = get_store()
    current, error = _load_or_404(store, tournament_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    config = store.load_defaults()
    config.update({k: getattr(current.config, k) for k in config})
    config.update(data.get('config') or {})
    state = regenerate_from_roster(
        data.get('roster') or '',
        config,
        name=(data.get('name') or current.name).strip(),
        created_by=current.created_by,
        tournament_id=current.id,
        rng=_rng_from(data),
    )
    store.replace(state)
    app.logger.info(f'Regenerated tournament {tournament_id}')
    return jsonify(_snapshot(state))


@app.route('/api/tournaments/<tournament_id>/score', methods=['POST'])
def api_record_score(tournament_id):
    """Record or clear (both scores empty) a match score."""
    store = get_store()
    state, error = _load_or_404(store, tournament_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    match_id = data.get('match_id')
    if not match_id:
        return jsonify({'error': 'Missing match_id'}), 400

    state = record_score(state, match_id, data.get('score1'), data.get('score2'))
    store.replace(state)
    return jsonify(_snapshot(state))


@app.route('/api/tournaments/<tournament_id>/config', methods=['POST'])
def api_update_config(tournament_id):
    """Change knockout settings (has_knockout, knockout_type, shared_third_place)."""
    store = get_store()
    state, error = _load_or_404(store, tournament_id)
    if error:
        return error

    patch = request.get_json(silent=True)
    if not isinstance(patch, dict) or not patch:
        return jsonify({'error': 'Missing settings'}), 400

    state = update_knockout_config(state, patch)
    store.replace(state)
    return jsonify(_snapshot(state))


@app.route('/api/tournaments/<tournament_id>/standings', methods=['GET'])
def api_standings(tournament_id):
    state, error = _load_or_404(get_store(), tournament_id)
    if error:
        return error
    return jsonify({'standings': group_tables(state)})


@app.route('/api/tournaments/<tournament_id>/podium', methods=['GET'])
def api_podium(tournament_id):
    state, error = _load_or_404(get_store(), tournament_id)
    if error:
        return error
    result = podium(state)
    return jsonify({
        'champion': team_to_dict(result['champion']) if result['champion'] else None,
        'runner_up': team_to_dict(result['runner_up']) if result['runner_up'] else None,
        'third_place': [team_to_dict(t) for t in result['third_place']],
    })


@app.route('/api/tournaments/<tournament_id>/export', methods=['GET'])
def api_export_tournament(tournament_id):
    """Download a tournament as JSON (default), YAML or a CSV match sheet."""
    state, error = _load_or_404(get_store(), tournament_id)
    if error:
        return error

    fmt = request.args.get('format', 'json')
    if fmt not in EXPORT_FORMATS:
        return jsonify({'error': f'Unknown export format: {fmt}'}), 400

    if fmt == 'json':
        content = to_json(state)
    elif fmt == 'yaml':
        content = to_yaml(state)
    else:
        content = matches_to_csv(state)

    mimetype, extension = EXPORT_FORMATS[fmt]
    return Response(
        content,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename={state.id}.{extension}'},
    )


def _uploaded_text():
    """Text of an uploaded file, or of the raw request body."""
    file = request.files.get('file')
    if file is not None:
        return file.filename or '', file.read().decode('utf-8')
    return '', request.get_data(as_text=True)


@app.route('/api/tournaments/import', methods=['POST'])
def api_import_tournament():
    """Import a JSON or YAML snapshot, replacing any stored tournament with the same id."""
    filename, text = _uploaded_text()
    if not text.strip():
        return jsonify({'error': 'No data uploaded'}), 400

    if filename.endswith(('.yaml', '.yml')) or request.mimetype in ('application/x-yaml', 'text/yaml'):
        state = from_yaml(text)
    else:
        state = from_json(text)

    get_store().replace(state)
    app.logger.info(f'Imported tournament {state.id} ({state.name})')
    return jsonify(_snapshot(state)), 201


@app.route('/api/tournaments/<tournament_id>/import-scores', methods=['POST'])
def api_import_scores(tournament_id):
    """Apply scores from an edited CSV match sheet."""
    store = get_store()
    state, error = _load_or_404(store, tournament_id)
    if error:
        return error

    _, text = _uploaded_text()
    if not text.strip():
        return jsonify({'error': 'No data uploaded'}), 400

    state = apply_scores_csv(state, text)
    store.replace(state)
    return jsonify(_snapshot(state))


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
