"""
Unified API Server for Beatfolio.
Serves the public catalog (beats, counters, comments, profile) and the
artist's admin operations to the web page, the visitor CLI and the studio.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from functools import wraps
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, make_response, request, send_file, session
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException

from shared.config import AppConfig
from shared.constants import ADMIN_SESSION_DAYS, ADMIN_SESSION_KEY, DEFAULT_API_PORT
from shared.database import DatabaseManager
from shared.models import Beat, Profile, ReactionDelta
from studio.audio import AudioAnalyzer
from studio.local_provider import LocalStorageProvider
from studio.provider_factory import StorageProviderFactory
from studio.storage_provider import ObjectStorageProvider
from studio.uploader import BeatPublisher, MediaFile, PublishError, parse_bool

logger = logging.getLogger(__name__)

socketio = SocketIO()
api = Blueprint('api', __name__)

# wire key -> BeatPublisher field
METADATA_FIELDS = {
    "title": "title",
    "bpm": "bpm",
    "key": "key",
    "description": "description",
    "forSale": "for_sale",
    "price": "price",
}
DELTA_FIELDS = ("likeDelta", "dislikeDelta")
PROFILE_TEXT_FIELDS = ("pseudo", "tagline", "instagram", "twitter", "youtube", "email", "backgroundBlur")


@dataclass
class Core:
    config: AppConfig
    db: DatabaseManager
    storage: ObjectStorageProvider
    publisher: BeatPublisher


def get_core() -> Core:
    return current_app.extensions['beatfolio']


def _no_store(response):
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate'
    response.headers['Pragma'] = 'no-cache'
    return response


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def is_admin() -> bool:
    return session.get(ADMIN_SESSION_KEY) is True


def admin_required(f):
    """Reject the request with 401 unless the admin session is set."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not is_admin():
            return _no_store(make_response(_error("Unauthorized", 401)))
        return _no_store(make_response(f(*args, **kwargs)))
    return decorated


def beat_payload(beat: Beat) -> Dict[str, Any]:
    """Wire form of a beat with browser-fetchable media URLs."""
    storage = get_core().storage
    data = beat.to_dict()
    data['audioUrl'] = storage.get_file_url(beat.audio_path) if beat.audio_path else None
    data['coverUrl'] = storage.get_file_url(beat.cover_path) if beat.cover_path else None
    return data


def profile_payload(profile: Profile) -> Dict[str, Any]:
    storage = get_core().storage
    data = profile.to_dict()
    for slot in Profile.IMAGE_SLOTS:
        data[slot] = storage.get_file_url(data[slot]) if data[slot] else ""
    return data


def _media(name: str) -> Optional[MediaFile]:
    upload = request.files.get(name)
    if upload is None or not upload.filename:
        return None
    return MediaFile(filename=upload.filename, stream=upload.stream, content_type=upload.mimetype)


# --- Health ---

@api.route('/api/health')
def health_check():
    return jsonify({"status": "healthy"})


# --- Beats ---

@api.route('/api/beats', methods=['GET'])
def list_beats():
    return jsonify([beat_payload(b) for b in get_core().db.get_all_beats()])


@api.route('/api/beats', methods=['POST'])
@admin_required
def create_beat():
    core = get_core()
    form = request.form
    try:
        beat = core.publisher.publish(
            audio=_media('audio'),
            title=form.get('title', ''),
            cover=_media('cover'),
            bpm=form.get('bpm'),
            key=form.get('key'),
            description=form.get('description', ''),
            for_sale=parse_bool(form.get('forSale', False)),
            price=form.get('price'),
            analyze=parse_bool(form.get('analyze', True)),
        )
    except PublishError as e:
        return _error(str(e), 400)

    socketio.emit('beats_updated')
    return jsonify(beat_payload(beat)), 201


@api.route('/api/beats/<beat_id>', methods=['PATCH'])
def update_beat(beat_id):
    """
    Apply reaction deltas and/or metadata edits.

    Deltas are public: each is added to its counter and the result floored
    at zero. Metadata edits need the admin session.
    """
    core = get_core()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("Expected a JSON object", 400)

    has_deltas = any(name in data for name in DELTA_FIELDS)
    metadata = {attr: data[wire] for wire, attr in METADATA_FIELDS.items() if wire in data}
    if not has_deltas and not metadata:
        return _error("Nothing to update", 400)

    if metadata and not is_admin():
        return _no_store(make_response(_error("Unauthorized", 401)))

    delta = None
    if has_deltas:
        try:
            delta = ReactionDelta.from_payload(data)
        except ValueError as e:
            return _error(str(e), 400)

    if core.db.get_beat(beat_id) is None:
        return _error("Beat not found", 404)

    beat = None
    if metadata:
        try:
            beat = core.publisher.update_metadata(beat_id, metadata)
        except PublishError as e:
            return _error(str(e), 400)
    if delta is not None:
        beat = core.db.apply_reaction_delta(beat_id, delta.like_delta, delta.dislike_delta)

    if beat is None:
        return _error("Beat not found", 404)

    socketio.emit('beats_updated')
    response = make_response(jsonify(beat_payload(beat)))
    return _no_store(response) if metadata else response


@api.route('/api/beats/<beat_id>', methods=['DELETE'])
@admin_required
def delete_beat(beat_id):
    beat = get_core().publisher.remove(beat_id)
    if beat is None:
        return _error("Beat not found", 404)
    socketio.emit('beats_updated')
    return jsonify({"status": "deleted", "id": beat.id})


# --- Comments ---

@api.route('/api/beats/<beat_id>/comments', methods=['GET'])
def list_comments(beat_id):
    db = get_core().db
    if db.get_beat(beat_id) is None:
        return _error("Beat not found", 404)
    return jsonify([c.to_dict() for c in db.get_comments(beat_id)])


@api.route('/api/beats/<beat_id>/comments', methods=['POST'])
def add_comment(beat_id):
    db = get_core().db
    data = request.get_json(silent=True) or {}
    author = data.get('author') if isinstance(data, dict) else None
    content = data.get('content') if isinstance(data, dict) else None
    author = author.strip() if isinstance(author, str) else ""
    content = content.strip() if isinstance(content, str) else ""
    if not author or not content:
        return _error("Author and content are required", 400)

    if db.get_beat(beat_id) is None:
        return _error("Beat not found", 404)

    comment = db.add_comment(beat_id, author, content)
    return jsonify(comment.to_dict()), 201


# --- Profile ---

@api.route('/api/profile', methods=['GET'])
def get_profile():
    return jsonify(profile_payload(get_core().db.get_profile()))


@api.route('/api/profile', methods=['POST'])
@admin_required
def update_profile():
    form = request.form
    fields = {name: form.get(name) for name in PROFILE_TEXT_FIELDS if name in form}
    images = {}
    deletions = []
    for slot in Profile.IMAGE_SLOTS:
        media = _media(slot)
        if media is not None:
            images[slot] = media
        elif parse_bool(form.get(f"delete_{slot}", False)):
            deletions.append(slot)

    try:
        profile = get_core().publisher.update_profile(fields, images, deletions)
    except PublishError as e:
        return _error(str(e), 400)

    socketio.emit('profile_updated')
    return jsonify(profile_payload(profile))


# --- Auth ---

@api.route('/api/auth/login', methods=['POST'])
def login():
    configured = get_core().config.admin_password
    data = request.get_json(silent=True) or {}
    password = data.get('password') if isinstance(data, dict) else None

    if not configured:
        logger.warning("Login attempted but no admin password is configured")
        return _no_store(make_response(_error("Invalid password", 401)))

    if not isinstance(password, str) or not hmac.compare_digest(password.encode(), configured.encode()):
        logger.info(f"Failed admin login from {request.remote_addr}")
        return _no_store(make_response(_error("Invalid password", 401)))

    session.permanent = True
    session[ADMIN_SESSION_KEY] = True
    return _no_store(make_response(jsonify({"status": "ok"})))


@api.route('/api/auth/logout', methods=['POST'])
def logout():
    session.pop(ADMIN_SESSION_KEY, None)
    return _no_store(make_response(jsonify({"status": "ok"})))


# --- Media ---

@api.route('/media/<path:key>')
def serve_media(key):
    storage = get_core().storage
    if not isinstance(storage, LocalStorageProvider):
        return _error("Not found", 404)
    try:
        path = storage.local_path(key)
    except ValueError:
        return _error("Not found", 404)
    if not path.is_file():
        return _error("Not found", 404)
    return send_file(path)


def handle_error(e):
    if isinstance(e, HTTPException):
        return _error(e.description or e.name, e.code)
    logger.exception(f"Unhandled error on {request.method} {request.path}")
    return _error("Internal Server Error", 500)


def create_app(config: Optional[AppConfig] = None,
               db: Optional[DatabaseManager] = None,
               storage: Optional[ObjectStorageProvider] = None,
               analyzer: Optional[AudioAnalyzer] = None) -> Flask:
    """
    Build the Flask application.

    Collaborators not passed in are built from the config: the SQLite
    database at config.database_path, the configured storage provider and,
    when upload analysis is enabled, a librosa analyzer.
    """
    config = config or AppConfig.load()
    db = db or DatabaseManager(config.database_path)
    storage = storage or StorageProviderFactory.from_config(config)
    if analyzer is None and config.analyze_uploads:
        analyzer = AudioAnalyzer()

    app = Flask(__name__)
    if config.secret_key:
        app.secret_key = config.secret_key
    else:
        logger.warning("FLASK_SECRET_KEY not set; admin sessions will not survive a restart")
        app.secret_key = secrets.token_hex(32)
    app.permanent_session_lifetime = timedelta(days=ADMIN_SESSION_DAYS)
    app.config['SESSION_COOKIE_NAME'] = ADMIN_SESSION_KEY
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'

    app.extensions['beatfolio'] = Core(
        config=config,
        db=db,
        storage=storage,
        publisher=BeatPublisher(db, storage, analyzer),
    )

    CORS(app, supports_credentials=True)
    app.register_blueprint(api)
    app.register_error_handler(Exception, handle_error)
    socketio.init_app(app, cors_allowed_origins="*")
    return app


# --- Server Management ---

def start_api(config: Optional[AppConfig] = None, host: str = '0.0.0.0',
              port: int = DEFAULT_API_PORT, debug: bool = False):
    config = config or AppConfig.load()
    app = create_app(config)
    stats = get_stats(app)

    print("--- Beatfolio API Boot Sequence ---")
    print(f"Database: {config.database_path}")
    print(f"Storage:  {StorageProviderFactory.get_provider_name(config.storage_provider)}")
    print(f"Catalog:  {stats['beats']} beats, {stats['comments']} comments")
    if not config.admin_password:
        print("WARNING: ADMIN_PASSWORD is not set, admin login is disabled")
    print("\n" + "=" * 40)
    print("       BEATFOLIO ONLINE")
    print("=" * 40)
    print(f"Local:  http://localhost:{port}/api/beats")
    print("=" * 40 + "\n")

    socketio.run(app, host=host, port=port, debug=debug, allow_unsafe_werkzeug=True)


def get_stats(app: Flask) -> Dict[str, int]:
    with app.app_context():
        return get_core().db.get_stats()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    start_api()
