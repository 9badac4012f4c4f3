#!/usr/bin/env python3
"""
Partners Analytics API Server
Provides REST endpoints for the partner dashboard
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from collections import defaultdict
from functools import wraps

from flask import Flask, jsonify, request, session
from flask_cors import CORS
from werkzeug.security import check_password_hash, generate_password_hash

from config import config
from errors import NotFoundError, ValidationError
from metrics import TREND_WINDOW, compute_metrics_response, format_transactions, resolve_window, to_iso
from seed import seed_project
from storage.factory import create_storage
from utils.price_fetcher import create_price_source
from validation import validate_project_updates, validate_registration

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = config.SESSION_SECRET
app.config.update(
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=config.SESSION_COOKIE_SECURE,
    SESSION_COOKIE_SAMESITE='None' if config.SESSION_COOKIE_SECURE else 'Lax',
    PERMANENT_SESSION_LIFETIME=timedelta(days=config.SESSION_MAX_AGE_DAYS),
)
CORS(app, origins=config.CORS_ORIGINS, supports_credentials=True)

storage = create_storage()
price_source = create_price_source()

# =============================================================================
# Constants and Configuration
# =============================================================================

# Returned by /api/me for users that have no project yet
EMPTY_PROJECT = {
    'id': '',
    'name': None,
    'logoUrl': None,
    'dappUrl': None,
    'btcAddress': None,
    'thorName': None,
    'mayaName': None,
    'chainflipAddress': None,
    'setupCompleted': 'false'
}

rate_limit_store = defaultdict(lambda: {'count': 0, 'reset_time': 0})

# =============================================================================
# Helper Functions
# =============================================================================

def error_response(message, status):
    return jsonify({'message': message}), status


def get_client_ip():
    """Get client IP from request headers"""
    forwarded_for = request.headers.get('X-Forwarded-For')
    real_ip = request.headers.get('X-Real-IP')

    if real_ip:
        return real_ip
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.remote_addr or 'unknown'


def check_rate_limit(ip):
    """
    Check rate limit for an IP address.
    Returns dict with 'allowed', 'remaining', 'reset_in' keys.
    """
    now = int(time.time() * 1000)
    window = config.AUTH_RATE_LIMIT_WINDOW_MS
    max_requests = config.AUTH_RATE_LIMIT_MAX_REQUESTS
    record = rate_limit_store[ip]

    # Clean up old entries periodically
    if len(rate_limit_store) > 10000:
        to_delete = [k for k, v in rate_limit_store.items() if v['reset_time'] < now]
        for k in to_delete:
            del rate_limit_store[k]

    if record['reset_time'] == 0 or now > record['reset_time']:
        rate_limit_store[ip] = {'count': 1, 'reset_time': now + window}
        return {'allowed': True, 'remaining': max_requests - 1, 'reset_in': window}

    if record['count'] >= max_requests:
        return {'allowed': False, 'remaining': 0, 'reset_in': record['reset_time'] - now}

    record['count'] += 1
    return {
        'allowed': True,
        'remaining': max_requests - record['count'],
        'reset_in': record['reset_time'] - now
    }


def rate_limited(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        rate_limit = check_rate_limit(get_client_ip())
        if not rate_limit['allowed']:
            reset_seconds = max(1, rate_limit['reset_in'] // 1000)
            response, status = error_response('Too many requests, please try again later', 429)
            response.headers['Retry-After'] = str(reset_seconds)
            return response, status
        return view(*args, **kwargs)
    return wrapper


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get('user_id'):
            return error_response('Unauthorized', 401)
        return view(*args, **kwargs)
    return wrapper


def safe_int(value, default=0):
    """Safely convert value to int"""
    try:
        return int(value) if value is not None else default
    except (ValueError, TypeError):
        return default


def get_json_body():
    """Request JSON as a dict; anything else counts as an empty body"""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_limit(raw):
    limit = safe_int(raw, config.DEFAULT_TRANSACTION_LIMIT)
    if limit < 0:
        limit = config.DEFAULT_TRANSACTION_LIMIT
    return min(limit, config.MAX_TRANSACTION_LIMIT)


def get_current_project_id():
    """Project id of the signed-in user; raises NotFoundError if there is none"""
    user = storage.get_user(session['user_id'])
    if not user or not user.get('project_id'):
        raise NotFoundError('Project not found')
    if not storage.get_project(user['project_id']):
        raise NotFoundError('Project not found')
    return user['project_id']


def serialize_user(user):
    return {
        'id': user['id'],
        'email': user['email'],
        'name': user['name'],
        'role': user['role'],
        'projectId': user.get('project_id'),
        'googleId': user.get('google_id'),
        'avatarUrl': user.get('avatar_url'),
        'createdAt': to_iso(user.get('created_at')),
        'updatedAt': to_iso(user.get('updated_at'))
    }


def serialize_project(project):
    if not project:
        return None
    return {
        'id': project['id'],
        'name': project.get('name'),
        'logoUrl': project.get('logo_url'),
        'dappUrl': project.get('dapp_url'),
        'btcAddress': project.get('btc_address'),
        'thorName': project.get('thor_name'),
        'mayaName': project.get('maya_name'),
        'chainflipAddress': project.get('chainflip_address'),
        'setupCompleted': project.get('setup_completed') or 'false'
    }


def serialize_api_key(api_key):
    return {
        'id': api_key['id'],
        'projectId': api_key['project_id'],
        'name': api_key['name'],
        'key': api_key['key'],
        'status': api_key['status'],
        'createdAt': to_iso(api_key['created_at'])
    }

# =============================================================================
# Auth Endpoints
# =============================================================================

@app.route('/api/auth/register', methods=['POST'])
@rate_limited
def register():
    """Create a user together with an empty (seeded) project"""
    try:
        data = get_json_body()
        name, email, password = validate_registration(data)

        if storage.get_user_by_email(email):
            return error_response('User already exists', 400)

        project = storage.create_project({})
        if config.SEED_PROJECT_DATA:
            seed_project(storage, project['id'])

        try:
            user = storage.create_user(name, email, generate_password_hash(password), project['id'])
        except Exception:
            # e.g. a concurrent registration won the unique email
            storage.delete_project(project['id'])
            raise

        session.clear()
        session.permanent = True
        session['user_id'] = user['id']
        logger.info(f"Registered user {user['id']} with project {project['id']}")

        return jsonify({
            'user': serialize_user(user),
            'project': serialize_project(project)
        }), 201

    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error registering user: {e}")
        return error_response(str(e) or 'Registration failed', 500)


@app.route('/api/auth/login', methods=['POST'])
@rate_limited
def login():
    try:
        data = get_json_body()
        email = str(data.get('email') or '').strip()
        password = str(data.get('password') or '')

        user = storage.get_user_by_email(email) if email else None
        if not user or not user.get('password') or not check_password_hash(user['password'], password):
            return error_response('Invalid email or password', 401)

        session.clear()
        session.permanent = True
        session['user_id'] = user['id']

        project = storage.get_project(user['project_id']) if user.get('project_id') else None
        return jsonify({
            'user': serialize_user(user),
            'project': serialize_project(project)
        })

    except Exception as e:
        logger.error(f"Error logging in: {e}")
        return error_response(str(e) or 'Login failed', 500)


@app.route('/api/auth/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'Logged out successfully'})

# =============================================================================
# Account and Project Endpoints
# =============================================================================

@app.route('/api/me')
@login_required
def get_me():
    """Current user and their project (placeholder project when none is linked)"""
    try:
        user = storage.get_user(session['user_id'])
        if not user:
            return error_response('User not found', 404)

        project = storage.get_project(user['project_id']) if user.get('project_id') else None
        return jsonify({
            'user': serialize_user(user),
            'project': serialize_project(project) or dict(EMPTY_PROJECT)
        })

    except Exception as e:
        logger.error(f"Error getting current user: {e}")
        return error_response(str(e) or 'Failed to fetch user data', 500)


@app.route('/api/project', methods=['PATCH'])
@login_required
def update_project():
    try:
        project_id = get_current_project_id()
        updates = validate_project_updates(request.get_json(silent=True) or {})

        project = storage.update_project(project_id, updates)
        if not project:
            return error_response('Project not found', 404)

        return jsonify(serialize_project(project))

    except NotFoundError as e:
        return error_response(str(e), 404)
    except ValidationError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error updating project: {e}")
        return error_response(str(e) or 'Failed to update project', 500)

# =============================================================================
# Dashboard Data Endpoints
# =============================================================================

@app.route('/api/metrics')
@login_required
def get_metrics():
    """
    Chart series and KPI totals for the caller's project.

    Query params: from, to (ISO-8601, inclusive) and/or range (1d, 7d, 1m,
    3m, all). change24h always covers the trailing 48h before now,
    whatever window was requested.
    """
    try:
        project_id = get_current_project_id()
        now = datetime.now(timezone.utc)

        start, end = resolve_window(
            request.args.get('from'),
            request.args.get('to'),
            request.args.get('range') or request.args.get('r'),
            now
        )

        points = storage.get_metrics(project_id, start, end)
        trend_points = storage.get_metrics(project_id, now - 2 * TREND_WINDOW, None)

        return jsonify(compute_metrics_response(
            points,
            now,
            trend_points=trend_points,
            btc_price=price_source.get_btc_price()
        ))

    except NotFoundError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error getting metrics: {e}")
        return error_response(str(e) or 'Failed to fetch metrics', 500)


@app.route('/api/transactions')
@login_required
def get_transactions():
    """Most recent transactions, newest first"""
    try:
        project_id = get_current_project_id()
        limit = parse_limit(request.args.get('limit'))

        transactions = storage.get_transactions(project_id, limit)
        return jsonify(format_transactions(transactions))

    except NotFoundError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error getting transactions: {e}")
        return error_response(str(e) or 'Failed to fetch transactions', 500)

# =============================================================================
# API Key Endpoints
# =============================================================================

@app.route('/api/keys', methods=['GET'])
@login_required
def list_api_keys():
    try:
        project_id = get_current_project_id()
        return jsonify([serialize_api_key(k) for k in storage.get_api_keys(project_id)])

    except NotFoundError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error getting API keys: {e}")
        return error_response(str(e) or 'Failed to fetch API keys', 500)


@app.route('/api/keys', methods=['POST'])
@login_required
def create_api_key():
    try:
        project_id = get_current_project_id()
        data = get_json_body()
        name = data.get('name')

        if not isinstance(name, str) or not name.strip():
            return error_response('API key name is required', 400)

        api_key = storage.create_api_key(project_id, name.strip())
        return jsonify(serialize_api_key(api_key)), 201

    except NotFoundError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error creating API key: {e}")
        return error_response(str(e) or 'Failed to create API key', 500)


@app.route('/api/keys/<key_id>', methods=['DELETE'])
@login_required
def delete_api_key(key_id):
    try:
        project_id = get_current_project_id()

        if not storage.delete_api_key(key_id, project_id):
            return error_response('API key not found', 404)

        logger.info(f"Deleted API key {key_id} for project {project_id}")
        return jsonify({'message': 'API key deleted successfully'})

    except NotFoundError as e:
        return error_response(str(e), 404)
    except Exception as e:
        logger.error(f"Error deleting API key: {e}")
        return error_response(str(e) or 'Failed to delete API key', 500)

# =============================================================================
# Health
# =============================================================================

@app.route('/api/health')
def health_check():
    """Health check endpoint"""
    try:
        if storage.ping():
            return jsonify({'status': 'healthy', 'database': 'connected'})
        return jsonify({'status': 'unhealthy', 'database': 'disconnected'}), 500
    except Exception as e:
        return jsonify({'status': 'unhealthy', 'error': str(e)}), 500

# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == '__main__':
    logger.info("Starting Partners Analytics API server...")
    logger.info(f"API will be available at http://localhost:{config.PORT}")
    app.run(host='0.0.0.0', port=config.PORT, debug=False)
