"""
GameOn Flask Application
Main application module.
Initialises the Flask app, database and shared services, and registers all blueprints.
"""

# IMPORTANT: Load environment variables FIRST before other imports
from dotenv import load_dotenv
load_dotenv()

from flask import Flask, jsonify, request
from flask_cors import CORS
import os
import logging
from datetime import datetime
from urllib.parse import urlparse

# Import application modules
from database import init_db
from errors import ApiError
from rate_limit import RateLimiter
from participants_stream import ParticipantEvents

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Configuration
DEBUG = os.environ.get('DEBUG', 'False').lower() == 'true'
PORT = int(os.environ.get('PORT', 5000))


def _normalize_url(value):
    """Strip trailing slash while keeping scheme/host"""
    if not value:
        return ''
    return value.rstrip('/')


def _split_env_list(value):
    """Split comma-separated env values into a cleaned list"""
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def _get_www_variant(url_value):
    """Return www. variant of a URL if applicable"""
    parsed = urlparse(url_value)
    if parsed.hostname and not parsed.hostname.startswith('www.'):
        port = f":{parsed.port}" if parsed.port else ''
        return f"{parsed.scheme}://www.{parsed.hostname}{port}"
    return None


# Base URLs (configurable via .env)
SITE_BASE_URL = _normalize_url(os.environ.get('SITE_BASE_URL', 'https://gameon.baby'))


def _build_cors_origins():
    """Build the CORS origins list from env with sensible defaults."""
    env_origins = _split_env_list(os.environ.get('CORS_ORIGINS', ''))
    if env_origins:
        return [_normalize_url(origin) for origin in env_origins]

    origins = ['http://localhost:3000', 'http://127.0.0.1:3000', 'http://localhost:5000']
    if SITE_BASE_URL:
        origins.append(SITE_BASE_URL)
        www_variant = _get_www_variant(SITE_BASE_URL)
        if www_variant:
            origins.append(www_variant)
    return origins


# Enable CORS with credentials support for the identity cookie
CORS(app, supports_credentials=True, origins=_build_cors_origins())

# Initialize database on startup
init_db()

# Process-wide services shared by the request handlers
app.extensions['rate_limiter'] = RateLimiter()
app.extensions['participant_events'] = ParticipantEvents()


# ========================================
# Register Blueprints
# ========================================
from routes_api_events import events_api_bp
from routes_api_registration import registration_api_bp
from routes_api_admin import admin_api_bp
from routes_api_auth import auth_api_bp

app.register_blueprint(events_api_bp)
app.register_blueprint(registration_api_bp)
app.register_blueprint(admin_api_bp)
app.register_blueprint(auth_api_bp)


# ========================================
# Security headers middleware
# ========================================
@app.after_request
def add_security_headers(response):
    """Add security and default cache-control headers to all responses"""
    # Add default no-cache headers for dynamic content
    if 'Cache-Control' not in response.headers:
        response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Expires'] = '0'

    # Prevent MIME-type sniffing
    response.headers['X-Content-Type-Options'] = 'nosniff'
    # Prevent clickjacking
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    return response


# Health check
@app.route('/health')
@app.route('/api/health')
def health():
    """Health check endpoint"""
    return jsonify({
        'status': 'ok',
        'service': 'GameOn API',
        'version': '1.0.0',
        'timestamp': datetime.now().isoformat()
    })


# ========================================
# Error Handlers
# ========================================

@app.errorhandler(ApiError)
def handle_api_error(e):
    """Errors raised outside a handler's own try block"""
    return e.to_response()


@app.errorhandler(404)
def not_found(e):
    """Handle 404 errors"""
    return jsonify({
        'success': False,
        'message': 'Endpoint not found'
    }), 404


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({
        'success': False,
        'message': f"Method {request.method} not allowed"
    }), 405


@app.errorhandler(500)
def internal_error(e):
    """Handle 500 errors"""
    logger.error(f"Internal server error: {e}", exc_info=True)
    return jsonify({
        'success': False,
        'message': 'Internal server error'
    }), 500


# ========================================
# Application Entry Point
# ========================================

if __name__ == '__main__':
    logger.info("="*60)
    logger.info("GameOn API Starting")
    logger.info("="*60)
    logger.info(f"Server URL: http://localhost:{PORT}")
    logger.info(f"Debug mode: {DEBUG}")
    logger.info(f"API Endpoints: http://localhost:{PORT}/api/*")
    logger.info("="*60)

    app.run(debug=DEBUG, host='0.0.0.0', port=PORT, threaded=True)
