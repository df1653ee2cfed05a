"""Authentication and rate limiting for score recalculation endpoints"""
import os
import hmac
import threading
import time
from functools import wraps
from flask import request, jsonify
import logging

logger = logging.getLogger(__name__)

# Simple in-memory rate limiting
rate_limit_storage = {}
_rate_limit_lock = threading.Lock()

def check_admin_auth():
    """Check if the request has valid admin authentication"""
    admin_token = os.environ.get('ADMIN_API_TOKEN')

    # If no admin token is configured, log warning and allow access
    if not admin_token:
        logger.warning("ADMIN_API_TOKEN not configured - admin endpoints are unprotected!")
        return True

    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return False

    # Support both Bearer token and API-Key formats
    if auth_header.startswith('Bearer '):
        provided_token = auth_header[7:]
    elif auth_header.startswith('API-Key '):
        provided_token = auth_header[8:]
    else:
        provided_token = auth_header

    # Constant-time comparison to prevent timing attacks
    return hmac.compare_digest(provided_token, admin_token)

def admin_required(f):
    """Decorator to require admin authentication for endpoints"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not check_admin_auth():
            logger.warning(f"Unauthorized access attempt to {request.endpoint} from {request.remote_addr}")
            return jsonify({
                "success": False,
                "error": "Unauthorized. Admin authentication required."
            }), 401
        return f(*args, **kwargs)
    return decorated_function

def rate_limit(max_requests=10, window_seconds=60):
    """Rate limiting decorator

    Args:
        max_requests: Maximum number of requests allowed
        window_seconds: Time window in seconds
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            key = f"{request.remote_addr}:{request.endpoint}"
            current_time = time.time()

            with _rate_limit_lock:
                recent = [
                    timestamp for timestamp in rate_limit_storage.get(key, [])
                    if current_time - timestamp < window_seconds
                ]
                if len(recent) >= max_requests:
                    rate_limit_storage[key] = recent
                    logger.warning(f"Rate limit exceeded for {request.remote_addr} on {request.endpoint}")
                    return jsonify({
                        "success": False,
                        "error": f"Rate limit exceeded. Maximum {max_requests} requests per {window_seconds} seconds."
                    }), 429

                recent.append(current_time)
                rate_limit_storage[key] = recent

            return f(*args, **kwargs)
        return decorated_function
    return decorator
