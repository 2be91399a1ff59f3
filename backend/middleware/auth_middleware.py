from functools import wraps
from flask import request, jsonify
from firebase_admin import auth as firebase_auth
from backend.firebase_utils import get_db
from backend.utils.validators import Helpers


class AuthMiddleware:
    """Authentication middleware for Firebase ID tokens"""

    @staticmethod
    def verify_token(f):
        """Decorator to verify the Firebase ID token and load the caller's profile"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            token = None

            # Get token from Authorization header
            if 'Authorization' in request.headers:
                auth_header = request.headers['Authorization']
                try:
                    token = auth_header.split(" ")[1]  # Bearer <token>
                except IndexError:
                    return jsonify(Helpers.build_error_response('Invalid token format', 401)), 401

            if not token:
                return jsonify(Helpers.build_error_response('Token is missing', 401)), 401

            try:
                decoded_token = firebase_auth.verify_id_token(token)
            except (firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError,
                    firebase_auth.RevokedIdTokenError, ValueError):
                return jsonify(Helpers.build_error_response('Invalid token', 401)), 401

            uid = decoded_token.get('uid')
            user_doc = get_db().collection('users').document(uid).get()
            if not user_doc.exists:
                return jsonify(Helpers.build_error_response('User profile not found', 401)), 401

            request.current_user = decoded_token
            request.current_user_data = {**(user_doc.to_dict() or {}), 'user_id': uid}
            return f(*args, **kwargs)

        return decorated_function

    @staticmethod
    def get_current_user():
        """Firestore profile of the authenticated caller"""
        return getattr(request, 'current_user_data', None)


class RoleMiddleware:
    """Role-based access control middleware"""

    @staticmethod
    def require_roles(*roles: str):
        """Decorator allowing only callers whose role is in ``roles``.

        Must be applied below ``AuthMiddleware.verify_token``.
        """
        def decorator(f):
            @wraps(f)
            def decorated_function(*args, **kwargs):
                current_user = AuthMiddleware.get_current_user()

                if not current_user:
                    return jsonify(Helpers.build_error_response('Authentication required', 401)), 401

                if current_user.get('role') not in roles:
                    return jsonify(Helpers.build_error_response('Insufficient permissions', 403)), 403

                return f(*args, **kwargs)

            return decorated_function
        return decorator
