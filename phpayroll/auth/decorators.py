# phpayroll/auth/decorators.py
from functools import wraps

from flask import jsonify
from flask_login import current_user, login_required

from phpayroll import db
from phpayroll.models.user import AuditLog


def log_admin_action(action, details):
    """Records a critical administrative action in the AuditLog."""
    log = AuditLog(
        user_id=current_user.id,
        action=action,
        details=details
    )
    db.session.add(log)
    # Note: Commit is handled by the calling route's try/except block


def role_required(role):
    def decorator(f):
        @login_required
        @wraps(f)
        def wrapper(*args, **kwargs):
            if current_user.is_authenticated and current_user.role in (role, 'Admin'):
                return f(*args, **kwargs)
            return jsonify({'error': 'Access denied: insufficient role.'}), 403
        return wrapper
    return decorator
