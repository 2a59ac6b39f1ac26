# phpayroll/auth/routes.py

from flask import current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user

from phpayroll.auth import bp
from phpayroll.models.user import User
from .forms import LoginForm


@bp.route('/signin', methods=['POST'])
def signin():
    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({'error': 'Invalid sign-in request.', 'fields': form.errors}), 400

    user = User.query.filter_by(username=form.username.data).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning('Failed sign-in for %s', form.username.data)
        return jsonify({'error': 'Invalid username or password.'}), 401

    login_user(user, remember=False)
    return jsonify({'id': user.id, 'username': user.username, 'role': user.role})


@bp.route('/signout', methods=['POST'])
@login_required
def signout():
    username = current_user.username
    logout_user()
    return jsonify({'signed_out': username})
