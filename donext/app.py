import logging

from flask import Flask, jsonify, redirect, render_template, request, url_for
from werkzeug.exceptions import HTTPException

from donext.api import BLUEPRINTS
from donext.auth import current_user_id
from donext.config import load_settings
from donext.errors import AppError
from donext.models import User, db, today
from donext.services.analytics import dashboard_summary

logger = logging.getLogger(__name__)

PROTECTED_PREFIXES = ('/dashboard', '/settings', '/tasks', '/habits', '/routine', '/analytics', '/notifications')


def create_app(test_config=None):
    settings = load_settings()
    app = Flask(__name__)

    # Configuration
    app.config.update(settings.to_flask_config())
    if test_config:
        app.config.update(test_config)

    if not app.config.get('TESTING'):
        problems = settings.validate_for_production() if settings.is_production else []
        if problems:
            raise RuntimeError("Invalid configuration: " + "; ".join(problems))
    logging.getLogger('donext').setLevel(settings.LOG_LEVEL.upper())

    db.init_app(app)
    for bp in BLUEPRINTS:
        app.register_blueprint(bp)

    register_pages(app)
    register_error_handlers(app)

    @app.before_request
    def gatekeeper():
        """Send signed-out browser navigation to the login page."""
        if request.path.startswith(PROTECTED_PREFIXES) and current_user_id() is None:
            return redirect(url_for('login_page'))

    # Initialize DB
    with app.app_context():
        db.create_all()

    return app


def register_pages(app):
    @app.route('/')
    def index():
        return redirect(url_for('dashboard'))

    @app.route('/auth/login')
    def login_page():
        return render_template('login.html')

    @app.route('/dashboard')
    def dashboard():
        """Main dashboard landing page."""
        user = db.session.get(User, current_user_id())
        if user is None:
            return redirect(url_for('login_page'))
        summary = dashboard_summary(db.session, user.id)
        return render_template(
            'dashboard.html',
            user=user,
            today=today().strftime('%A, %d %B %Y'),
            **summary
        )


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if not request.path.startswith('/api/'):
            return error
        return jsonify({'success': False, 'error': error.description, 'code': error.name.upper().replace(' ', '_')}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({'success': False, 'error': 'Internal server error', 'code': AppError.code}), 500


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    create_app().run(debug=True)
