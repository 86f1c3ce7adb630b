import os
from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException
from models import db
from models.User import bcrypt

env = os.environ.get('env')
port = 80
if env == "development":
    port = 5000


def create_app(test_config=None):
    """
	Builds the Flask application.

    Configuration is loaded from `config.py` and then overridden by
    `test_config` when given. Extensions are bound, the API blueprints are
    registered, and the tables are created if they do not exist yet.

    Args:
        test_config (dict, optional): Config values applied after `config.py`.

    Returns:
        Flask: The configured application.
    """
    app = Flask(__name__)
    app.config.from_object('config')
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    bcrypt.init_app(app)
    JWTManager(app)

    from api.auth import bp as auth_bp
    from api.generation import bp as generation_bp
    from api.story import bp as story_bp
    from api.profile import bp as profile_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(generation_bp)
    app.register_blueprint(story_bp)
    app.register_blueprint(profile_bp)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        app.logger.exception(f"Unhandled error: {e}")
        return jsonify({"error": "Internal server error"}), 500

    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    create_app().run(debug=env == "development", host='0.0.0.0', port=port)
