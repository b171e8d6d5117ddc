import logging

import click
from flask import Flask, jsonify

from config.config import Config
from extensions import db, login_manager, migrate
from services.errors import MarksPortalError

# Route Imports
from routes.auth_routes import auth_bp
from routes.admin_routes import admin_bp
from routes.coordinator_routes import coordinator_bp
from routes.student_routes import student_bp

from models.user import User


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Initialize Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(MarksPortalError)
    def handle_portal_error(exc):
        if exc.status_code >= 500:
            app.logger.error("Request failed: %s", exc.message)
        return jsonify({"error": exc.message}), exc.status_code

    # Register Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(coordinator_bp)
    app.register_blueprint(student_bp)

    @app.cli.command("seed")
    @click.option("--reset-admin", is_flag=True, help="Recreate the default admin account.")
    def seed_command(reset_admin):
        """Create the settings row and the default admin account."""
        from utils.seed_data import run_seed
        run_seed(reset_admin=reset_admin)
        click.echo("Seed complete")

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5000, debug=True)
