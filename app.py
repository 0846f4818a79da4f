import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from models import db
from routes import ALL_BLUEPRINTS
from utils.auth_context import load_current_user
from utils.errors import SchedulingError
from utils.seed import ensure_super_admin, seed_roles


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        if app.config.get("CREATE_TABLES"):
            db.create_all()
        # Seed default roles at startup (safe & idempotent)
        seed_roles()
        ensure_super_admin(app.config.get("SUPER_ADMIN_EMAIL"), app.config.get("SUPER_ADMIN_PASSWORD"))

    @app.before_request
    def _load_user():
        load_current_user()

    register_error_handlers(app)
    register_cli(app)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    return app


def register_error_handlers(app):
    @app.errorhandler(SchedulingError)
    def _scheduling_error(exc):
        if exc.http_status >= 500:
            app.logger.error("%s: %s", exc.code, exc.message, exc_info=exc.__cause__)
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(SQLAlchemyError)
    def _database_error(exc):
        db.session.rollback()
        app.logger.exception("Database error")
        return jsonify(error="Internal error, please try again", kind="UPSTREAM_ERROR"), 500

#-------------------------
from models.user import User, Role
from security.password import hash_password
from services.recurrence import materialize_month

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("password")
    @click.option("--client-id", type=int, default=None, help="Tenant the company admin belongs to.")
    @click.option("--super-admin", is_flag=True, help="Grant SUPER_ADMIN instead of COMPANY_ADMIN.")
    def create_user(email, password, client_id, super_admin):
        """Create a login (bootstrap)."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            click.echo("User already exists")
            return
        if not super_admin and client_id is None:
            click.echo("--client-id is required for company admins")
            return

        role_name = "SUPER_ADMIN" if super_admin else "COMPANY_ADMIN"
        role = Role.query.filter_by(name=role_name).first()
        if not role:
            role = Role(name=role_name)
            db.session.add(role)

        user = User(
            email=email,
            password_hash=hash_password(password),
            client_id=None if super_admin else client_id,
            roles=[role],
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"{user.email} created as {role_name}")

    @app.cli.command("generate-month")
    @click.option("--professional-id", type=int, default=None)
    @click.option("--month", type=click.IntRange(1, 12), default=None)
    @click.option("--year", type=int, default=None)
    def generate_month(professional_id, month, year):
        """Materialize weekly templates into dated slots."""
        result = materialize_month(professional_id=professional_id, month=month, year=year)
        click.echo(f"{result['created']} slot(s) created for {result['month']:02d}/{result['year']}")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
