import click
from flask import Flask

from navhub.api import api_bp
from navhub.auth import auth_bp
from navhub.config import Config
from navhub.extensions import db, login_manager, login_throttle, migrate
from navhub.jobs.scheduler import start_scheduler
from navhub.services.passwords import PasswordVerifier


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_throttle.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized navhub database.")

    @app.cli.command("hash-password")
    @click.option(
        "--password", prompt=True, hide_input=True, confirmation_prompt=True
    )
    def hash_password_command(password):
        if len(password) < 8:
            click.echo("Warning: password is shorter than 8 characters", err=True)
        verifier = PasswordVerifier(method=app.config["PASSWORD_HASH_METHOD"])
        click.echo(f"AUTH_PASSWORD={verifier.hash(password)}")

    with app.app_context():
        db.create_all()

    if app.config["AUTH_ENABLED"] and app.config["AUTH_SECRET"] == "default-secret":
        app.logger.warning("AUTH_SECRET is not set; tokens use the default key")

    start_scheduler(app)
    return app
