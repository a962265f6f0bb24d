import os
from flask import Flask
from myhome.extensions import db, bcrypt, migrate, jwt, limiter, cors
from myhome.auth import init_auth
from myhome.utils.error_handlers import register_error_handlers
from myhome.commands import register_commands
from config import config


def create_app(config_name=None, config_overrides=None, session_store=None):
    """
    Application factory.

    ``config_name`` picks an entry of ``config.config`` (defaults to ``APP_ENV``).
    ``session_store`` replaces the in-memory session store, e.g. with a shared one.
    """
    config_name = config_name or os.environ.get('APP_ENV', 'default')
    config_class = config[config_name]

    app = Flask(__name__)
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    cors.init_app(
        app,
        origins=app.config['ALLOWED_ORIGINS'],
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Requested-With'],
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
    )

    # Initialize app with config
    config_class.init_app(app)

    # Role permissions and the session store
    init_auth(app, session_store=session_store)

    # Make sure every model is registered before create_all / migrations
    from myhome import models  # noqa: F401

    # Register blueprints
    from myhome.api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    # Register error handlers and commands
    register_error_handlers(app)
    register_commands(app)

    return app
