from flask import Flask

from rankvote.auth import init_auth
from rankvote.config import Config
from rankvote.extensions import db, migrate
from rankvote.routes import register_routes
from rankvote.services.scheduler import init_scheduler


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    migrate.init_app(app, db)
    init_auth(app)

    register_routes(app)
    init_scheduler(app)
    return app


__all__ = ["db", "migrate", "create_app"]
