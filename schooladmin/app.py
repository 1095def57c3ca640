import os
import sys

from flask import Flask
from flask_cors import CORS

# -------------------------------------------------------------------
# Ensure "schooladmin" is importable when run as a script
# -------------------------------------------------------------------
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from schooladmin import config as default_config
from schooladmin.auth import ClerkIdentityProvider, StaticIdentityProvider
from schooladmin.models import db
from schooladmin.routes import setup_routes


def build_identity_provider(app):
    secret = app.config.get('CLERK_SECRET_KEY')
    if secret:
        return ClerkIdentityProvider(
            secret,
            api_url=app.config['CLERK_API_URL'],
            timeout=app.config['IDENTITY_TIMEOUT'],
        )
    app.logger.warning('CLERK_SECRET_KEY not set; falling back to an empty in-memory identity provider')
    return StaticIdentityProvider()


def create_app(config=None, identity_provider=None):
    app = Flask(__name__)

    # ---------------------------------------------------------------
    # Core configuration, then caller overrides (tests, scripts)
    # ---------------------------------------------------------------
    app.config.from_object(default_config)
    if config:
        app.config.update(config)
    app.logger.setLevel(app.config['LOG_LEVEL'])

    CORS(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}})

    # ---------------------------------------------------------------
    # Extensions
    # ---------------------------------------------------------------
    db.init_app(app)
    app.extensions['identity_provider'] = identity_provider or build_identity_provider(app)

    setup_routes(app)

    # ---------------------------------------------------------------
    # Auto-create tables
    # ---------------------------------------------------------------
    with app.app_context():
        db.create_all()
        app.logger.info('✅ Database connected and initialized successfully.')

    return app


# ---------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
