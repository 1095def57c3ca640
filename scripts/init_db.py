import os
import sys

# -------------------------------------------------------------------
# Fix import path so it works from anywhere
# -------------------------------------------------------------------
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from schooladmin.app import create_app
from schooladmin.models import db


def init(app=None):
    """Drop and recreate all database tables."""
    app = app or create_app()
    with app.app_context():
        db.drop_all()
        db.create_all()
        app.logger.info('✅ Database initialized successfully!')


if __name__ == '__main__':
    init()
