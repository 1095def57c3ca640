# Command line: python scripts/create_admin.py USERNAME EMAIL PASSWORD
import os
import sys

# Fix import path so schooladmin is accessible
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sqlalchemy import or_
from werkzeug.security import generate_password_hash

from schooladmin.app import create_app
from schooladmin.models import Admin, db


def create_admin(app, username, email, password):
    """Create an Admin unless one with the same username or email exists."""
    with app.app_context():
        existing = Admin.query.filter(or_(Admin.username == username, Admin.email == email)).first()
        if existing:
            app.logger.warning('⚠️ Admin %s already exists.', existing.username)
            return existing.id
        admin = Admin(
            username=username,
            email=email,
            password=generate_password_hash(password),
        )
        db.session.add(admin)
        db.session.commit()
        app.logger.info('✅ Admin %s created successfully!', username)
        return admin.id


if __name__ == '__main__':
    if len(sys.argv) < 4:
        print('Usage: python scripts/create_admin.py <USERNAME> <EMAIL> <PASSWORD>')
        sys.exit(1)
    create_admin(create_app(), *sys.argv[1:4])
