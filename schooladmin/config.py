import os

# Base directory (schooladmin/)
BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# Default SQLite database lives in /database next to the package
DB_DIR = os.path.join(BASE_DIR, '..', 'database')


def _database_uri():
    url = os.environ.get('DATABASE_URL')
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    if not url:
        os.makedirs(DB_DIR, exist_ok=True)
        url = f"sqlite:///{os.path.join(DB_DIR, 'app.db')}"
    return url


def _split(value):
    if not value:
        return None
    return [item.strip() for item in value.split(',') if item.strip()]


SQLALCHEMY_DATABASE_URI = _database_uri()
SQLALCHEMY_TRACK_MODIFICATIONS = False

# Session cookie signing (the caller's user id lives in the Flask session)
SECRET_KEY = os.environ.get('SECRET_KEY', 'schooladmin-dev-secret')

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

# ------------------ PAGINATION ------------------
DEFAULT_PAGE_SIZE = int(os.environ.get('DEFAULT_PAGE_SIZE', 10))
MAX_PAGE_SIZE = int(os.environ.get('MAX_PAGE_SIZE', 100))

# Window used by GET /api/announcements?recent=true
ANNOUNCEMENT_RECENT_DAYS = 30

# ------------------ IDENTITY PROVIDER ------------------
CLERK_SECRET_KEY = os.environ.get('CLERK_SECRET_KEY')
CLERK_API_URL = os.environ.get('CLERK_API_URL', 'https://api.clerk.com/v1')
IDENTITY_TIMEOUT = float(os.environ.get('IDENTITY_TIMEOUT', 5))

# Roles allowed to call POST/PUT/DELETE under /api. None disables the check.
WRITE_ROLES = _split(os.environ.get('WRITE_ROLES'))

SIGN_IN_URL = os.environ.get('SIGN_IN_URL', '/sign-in')
DASHBOARD_URL = os.environ.get('DASHBOARD_URL', '/admin')

CORS_ORIGINS = _split(os.environ.get('CORS_ORIGINS')) or '*'
