"""Caller identity and role resolution.

The identity provider owns users and their role claims. This module only asks
it "who is this user id and what role do they carry", once per request that
needs to know, and keeps the answer in a request-scoped ``RequestContext``.
"""
from dataclasses import dataclass
from typing import Optional

import requests
from flask import current_app, g, session

ROLES = ('admin', 'teacher', 'student', 'parent')
DEFAULT_ROLE = 'student'


class IdentityProviderError(Exception):
    pass


class StaticIdentityProvider(object):
    """In-memory users keyed by id, shaped like the remote provider's payload."""

    def __init__(self, users=None):
        self.users = dict(users or {})
        self.lookups = 0

    def add_user(self, user_id, role=None):
        metadata = {'role': role} if role else {}
        self.users[user_id] = {'id': user_id, 'public_metadata': metadata}

    def get_user(self, user_id):
        self.lookups += 1
        try:
            return self.users[user_id]
        except KeyError:
            raise IdentityProviderError(f'Unknown user: {user_id}')


class ClerkIdentityProvider(object):
    """Fetches user profiles from the Clerk backend API."""

    def __init__(self, secret_key, api_url='https://api.clerk.com/v1', timeout=5.0):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout

    def get_user(self, user_id):
        try:
            resp = requests.get(
                f'{self.api_url}/users/{user_id}',
                headers={'Authorization': f'Bearer {self.secret_key}'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise IdentityProviderError(f'Identity provider unreachable: {e}') from e
        if resp.status_code != 200:
            raise IdentityProviderError(
                f'Identity provider returned {resp.status_code} for user {user_id}')
        try:
            return resp.json()
        except ValueError as e:
            raise IdentityProviderError(f'Identity provider sent a malformed profile: {e}') from e


def resolve_role(user_id, provider):
    """Return the caller's role, falling back to ``student``.

    No user id means an anonymous caller, which is treated as ``student``.
    Provider errors are not caught.
    """
    if not user_id:
        return DEFAULT_ROLE
    user = provider.get_user(user_id) or {}
    metadata = user.get('public_metadata') or user.get('publicMetadata') or {}
    role = metadata.get('role')
    return role if role in ROLES else DEFAULT_ROLE


@dataclass
class RequestContext:
    user_id: Optional[str]
    role: str

    @property
    def authenticated(self):
        return self.user_id is not None


def get_identity_provider():
    provider = current_app.extensions.get('identity_provider')
    if provider is None:
        raise IdentityProviderError('No identity provider configured')
    return provider


def get_request_context():
    """Resolve the caller once per request and cache it on ``g``."""
    ctx = g.get('request_context')
    if ctx is None:
        user_id = session.get('user_id')
        role = resolve_role(user_id, get_identity_provider()) if user_id else DEFAULT_ROLE
        ctx = RequestContext(user_id=user_id, role=role)
        g.request_context = ctx
    return ctx
