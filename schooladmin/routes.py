# schooladmin/routes.py
import math
from functools import wraps

from flask import Blueprint, current_app, redirect, request, session
from sqlalchemy import or_
from werkzeug.exceptions import HTTPException

from schooladmin import crud
from schooladmin.auth import IdentityProviderError, get_request_context
from schooladmin.errors import (
    ApiError, Conflict, Forbidden, NotFound, Unauthorized, ValidationError, fail, ok,
)
from schooladmin.models import db
from schooladmin.resources import MAX_INT, RESOURCES

WRITE_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')
MODEL_NAMES = {resource.model: resource.name for resource in RESOURCES}


# ------------------- REQUEST HELPERS -------------------
def json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError('Invalid JSON body')
    return body


def page_args():
    try:
        page = int(request.args.get('page', 1))
        limit = int(request.args.get('limit', current_app.config['DEFAULT_PAGE_SIZE']))
    except ValueError:
        raise ValidationError('Invalid pagination parameters')
    limit = min(limit, current_app.config['MAX_PAGE_SIZE'])
    if page < 1 or limit < 1 or (page - 1) * limit > MAX_INT:
        raise ValidationError('Invalid pagination parameters')
    return page, limit


def list_criteria(resource):
    model = resource.model
    criteria = []
    search = request.args.get('search', '').strip()
    if search and resource.search:
        criteria.append(or_(*[
            getattr(model, attr).icontains(search, autoescape=True)
            for attr in resource.search
        ]))
    for param, build in resource.filters.items():
        raw = request.args.get(param)
        if not raw:
            continue
        try:
            clause = build(model, raw)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid value for {param}')
        if clause is not None:
            criteria.append(clause)
    return criteria


def check_references(resource, values, links):
    for field in resource.fields:
        if field.ref is not None and values.get(field.attr) is not None:
            if crud.find(field.ref, values[field.attr]) is None:
                raise NotFound(f'{MODEL_NAMES[field.ref]} not found')
        if field.links is not None and field.attr in links:
            targets = []
            for ident in links[field.attr]:
                target = crud.find(field.links, ident)
                if target is None:
                    raise NotFound(f'{MODEL_NAMES[field.links]} not found')
                targets.append(target)
            links[field.attr] = targets


def failure_boundary(verb, noun):
    """Turn anything unexpected into a 500 envelope after rolling back."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except (ApiError, HTTPException):
                db.session.rollback()
                raise
            except Exception as e:
                db.session.rollback()
                current_app.logger.exception('❌ Failed to %s %s: %s', verb, noun, e)
                return fail(500, f'Failed to {verb} {noun}', message=str(e))
        return wrapper
    return decorator


# ------------------- GENERIC HANDLERS -------------------
def register_resource(bp, resource):
    plural, label = resource.plural, resource.label

    @bp.route(f'/{plural}', methods=['GET'], endpoint=f'{plural}_list')
    @failure_boundary('fetch', plural)
    def list_records():
        page, limit = page_args()
        items, total = crud.paginate(
            resource.model, list_criteria(resource), resource.order_by, page, limit)
        return ok(
            [crud.serialize(item, resource.list_view) for item in items],
            pagination={
                'page': page,
                'limit': limit,
                'total': total,
                'totalPages': math.ceil(total / limit),
            },
        )

    @bp.route(f'/{plural}/<ident>', methods=['GET'], endpoint=f'{plural}_get')
    @failure_boundary('fetch', label)
    def get_record(ident):
        obj = load(resource, ident)
        return ok(crud.serialize(obj, resource.detail_view))

    @bp.route(f'/{plural}', methods=['POST'], endpoint=f'{plural}_create')
    @failure_boundary('create', label)
    def create_record():
        body = json_body()
        missing = resource.missing(body)
        if missing:
            raise ValidationError('Missing required fields', required=resource.required,
                                  missing=missing)
        values, links = resource.parse(body)
        resource.validate(values)
        check_references(resource, values, links)
        try:
            obj = crud.insert(resource.model, values, links)
        except crud.ConstraintViolation as e:
            raise constraint_conflict(resource, e)
        current_app.logger.info('%s created: %s', resource.name, obj.id)
        return ok(crud.serialize(obj, resource.write_view),
                  message=f'{resource.name} created successfully', status=201)

    @bp.route(f'/{plural}/<ident>', methods=['PUT', 'PATCH'], endpoint=f'{plural}_update')
    @failure_boundary('update', label)
    def update_record(ident):
        obj = load(resource, ident)
        body = json_body()
        values, links = resource.parse(body, partial=True)
        merged = {field.attr: getattr(obj, field.attr)
                  for field in resource.fields if field.links is None}
        merged.update(values)
        resource.validate(merged, touched=set(values))
        check_references(resource, values, links)
        try:
            obj = crud.update(obj, values, links)
        except crud.ConstraintViolation as e:
            raise constraint_conflict(resource, e)
        return ok(crud.serialize(obj, resource.write_view),
                  message=f'{resource.name} updated successfully')

    @bp.route(f'/{plural}/<ident>', methods=['DELETE'], endpoint=f'{plural}_delete')
    @failure_boundary('delete', label)
    def delete_record(ident):
        obj = load(resource, ident)
        if resource.guards:
            counts = crud.count_related(obj, resource.guards)
            if any(counts.values()):
                raise Conflict(resource.guard_message(), details=counts)
        try:
            crud.remove(obj)
        except crud.ConstraintViolation as e:
            raise constraint_conflict(resource, e)
        current_app.logger.info('%s deleted: %s', resource.name, ident)
        return ok(message=f'{resource.name} deleted successfully')


def load(resource, ident):
    obj = crud.find(resource.model, resource.parse_id(ident))
    if obj is None:
        raise NotFound(f'{resource.name} not found')
    return obj


def constraint_conflict(resource, error):
    current_app.logger.warning('%s rejected by the store: %s', resource.name, error)
    if error.unique:
        return Conflict(resource.conflict_message())
    if error.kind == 'check':
        return ValidationError(f'{resource.name} failed a data check')
    return Conflict(f'{resource.name} conflicts with related records')


def setup_routes(app):
    """Setup all Flask routes"""
    api = Blueprint('api', __name__, url_prefix='/api')

    for resource in RESOURCES:
        register_resource(api, resource)

    # ---------------- CURRENT CALLER ----------------
    @api.route('/me', methods=['GET'])
    def me():
        ctx = get_request_context()
        return ok({'userId': ctx.user_id, 'role': ctx.role})

    # ---------------- ACCESS CONTROL ----------------
    @api.before_request
    def restrict_writes():
        roles = current_app.config.get('WRITE_ROLES')
        if not roles or request.method not in WRITE_METHODS:
            return None
        ctx = get_request_context()
        if not ctx.authenticated:
            raise Unauthorized('Authentication required')
        if ctx.role not in roles:
            raise Forbidden(f'Role {ctx.role} may not modify records')
        return None

    app.register_blueprint(api)

    # ---------------- HOME ----------------
    @app.route('/')
    def index():
        if session.get('user_id'):
            return redirect(app.config['DASHBOARD_URL'])
        return redirect(app.config['SIGN_IN_URL'])

    # ---------------- ERROR ENVELOPES ----------------
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return fail(error.status, error.error, **error.extra)

    @app.errorhandler(IdentityProviderError)
    def handle_identity_error(error):
        app.logger.exception('❌ Identity provider lookup failed: %s', error)
        return fail(500, 'Failed to resolve caller role', message=str(error))

    @app.errorhandler(404)
    def handle_not_found(error):
        return fail(404, 'Not found')

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return fail(405, 'Method not allowed')
