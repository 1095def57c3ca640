"""Thin data-access layer over the models.

Handlers never touch ``db.session`` for reads or writes directly; they go
through the helpers below, which also turn rows into JSON-ready dicts with
nested relations (``Rel``) and per-relation ``_count`` totals computed in SQL.
"""
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import with_parent

from schooladmin.models import camel, db


class Rel(object):
    """How much of a row (and its relations) to render.

    ``fields`` limits the row's own columns, ``expand`` maps relationship
    names to nested ``Rel`` nodes, ``counts`` lists relationships to total.
    ``order_by`` and ``limit`` apply when the relationship is a collection.
    """

    def __init__(self, fields=None, expand=None, counts=(), order_by=(), limit=None):
        self.fields = fields
        self.expand = expand or {}
        self.counts = counts
        self.order_by = order_by
        self.limit = limit


def json_key(name):
    return 'class' if name == 'school_class' else camel(name)


def _ordering(model, order_by):
    clauses = []
    for attr, direction in order_by:
        column = attr(model) if callable(attr) else getattr(model, attr)
        clauses.append(column.desc() if direction == 'desc' else column.asc())
    return clauses


def related_query(obj, name):
    attr = getattr(type(obj), name)
    target = attr.property.mapper.class_
    return target, select(target).where(with_parent(obj, attr))


def count_related(obj, names):
    counts = {}
    for name in names:
        attr = getattr(type(obj), name)
        target = attr.property.mapper.class_
        stmt = select(func.count()).select_from(target).where(with_parent(obj, attr))
        counts[json_key(name)] = db.session.scalar(stmt)
    return counts


def serialize(obj, rel=None):
    if obj is None:
        return None
    rel = rel or Rel()
    data = obj.to_dict(only=rel.fields)
    for name, child in rel.expand.items():
        if getattr(type(obj), name).property.uselist:
            target, stmt = related_query(obj, name)
            stmt = stmt.order_by(*_ordering(target, child.order_by))
            if child.limit:
                stmt = stmt.limit(child.limit)
            data[json_key(name)] = [serialize(item, child) for item in db.session.scalars(stmt)]
        else:
            data[json_key(name)] = serialize(getattr(obj, name), child)
    if rel.counts:
        data['_count'] = count_related(obj, rel.counts)
    return data


def find(model, ident):
    return db.session.get(model, ident)


def paginate(model, criteria, order_by, page, limit):
    """Return ``(items, total)`` for one page of ``model`` rows."""
    stmt = select(model).where(*criteria)
    total = db.session.scalar(select(func.count()).select_from(stmt.subquery()))
    pk = model.__mapper__.primary_key[0]
    stmt = stmt.order_by(*_ordering(model, order_by), pk.asc())
    items = db.session.scalars(stmt.offset((page - 1) * limit).limit(limit)).all()
    return items, total


# SQLSTATE (PostgreSQL drivers) and extended result codes (sqlite3) per kind
CONSTRAINT_CODES = {
    '23505': 'unique', 'SQLITE_CONSTRAINT_UNIQUE': 'unique',
    'SQLITE_CONSTRAINT_PRIMARYKEY': 'unique',
    '23514': 'check', 'SQLITE_CONSTRAINT_CHECK': 'check',
    '23503': 'reference', 'SQLITE_CONSTRAINT_FOREIGNKEY': 'reference',
}


def constraint_kind(original):
    """Classify a driver ``IntegrityError`` as unique, check or reference."""
    for attr in ('sqlite_errorname', 'pgcode', 'sqlstate'):
        kind = CONSTRAINT_CODES.get(getattr(original, attr, None))
        if kind:
            return kind
    text = str(original).lower()
    if 'unique' in text or 'duplicate' in text:
        return 'unique'
    if 'check constraint' in text:
        return 'check'
    return 'reference'


class ConstraintViolation(Exception):
    """The store rejected a write; ``kind`` says which constraint did."""

    def __init__(self, original):
        super().__init__(str(original))
        self.kind = constraint_kind(getattr(original, 'orig', original))

    @property
    def unique(self):
        return self.kind == 'unique'


def _commit():
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise ConstraintViolation(e)


def _assign(obj, values, links):
    for attr, value in values.items():
        setattr(obj, attr, value)
    for attr, targets in links.items():
        setattr(obj, attr, targets)


def insert(model, values, links=None):
    obj = model()
    _assign(obj, values, links or {})
    db.session.add(obj)
    _commit()
    return obj


def update(obj, values, links=None):
    _assign(obj, values, links or {})
    _commit()
    return obj


def remove(obj):
    db.session.delete(obj)
    _commit()
