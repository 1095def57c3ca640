"""Per-entity descriptors consumed by the generic handlers in ``routes``.

Each ``Resource`` says which body fields an entity accepts (and how to coerce
them), which are required on create, what a list may be filtered and searched
on, how rows are ordered and expanded, and which relations block a delete.
"""
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import case

from schooladmin.crud import Rel
from schooladmin.errors import NotFound, ValidationError
from schooladmin.models import (
    Announcement, Assignment, Attendance, Event, Exam, Grade, Lesson, Parent,
    Result, SchoolClass, Student, Subject, Teacher, utcnow,
)

DAYS = ('MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY')
SEXES = ('male', 'female')

PERSON = ('id', 'name', 'surname')

MAX_INT = 2 ** 63 - 1
MIN_INT = -2 ** 63


def is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


# ------------------ COERCION ------------------
def to_str(value):
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ValueError('expected text')
    return str(value).strip()


def to_int(value):
    if isinstance(value, bool):
        raise ValueError('expected an integer')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError('expected an integer')
        value = int(value)
    else:
        value = int(str(value).strip())
    # signed 64-bit column range
    if not MIN_INT <= value <= MAX_INT:
        raise ValueError('integer out of range')
    return value


def to_number(value):
    if isinstance(value, bool):
        raise ValueError('expected a number')
    return float(value)


def to_score(value):
    score = to_number(value)
    if score < 0 or score > 100:
        raise ValidationError('Score must be between 0 and 100')
    return int(score)


def to_bool(value):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('true', '1', 'yes'):
        return True
    if text in ('false', '0', 'no'):
        return False
    raise ValueError('expected a boolean')


def to_datetime(value):
    if not isinstance(value, str):
        raise ValueError('expected an ISO-8601 date')
    parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def choice(options, normalize):
    def coerce(value):
        value = normalize(to_str(value))
        if value not in options:
            raise ValueError('expected one of ' + ', '.join(options))
        return value
    return coerce


def to_ids(item):
    def coerce(value):
        if not isinstance(value, (list, tuple)):
            raise ValueError('expected a list of ids')
        ids = []
        for v in value:
            ident = item(v)
            if ident not in ids:
                ids.append(ident)
        return ids
    return coerce


class Field(object):
    """One accepted body key.

    ``nullable`` fields may be cleared by sending null or an empty string;
    for the others a blank value on update is ignored. ``ref`` is the model a
    foreign key must point at, ``links`` the model of a many-to-many id list.
    """

    def __init__(self, key, coerce=to_str, attr=None, required=False, nullable=False,
                 ref=None, links=None):
        self.key = key
        self.coerce = coerce
        self.attr = attr or snake(key)
        self.required = required
        self.nullable = nullable
        self.ref = ref
        self.links = links

    def parse(self, value):
        try:
            return self.coerce(value)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid value for {self.key}')


def snake(key):
    return ''.join('_' + c.lower() if c.isupper() else c for c in key)


# ------------------ VALIDATORS ------------------
def ordered(start, end, message):
    def check(values):
        if values.get(start) and values.get(end) and values[end] <= values[start]:
            raise ValidationError(message)
    check.touches = (start, end)
    return check


def exam_or_assignment(values):
    if not values.get('exam_id') and not values.get('assignment_id'):
        raise ValidationError('Either examId or assignmentId is required')


exam_or_assignment.touches = ('exam_id', 'assignment_id')


# ------------------ FILTERS ------------------
def equals(attr, coerce=to_int):
    def build(model, raw):
        return getattr(model, attr) == coerce(raw)
    return build


def weekday(model):
    return case({day: i for i, day in enumerate(DAYS)}, value=model.day)


def via_lesson_class(model, raw):
    return model.lesson.has(Lesson.class_id == to_int(raw))


def upcoming(model, raw):
    if raw != 'true':
        return None
    return model.start_time >= utcnow()


def recent(model, raw):
    if raw != 'true':
        return None
    days = current_app.config.get('ANNOUNCEMENT_RECENT_DAYS', 30)
    return model.date >= utcnow() - timedelta(days=days)


class Resource(object):

    def __init__(self, model, name, plural, fields, key=to_int, unique=(), search=(),
                 filters=None, order_by=(), list_view=None, detail_view=None,
                 write_view=None, guards=(), checks=(), required=None):
        self.model = model
        self.name = name
        self.label = name.lower()
        self.plural = plural
        self.fields = fields
        self.key = key
        self.unique = unique
        self.search = search
        self.filters = filters or {}
        self.order_by = order_by
        self.list_view = list_view or Rel()
        self.detail_view = detail_view or Rel()
        self.write_view = write_view or Rel()
        self.guards = guards
        self.checks = checks
        self.required = required or [f.key for f in fields if f.required]

    def parse_id(self, raw):
        try:
            return self.key(raw)
        except (TypeError, ValueError):
            raise NotFound(f'{self.name} not found')

    def missing(self, body):
        return [f.key for f in self.fields if f.required and is_blank(body.get(f.key))]

    def parse(self, body, partial=False):
        """Coerce the supplied body keys into ``(values, links)``.

        With ``partial`` (updates) only keys present in the body are read and
        blank values for non-nullable fields are skipped.
        """
        values, links = {}, {}
        for field in self.fields:
            if field.key not in body:
                continue
            raw = body[field.key]
            if is_blank(raw):
                if field.nullable and partial:
                    values[field.attr] = None
                continue
            if field.links is not None:
                links[field.attr] = field.parse(raw)
            else:
                values[field.attr] = field.parse(raw)
        return values, links

    def validate(self, merged, touched=None):
        for check in self.checks:
            if touched is None or set(check.touches) & touched:
                check(merged)

    def conflict_message(self):
        if not self.unique:
            return f'{self.name} conflicts with existing records'
        return f'{self.name} with this {" or ".join(self.unique)} already exists'

    def guard_message(self):
        names = list(self.guards)
        joined = names[0] if len(names) == 1 else ', '.join(names[:-1]) + ' or ' + names[-1]
        return f'Cannot delete {self.label} with existing {joined}'


# ------------------ DESCRIPTORS ------------------
PERSON_FIELDS = [
    Field('username', required=True),
    Field('name', required=True),
    Field('surname', required=True),
    Field('email', nullable=True),
    Field('phone', nullable=True),
    Field('address', nullable=True),
]

GRADES = Resource(
    Grade, 'Grade', 'grades',
    fields=[Field('level', to_int, required=True)],
    unique=('level',),
    order_by=[('level', 'asc')],
    list_view=Rel(counts=('classes', 'students')),
    detail_view=Rel(expand={'classes': Rel(), 'students': Rel(fields=PERSON)},
                    counts=('classes', 'students')),
    guards=('classes', 'students'),
)

TEACHERS = Resource(
    Teacher, 'Teacher', 'teachers', key=str,
    fields=PERSON_FIELDS + [
        Field('img', nullable=True),
        Field('bloodType', nullable=True),
        Field('sex', choice(SEXES, str.lower), required=True),
        Field('birthday', to_datetime, required=True),
        Field('subjectIds', to_ids(to_int), attr='subjects', links=Subject),
    ],
    unique=('username', 'email'),
    search=('name', 'surname', 'email'),
    filters={
        'subjectId': lambda model, raw: model.subjects.any(Subject.id == to_int(raw)),
        'classId': lambda model, raw: model.lessons.any(Lesson.class_id == to_int(raw)),
    },
    order_by=[('created_at', 'desc')],
    list_view=Rel(expand={'subjects': Rel()}, counts=('lessons', 'classes')),
    detail_view=Rel(
        expand={
            'subjects': Rel(),
            'lessons': Rel(expand={'subject': Rel(), 'school_class': Rel()}),
            'classes': Rel(),
        },
        counts=('lessons', 'classes'),
    ),
    write_view=Rel(expand={'subjects': Rel()}),
    guards=('lessons', 'classes'),
)

SUBJECTS = Resource(
    Subject, 'Subject', 'subjects',
    fields=[
        Field('name', required=True),
        Field('teacherIds', to_ids(to_str), attr='teachers', links=Teacher),
    ],
    unique=('name',),
    search=('name',),
    order_by=[('name', 'asc')],
    list_view=Rel(expand={'teachers': Rel(fields=PERSON)}, counts=('teachers', 'lessons')),
    detail_view=Rel(expand={
        'teachers': Rel(),
        'lessons': Rel(expand={'school_class': Rel(), 'teacher': Rel(fields=PERSON)}),
    }),
    write_view=Rel(expand={'teachers': Rel()}),
    guards=('lessons',),
)

CLASSES = Resource(
    SchoolClass, 'Class', 'classes',
    fields=[
        Field('name', required=True),
        Field('capacity', to_int, required=True),
        Field('gradeId', to_int, required=True, ref=Grade),
        Field('supervisorId', to_str, nullable=True, ref=Teacher),
    ],
    unique=('name',),
    search=('name',),
    filters={'gradeId': equals('grade_id'), 'supervisorId': equals('supervisor_id', str)},
    order_by=[('name', 'asc')],
    list_view=Rel(
        expand={'grade': Rel(), 'supervisor': Rel(fields=PERSON)},
        counts=('students', 'lessons', 'events', 'announcements'),
    ),
    detail_view=Rel(expand={
        'grade': Rel(),
        'supervisor': Rel(),
        'students': Rel(expand={'parent': Rel(fields=PERSON + ('phone',))}),
        'lessons': Rel(expand={'subject': Rel(), 'teacher': Rel(fields=PERSON)}),
        'events': Rel(),
        'announcements': Rel(),
    }),
    write_view=Rel(expand={'grade': Rel(), 'supervisor': Rel()}),
    guards=('students', 'lessons', 'events', 'announcements'),
)

PARENTS = Resource(
    Parent, 'Parent', 'parents', key=str,
    fields=[f for f in PERSON_FIELDS if f.key != 'phone'] + [Field('phone', required=True)],
    unique=('username', 'email'),
    search=('name', 'surname', 'email', 'phone'),
    order_by=[('created_at', 'desc')],
    list_view=Rel(
        expand={'students': Rel(fields=PERSON, expand={'school_class': Rel(fields=('name',))})},
        counts=('students',),
    ),
    detail_view=Rel(expand={'students': Rel(expand={'school_class': Rel(), 'grade': Rel()})}),
    write_view=Rel(expand={'students': Rel()}),
    guards=('students',),
)

STUDENTS = Resource(
    Student, 'Student', 'students', key=str,
    fields=PERSON_FIELDS + [
        Field('img', nullable=True),
        Field('bloodType', nullable=True),
        Field('sex', choice(SEXES, str.lower), required=True),
        Field('birthday', to_datetime, required=True),
        Field('parentId', required=True, ref=Parent),
        Field('classId', to_int, required=True, ref=SchoolClass),
        Field('gradeId', to_int, required=True, ref=Grade),
    ],
    unique=('username', 'email'),
    search=('name', 'surname', 'email'),
    filters={
        'classId': equals('class_id'),
        'gradeId': equals('grade_id'),
        'parentId': equals('parent_id', str),
    },
    order_by=[('created_at', 'desc')],
    list_view=Rel(
        expand={
            'school_class': Rel(),
            'grade': Rel(),
            'parent': Rel(fields=PERSON + ('phone',)),
        },
        counts=('attendances', 'results'),
    ),
    detail_view=Rel(expand={
        'school_class': Rel(),
        'grade': Rel(),
        'parent': Rel(),
        'attendances': Rel(
            expand={'lesson': Rel(expand={'subject': Rel()})},
            order_by=[('date', 'desc')], limit=10,
        ),
        'results': Rel(
            expand={
                'exam': Rel(expand={'lesson': Rel(expand={'subject': Rel()})}),
                'assignment': Rel(expand={'lesson': Rel(expand={'subject': Rel()})}),
            },
            order_by=[('id', 'desc')], limit=10,
        ),
    }),
    write_view=Rel(expand={'school_class': Rel(), 'grade': Rel(), 'parent': Rel()}),
    guards=('attendances', 'results'),
)

LESSONS = Resource(
    Lesson, 'Lesson', 'lessons',
    fields=[
        Field('name', required=True),
        Field('day', choice(DAYS, str.upper), required=True),
        Field('startTime', to_datetime, required=True),
        Field('endTime', to_datetime, required=True),
        Field('subjectId', to_int, required=True, ref=Subject),
        Field('classId', to_int, required=True, ref=SchoolClass),
        Field('teacherId', required=True, ref=Teacher),
    ],
    search=('name',),
    filters={
        'classId': equals('class_id'),
        'teacherId': equals('teacher_id', str),
        'subjectId': equals('subject_id'),
        'day': equals('day', lambda raw: raw.upper()),
    },
    order_by=[(weekday, 'asc'), ('start_time', 'asc')],
    list_view=Rel(
        expand={'subject': Rel(), 'school_class': Rel(), 'teacher': Rel(fields=PERSON)},
        counts=('exams', 'assignments', 'attendances'),
    ),
    detail_view=Rel(expand={
        'subject': Rel(),
        'school_class': Rel(expand={'grade': Rel()}),
        'teacher': Rel(),
        'exams': Rel(),
        'assignments': Rel(),
        'attendances': Rel(
            expand={'student': Rel(fields=PERSON)},
            order_by=[('date', 'desc')], limit=20,
        ),
    }),
    write_view=Rel(expand={'subject': Rel(), 'school_class': Rel(), 'teacher': Rel()}),
    guards=('exams', 'assignments', 'attendances'),
    checks=(ordered('start_time', 'end_time', 'End time must be after start time'),),
)

LESSON_SUMMARY = Rel(expand={
    'subject': Rel(),
    'school_class': Rel(),
    'teacher': Rel(fields=PERSON),
})

EXAMS = Resource(
    Exam, 'Exam', 'exams',
    fields=[
        Field('title', required=True),
        Field('startTime', to_datetime, required=True),
        Field('endTime', to_datetime, required=True),
        Field('lessonId', to_int, required=True, ref=Lesson),
    ],
    search=('title',),
    filters={'lessonId': equals('lesson_id'), 'classId': via_lesson_class},
    order_by=[('start_time', 'desc')],
    list_view=Rel(expand={'lesson': LESSON_SUMMARY}, counts=('results',)),
    detail_view=Rel(expand={
        'lesson': Rel(expand={'subject': Rel(), 'school_class': Rel(), 'teacher': Rel()}),
        'results': Rel(expand={'student': Rel(fields=PERSON)}),
    }),
    write_view=Rel(expand={'lesson': Rel(expand={'subject': Rel(), 'school_class': Rel()})}),
    guards=('results',),
    checks=(ordered('start_time', 'end_time', 'End time must be after start time'),),
)

ASSIGNMENTS = Resource(
    Assignment, 'Assignment', 'assignments',
    fields=[
        Field('title', required=True),
        Field('startDate', to_datetime, required=True),
        Field('dueDate', to_datetime, required=True),
        Field('lessonId', to_int, required=True, ref=Lesson),
    ],
    search=('title',),
    filters={'lessonId': equals('lesson_id'), 'classId': via_lesson_class},
    order_by=[('due_date', 'desc')],
    list_view=Rel(expand={'lesson': LESSON_SUMMARY}, counts=('results',)),
    detail_view=Rel(expand={
        'lesson': Rel(expand={
            'subject': Rel(),
            'school_class': Rel(expand={'grade': Rel()}),
            'teacher': Rel(),
        }),
        'results': Rel(
            expand={'student': Rel(fields=PERSON, expand={'school_class': Rel(fields=('name',))})},
            order_by=[('score', 'desc')],
        ),
    }),
    write_view=Rel(expand={'lesson': LESSON_SUMMARY}),
    guards=('results',),
    checks=(ordered('start_date', 'due_date', 'Due date must be after start date'),),
)

RESULTS = Resource(
    Result, 'Result', 'results',
    fields=[
        Field('score', to_score, required=True),
        Field('studentId', required=True, ref=Student),
        Field('examId', to_int, nullable=True, ref=Exam),
        Field('assignmentId', to_int, nullable=True, ref=Assignment),
    ],
    filters={
        'studentId': equals('student_id', str),
        'examId': equals('exam_id'),
        'assignmentId': equals('assignment_id'),
    },
    order_by=[('id', 'desc')],
    list_view=Rel(expand={
        'student': Rel(fields=PERSON, expand={'school_class': Rel(fields=('name',))}),
        'exam': Rel(expand={'lesson': Rel(expand={'subject': Rel(), 'school_class': Rel()})}),
        'assignment': Rel(expand={'lesson': Rel(expand={'subject': Rel(), 'school_class': Rel()})}),
    }),
    detail_view=Rel(expand={
        'student': Rel(expand={'school_class': Rel(), 'grade': Rel()}),
        'exam': Rel(expand={'lesson': Rel(expand={
            'subject': Rel(), 'school_class': Rel(), 'teacher': Rel()})}),
        'assignment': Rel(expand={'lesson': Rel(expand={
            'subject': Rel(), 'school_class': Rel(), 'teacher': Rel()})}),
    }),
    write_view=Rel(expand={
        'student': Rel(fields=PERSON),
        'exam': Rel(expand={'lesson': Rel(expand={'subject': Rel()})}),
        'assignment': Rel(expand={'lesson': Rel(expand={'subject': Rel()})}),
    }),
    checks=(exam_or_assignment,),
    required=['score', 'studentId', 'examId OR assignmentId'],
)

ATTENDANCES = Resource(
    Attendance, 'Attendance', 'attendances',
    fields=[
        Field('date', to_datetime, required=True),
        Field('present', to_bool, required=True),
        Field('studentId', required=True, ref=Student),
        Field('lessonId', to_int, required=True, ref=Lesson),
    ],
    filters={
        'studentId': equals('student_id', str),
        'lessonId': equals('lesson_id'),
        'present': equals('present', to_bool),
    },
    order_by=[('date', 'desc')],
    list_view=Rel(expand={
        'student': Rel(fields=PERSON),
        'lesson': Rel(expand={'subject': Rel()}),
    }),
    detail_view=Rel(expand={
        'student': Rel(expand={'school_class': Rel()}),
        'lesson': LESSON_SUMMARY,
    }),
    write_view=Rel(expand={'student': Rel(fields=PERSON), 'lesson': Rel()}),
)

CLASS_BADGE = Rel(fields=('id', 'name'), expand={'grade': Rel(fields=('level',))})
CLASS_ROSTER = Rel(expand={'grade': Rel(), 'students': Rel(fields=PERSON)})

EVENTS = Resource(
    Event, 'Event', 'events',
    fields=[
        Field('title', required=True),
        Field('description', nullable=True),
        Field('startTime', to_datetime, required=True),
        Field('endTime', to_datetime, required=True),
        Field('classId', to_int, nullable=True, ref=SchoolClass),
    ],
    search=('title',),
    filters={'classId': equals('class_id'), 'upcoming': upcoming},
    order_by=[('start_time', 'desc')],
    list_view=Rel(expand={'school_class': CLASS_BADGE}),
    detail_view=Rel(expand={'school_class': CLASS_ROSTER}),
    write_view=Rel(expand={'school_class': Rel()}),
    checks=(ordered('start_time', 'end_time', 'End time must be after start time'),),
)

ANNOUNCEMENTS = Resource(
    Announcement, 'Announcement', 'announcements',
    fields=[
        Field('title', required=True),
        Field('description', nullable=True),
        Field('date', to_datetime, required=True),
        Field('classId', to_int, nullable=True, ref=SchoolClass),
    ],
    search=('title',),
    filters={'classId': equals('class_id'), 'recent': recent},
    order_by=[('date', 'desc')],
    list_view=Rel(expand={'school_class': CLASS_BADGE}),
    detail_view=Rel(expand={'school_class': CLASS_ROSTER}),
    write_view=Rel(expand={'school_class': Rel()}),
)

RESOURCES = [
    GRADES, TEACHERS, SUBJECTS, CLASSES, PARENTS, STUDENTS, LESSONS,
    EXAMS, ASSIGNMENTS, RESULTS, ATTENDANCES, EVENTS, ANNOUNCEMENTS,
]
