import sqlite3
import uuid
from datetime import date, datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless asked per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return uuid.uuid4().hex


def camel(name):
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


class SerializerMixin(object):
    """Column-only JSON view of a row, keys in camelCase."""

    __hidden__ = ()

    def to_dict(self, only=None):
        data = {}
        for column in self.__table__.columns:
            key = column.key
            if key in self.__hidden__ or (only and key not in only):
                continue
            value = getattr(self, key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[camel(key)] = value
        return data


# ------------------ ASSOCIATION TABLE ------------------
teacher_subjects = db.Table(
    'teacher_subjects',
    db.Column('teacher_id', db.String(36), db.ForeignKey('teachers.id'), primary_key=True),
    db.Column('subject_id', db.Integer, db.ForeignKey('subjects.id'), primary_key=True),
)


# ------------------ GRADE MODEL ------------------
class Grade(SerializerMixin, db.Model):
    __tablename__ = 'grades'

    id = db.Column(db.Integer, primary_key=True)
    level = db.Column(db.Integer, unique=True, nullable=False)

    classes = db.relationship('SchoolClass', back_populates='grade')
    students = db.relationship('Student', back_populates='grade')

    def __repr__(self):
        return f"<Grade {self.level}>"


# ------------------ ADMIN MODEL ------------------
class Admin(SerializerMixin, db.Model):
    __tablename__ = 'admins'
    __hidden__ = ('password',)

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)       # hashed password

    def __repr__(self):
        return f"<Admin {self.username}>"


# ------------------ TEACHER MODEL ------------------
class Teacher(SerializerMixin, db.Model):
    __tablename__ = 'teachers'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(100), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    surname = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True)
    phone = db.Column(db.String(30))
    address = db.Column(db.String(255))
    img = db.Column(db.String(255))
    blood_type = db.Column(db.String(10))
    sex = db.Column(db.String(10), nullable=False)
    birthday = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    subjects = db.relationship('Subject', secondary=teacher_subjects, back_populates='teachers')
    lessons = db.relationship('Lesson', back_populates='teacher')
    classes = db.relationship('SchoolClass', back_populates='supervisor')

    def __repr__(self):
        return f"<Teacher {self.name} {self.surname}>"


# ------------------ SUBJECT MODEL ------------------
class Subject(SerializerMixin, db.Model):
    __tablename__ = 'subjects'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)

    teachers = db.relationship('Teacher', secondary=teacher_subjects, back_populates='subjects')
    lessons = db.relationship('Lesson', back_populates='subject')

    def __repr__(self):
        return f"<Subject {self.name}>"


# ------------------ CLASS MODEL ------------------
class SchoolClass(SerializerMixin, db.Model):
    __tablename__ = 'classes'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    capacity = db.Column(db.Integer, nullable=False)
    grade_id = db.Column(db.Integer, db.ForeignKey('grades.id'), nullable=False)
    supervisor_id = db.Column(db.String(36), db.ForeignKey('teachers.id'))

    grade = db.relationship('Grade', back_populates='classes')
    supervisor = db.relationship('Teacher', back_populates='classes')
    students = db.relationship('Student', back_populates='school_class')
    lessons = db.relationship('Lesson', back_populates='school_class')
    events = db.relationship('Event', back_populates='school_class')
    announcements = db.relationship('Announcement', back_populates='school_class')

    def __repr__(self):
        return f"<Class {self.name}>"


# ------------------ PARENT MODEL ------------------
class Parent(SerializerMixin, db.Model):
    __tablename__ = 'parents'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(100), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    surname = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True)
    phone = db.Column(db.String(30), nullable=False)
    address = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    students = db.relationship('Student', back_populates='parent')

    def __repr__(self):
        return f"<Parent {self.name} {self.surname}>"


# ------------------ STUDENT MODEL ------------------
class Student(SerializerMixin, db.Model):
    __tablename__ = 'students'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(100), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    surname = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True)
    phone = db.Column(db.String(30))
    address = db.Column(db.String(255))
    img = db.Column(db.String(255))
    blood_type = db.Column(db.String(10))
    sex = db.Column(db.String(10), nullable=False)
    birthday = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    parent_id = db.Column(db.String(36), db.ForeignKey('parents.id'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=False)
    grade_id = db.Column(db.Integer, db.ForeignKey('grades.id'), nullable=False)

    parent = db.relationship('Parent', back_populates='students')
    school_class = db.relationship('SchoolClass', back_populates='students')
    grade = db.relationship('Grade', back_populates='students')
    attendances = db.relationship('Attendance', back_populates='student')
    results = db.relationship('Result', back_populates='student')

    def __repr__(self):
        return f"<Student {self.name} {self.surname}>"


# ------------------ LESSON MODEL ------------------
class Lesson(SerializerMixin, db.Model):
    __tablename__ = 'lessons'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    day = db.Column(db.String(10), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=False)
    teacher_id = db.Column(db.String(36), db.ForeignKey('teachers.id'), nullable=False)

    subject = db.relationship('Subject', back_populates='lessons')
    school_class = db.relationship('SchoolClass', back_populates='lessons')
    teacher = db.relationship('Teacher', back_populates='lessons')
    exams = db.relationship('Exam', back_populates='lesson')
    assignments = db.relationship('Assignment', back_populates='lesson')
    attendances = db.relationship('Attendance', back_populates='lesson')

    def __repr__(self):
        return f"<Lesson {self.name} ({self.day})>"


# ------------------ EXAM MODEL ------------------
class Exam(SerializerMixin, db.Model):
    __tablename__ = 'exams'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lessons.id'), nullable=False)

    lesson = db.relationship('Lesson', back_populates='exams')
    results = db.relationship('Result', back_populates='exam')


# ------------------ ASSIGNMENT MODEL ------------------
class Assignment(SerializerMixin, db.Model):
    __tablename__ = 'assignments'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lessons.id'), nullable=False)

    lesson = db.relationship('Lesson', back_populates='assignments')
    results = db.relationship('Result', back_populates='assignment')


# ------------------ RESULT MODEL ------------------
class Result(SerializerMixin, db.Model):
    __tablename__ = 'results'
    __table_args__ = (
        db.CheckConstraint('score >= 0 AND score <= 100', name='ck_results_score_range'),
        db.CheckConstraint('exam_id IS NOT NULL OR assignment_id IS NOT NULL',
                           name='ck_results_exam_or_assignment'),
    )

    id = db.Column(db.Integer, primary_key=True)
    score = db.Column(db.Integer, nullable=False)
    student_id = db.Column(db.String(36), db.ForeignKey('students.id'), nullable=False)
    exam_id = db.Column(db.Integer, db.ForeignKey('exams.id'))
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignments.id'))

    student = db.relationship('Student', back_populates='results')
    exam = db.relationship('Exam', back_populates='results')
    assignment = db.relationship('Assignment', back_populates='results')


# ------------------ ATTENDANCE MODEL ------------------
class Attendance(SerializerMixin, db.Model):
    __tablename__ = 'attendances'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime, nullable=False)
    present = db.Column(db.Boolean, nullable=False)
    student_id = db.Column(db.String(36), db.ForeignKey('students.id'), nullable=False)
    lesson_id = db.Column(db.Integer, db.ForeignKey('lessons.id'), nullable=False)

    student = db.relationship('Student', back_populates='attendances')
    lesson = db.relationship('Lesson', back_populates='attendances')


# ------------------ EVENT MODEL ------------------
class Event(SerializerMixin, db.Model):
    __tablename__ = 'events'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'))

    school_class = db.relationship('SchoolClass', back_populates='events')


# ------------------ ANNOUNCEMENT MODEL ------------------
class Announcement(SerializerMixin, db.Model):
    __tablename__ = 'announcements'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    date = db.Column(db.DateTime, nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'))

    school_class = db.relationship('SchoolClass', back_populates='announcements')
