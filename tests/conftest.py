import pytest

from schooladmin.app import create_app
from schooladmin.auth import StaticIdentityProvider
from schooladmin.models import db


@pytest.fixture
def identity():
    provider = StaticIdentityProvider()
    provider.add_user('user_admin', 'admin')
    provider.add_user('user_teacher', 'teacher')
    provider.add_user('user_plain')
    return provider


@pytest.fixture
def make_app(identity):
    apps = []

    def factory(**overrides):
        config = {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite://',
            'LOG_LEVEL': 'WARNING',
        }
        config.update(overrides)
        app = create_app(config, identity_provider=identity)
        apps.append(app)
        return app

    yield factory

    for app in apps:
        with app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


def post_created(client, plural, payload):
    resp = client.post(f'/api/{plural}', json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['data']


@pytest.fixture
def school(client):
    """A minimal but complete graph: grade, teacher, subject, class, parent, student, lesson."""
    grade = post_created(client, 'grades', {'level': 1})
    teacher = post_created(client, 'teachers', {
        'username': 'jdoe', 'name': 'John', 'surname': 'Doe', 'email': 'john.doe@school.com',
        'sex': 'male', 'birthday': '1980-01-01',
    })
    subject = post_created(client, 'subjects', {'name': 'Mathematics', 'teacherIds': [teacher['id']]})
    school_class = post_created(client, 'classes', {
        'name': '1A', 'capacity': 20, 'gradeId': grade['id'], 'supervisorId': teacher['id'],
    })
    parent = post_created(client, 'parents', {
        'username': 'mjohnson', 'name': 'Michael', 'surname': 'Johnson', 'phone': '5551234567',
    })
    student = post_created(client, 'students', {
        'username': 'alex', 'name': 'Alex', 'surname': 'Johnson', 'email': 'alex.j@student.com',
        'sex': 'male', 'birthday': '2010-03-15', 'parentId': parent['id'],
        'classId': school_class['id'], 'gradeId': grade['id'],
    })
    lesson = post_created(client, 'lessons', {
        'name': 'Algebra', 'day': 'monday', 'startTime': '2024-01-08T09:00:00',
        'endTime': '2024-01-08T09:45:00', 'subjectId': subject['id'],
        'classId': school_class['id'], 'teacherId': teacher['id'],
    })
    return {
        'grade': grade,
        'teacher': teacher,
        'subject': subject,
        'class': school_class,
        'parent': parent,
        'student': student,
        'lesson': lesson,
    }


@pytest.fixture
def create(client):
    def factory(plural, payload):
        return post_created(client, plural, payload)
    return factory
