import os
import sys
from datetime import datetime

# Fix import path so schooladmin is accessible
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from werkzeug.security import generate_password_hash

from schooladmin.app import create_app
from schooladmin.models import (
    Admin, Grade, Parent, SchoolClass, Student, Subject, Teacher, db,
)


def upsert(model, lookup, **fields):
    """Return the row matching ``lookup``, inserting it with ``fields`` if absent."""
    obj = model.query.filter_by(**lookup).first()
    if obj is None:
        obj = model(**lookup, **fields)
        db.session.add(obj)
        db.session.flush()
    return obj


def seed(app=None):
    app = app or create_app()
    with app.app_context():
        grades = [upsert(Grade, {'level': level}) for level in range(1, 6)]
        app.logger.info('✅ Grades created')

        upsert(Admin, {'email': 'admin@school.com'},
               username='admin', password=generate_password_hash('admin123'))
        app.logger.info('✅ Admin created')

        teacher1 = upsert(
            Teacher, {'email': 'john.doe@school.com'},
            username='teacher1', name='John', surname='Doe', phone='1234567890',
            address='123 Main St', sex='male', birthday=datetime(1980, 1, 1),
        )
        teacher2 = upsert(
            Teacher, {'email': 'jane.smith@school.com'},
            username='teacher2', name='Jane', surname='Smith', phone='0987654321',
            address='456 Oak Ave', sex='female', birthday=datetime(1985, 5, 15),
        )
        app.logger.info('✅ Teachers created')

        math = upsert(Subject, {'name': 'Mathematics'})
        english = upsert(Subject, {'name': 'English'})
        if teacher1 not in math.teachers:
            math.teachers.append(teacher1)
        if teacher2 not in english.teachers:
            english.teachers.append(teacher2)
        app.logger.info('✅ Subjects created')

        class_1a = upsert(SchoolClass, {'name': '1A'}, capacity=20,
                          grade_id=grades[0].id, supervisor_id=teacher1.id)
        upsert(SchoolClass, {'name': '1B'}, capacity=22,
               grade_id=grades[0].id, supervisor_id=teacher2.id)
        app.logger.info('✅ Classes created')

        parent1 = upsert(
            Parent, {'email': 'michael.j@email.com'},
            username='parent1', name='Michael', surname='Johnson',
            phone='5551234567', address='789 Elm St',
        )
        parent2 = upsert(
            Parent, {'email': 'sarah.w@email.com'},
            username='parent2', name='Sarah', surname='Williams',
            phone='5559876543', address='321 Pine Rd',
        )
        app.logger.info('✅ Parents created')

        upsert(
            Student, {'email': 'alex.j@student.com'},
            username='student1', name='Alex', surname='Johnson', phone='5551111111',
            address='789 Elm St', sex='male', birthday=datetime(2010, 3, 15),
            parent_id=parent1.id, class_id=class_1a.id, grade_id=grades[0].id,
        )
        upsert(
            Student, {'email': 'emma.w@student.com'},
            username='student2', name='Emma', surname='Williams', phone='5552222222',
            address='321 Pine Rd', sex='female', birthday=datetime(2010, 7, 22),
            parent_id=parent2.id, class_id=class_1a.id, grade_id=grades[0].id,
        )
        app.logger.info('✅ Students created')

        db.session.commit()
        app.logger.info('🎉 Seeding completed!')


if __name__ == '__main__':
    try:
        seed()
    except Exception as e:
        print(f'❌ Seeding failed: {e}')
        sys.exit(1)
