import math


def test_create_returns_201_with_expanded_record(client, school):
    school_class = school['class']
    assert school_class['grade']['level'] == 1
    assert school_class['supervisor']['id'] == school['teacher']['id']

    student = school['student']
    assert student['class']['name'] == '1A'
    assert student['parent']['username'] == 'mjohnson'
    assert student['birthday'] == '2010-03-15T00:00:00'
    assert student['bloodType'] is None


def test_create_message_and_envelope(client, school):
    resp = client.post('/api/subjects', json={'name': 'English'})
    body = resp.get_json()
    assert resp.status_code == 201
    assert body['success'] is True
    assert body['message'] == 'Subject created successfully'
    assert body['data']['teachers'] == []


def test_get_one_expands_relations(client, school):
    resp = client.get(f"/api/classes/{school['class']['id']}")
    data = resp.get_json()['data']
    assert resp.status_code == 200
    assert [s['name'] for s in data['students']] == ['Alex']
    assert data['students'][0]['parent'] == {
        'id': school['parent']['id'], 'name': 'Michael', 'surname': 'Johnson', 'phone': '5551234567',
    }
    assert data['lessons'][0]['subject']['name'] == 'Mathematics'
    assert set(data['lessons'][0]['teacher']) == {'id', 'name', 'surname'}
    assert data['events'] == [] and data['announcements'] == []


def test_get_missing_record_is_404(client):
    resp = client.get('/api/subjects/999')
    assert resp.status_code == 404
    assert resp.get_json() == {'success': False, 'error': 'Subject not found'}


def test_get_malformed_integer_id_is_404(client):
    resp = client.get('/api/classes/not-a-number')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'Class not found'


def test_list_counts_are_computed(client, school):
    resp = client.get('/api/classes')
    row = resp.get_json()['data'][0]
    assert row['_count'] == {'students': 1, 'lessons': 1, 'events': 0, 'announcements': 0}

    teachers = client.get('/api/teachers').get_json()['data']
    assert teachers[0]['_count'] == {'lessons': 1, 'classes': 1}
    assert [s['name'] for s in teachers[0]['subjects']] == ['Mathematics']

    subjects = client.get('/api/subjects').get_json()['data']
    assert subjects[0]['_count'] == {'teachers': 1, 'lessons': 1}


def test_pagination_page_two(client, school, create):
    for i in range(11):
        create('students', {
            'username': f'student{i}', 'name': f'Kid{i}', 'surname': 'Smith', 'sex': 'female',
            'birthday': '2011-01-01', 'parentId': school['parent']['id'],
            'classId': school['class']['id'], 'gradeId': school['grade']['id'],
        })

    resp = client.get('/api/students?page=2&limit=5')
    body = resp.get_json()
    assert resp.status_code == 200
    assert len(body['data']) == 5
    assert body['pagination'] == {
        'page': 2, 'limit': 5, 'total': 12, 'totalPages': math.ceil(12 / 5),
    }

    last = client.get('/api/students?page=3&limit=5').get_json()
    assert len(last['data']) == 2


def test_pagination_defaults(client, school):
    body = client.get('/api/students').get_json()
    assert body['pagination'] == {'page': 1, 'limit': 10, 'total': 1, 'totalPages': 1}


def test_pagination_rejects_garbage(client):
    assert client.get('/api/students?page=abc').status_code == 400
    assert client.get('/api/students?limit=0').status_code == 400


def test_search_is_case_insensitive_substring(client, school, create):
    create('classes', {'name': '2B', 'capacity': 25, 'gradeId': school['grade']['id']})
    data = client.get('/api/students?search=JOHN').get_json()['data']
    assert [s['username'] for s in data] == ['alex']

    classes = client.get('/api/classes?search=2b').get_json()['data']
    assert [c['name'] for c in classes] == ['2B']


def test_search_escapes_wildcards(client, school):
    data = client.get('/api/students?search=%25').get_json()['data']
    assert data == []


def test_class_filter_by_grade(client, school, create):
    grade2 = create('grades', {'level': 2})
    create('classes', {'name': '2A', 'capacity': 25, 'gradeId': grade2['id']})
    data = client.get(f"/api/classes?gradeId={grade2['id']}").get_json()['data']
    assert [c['name'] for c in data] == ['2A']
    assert client.get('/api/classes?gradeId=x').status_code == 400


def test_lessons_filter_and_order(client, school, create):
    ids = {k: school[k]['id'] for k in ('subject', 'class', 'teacher')}
    create('lessons', {
        'name': 'Geometry', 'day': 'TUESDAY', 'startTime': '2024-01-09T08:00:00',
        'endTime': '2024-01-09T08:45:00', 'subjectId': ids['subject'],
        'classId': ids['class'], 'teacherId': ids['teacher'],
    })
    create('lessons', {
        'name': 'Early algebra', 'day': 'MONDAY', 'startTime': '2024-01-08T08:00:00',
        'endTime': '2024-01-08T08:45:00', 'subjectId': ids['subject'],
        'classId': ids['class'], 'teacherId': ids['teacher'],
    })

    monday = client.get('/api/lessons?day=monday').get_json()['data']
    assert [lesson['name'] for lesson in monday] == ['Early algebra', 'Algebra']

    by_teacher = client.get(f"/api/lessons?teacherId={ids['teacher']}").get_json()
    assert by_teacher['pagination']['total'] == 3


def test_lessons_are_ordered_by_weekday(client, school, create):
    ids = {k: school[k]['id'] for k in ('subject', 'class', 'teacher')}
    for name, day in (('Art', 'FRIDAY'), ('Music', 'WEDNESDAY')):
        create('lessons', {
            'name': name, 'day': day, 'startTime': '2024-01-01T10:00:00',
            'endTime': '2024-01-01T10:45:00', 'subjectId': ids['subject'],
            'classId': ids['class'], 'teacherId': ids['teacher'],
        })
    data = client.get('/api/lessons').get_json()['data']
    assert [lesson['day'] for lesson in data] == ['MONDAY', 'WEDNESDAY', 'FRIDAY']


def test_update_is_a_patch(client, school):
    sid = school['student']['id']
    resp = client.put(f'/api/students/{sid}', json={'name': 'Alexander', 'email': ''})
    data = resp.get_json()['data']
    assert resp.status_code == 200
    assert resp.get_json()['message'] == 'Student updated successfully'
    assert data['name'] == 'Alexander'
    assert data['surname'] == 'Johnson'
    assert data['email'] is None


def test_update_ignores_blank_required_fields(client, school):
    sid = school['student']['id']
    data = client.put(f'/api/students/{sid}', json={'surname': ''}).get_json()['data']
    assert data['surname'] == 'Johnson'


def test_repeated_update_is_idempotent(client, school):
    cid = school['class']['id']
    patch = {'capacity': 30, 'supervisorId': None}
    first = client.put(f'/api/classes/{cid}', json=patch).get_json()['data']
    second = client.put(f'/api/classes/{cid}', json=patch).get_json()['data']
    assert first == second
    assert second['capacity'] == 30
    assert second['supervisor'] is None


def test_update_missing_record_is_404(client):
    resp = client.put('/api/events/42', json={'title': 'x'})
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'Event not found'


def test_patch_method_alias(client, school):
    resp = client.patch(f"/api/subjects/{school['subject']['id']}", json={'name': 'Maths'})
    assert resp.status_code == 200
    assert resp.get_json()['data']['name'] == 'Maths'


def test_subject_teacher_links_are_replaced(client, school, create):
    other = create('teachers', {
        'username': 'jsmith', 'name': 'Jane', 'surname': 'Smith', 'sex': 'female',
        'birthday': '1985-05-15',
    })
    sid = school['subject']['id']
    data = client.put(f'/api/subjects/{sid}', json={'teacherIds': [other['id']]}).get_json()['data']
    assert [t['username'] for t in data['teachers']] == ['jsmith']

    detail = client.get(f"/api/teachers/{school['teacher']['id']}").get_json()['data']
    assert detail['subjects'] == []


def test_teacher_accepts_subject_ids(client, school, create):
    english = create('subjects', {'name': 'English'})
    teacher = create('teachers', {
        'username': 'jsmith', 'name': 'Jane', 'surname': 'Smith', 'sex': 'FEMALE',
        'birthday': '1985-05-15', 'subjectIds': [english['id']],
    })
    assert teacher['sex'] == 'female'
    assert [s['name'] for s in teacher['subjects']] == ['English']

    filtered = client.get(f"/api/teachers?subjectId={english['id']}").get_json()['data']
    assert [t['username'] for t in filtered] == ['jsmith']


def test_delete_then_get_is_404(client, school):
    sid = school['student']['id']
    resp = client.delete(f'/api/students/{sid}')
    assert resp.status_code == 200
    assert resp.get_json() == {'success': True, 'message': 'Student deleted successfully'}
    assert client.get(f'/api/students/{sid}').status_code == 404


def test_delete_missing_is_404(client):
    assert client.delete('/api/parents/nobody').status_code == 404


def test_delete_subject_with_only_teacher_links(client, create, school):
    english = create('subjects', {'name': 'English', 'teacherIds': [school['teacher']['id']]})
    resp = client.delete(f"/api/subjects/{english['id']}")
    assert resp.status_code == 200
    teacher = client.get(f"/api/teachers/{school['teacher']['id']}").get_json()['data']
    assert [s['name'] for s in teacher['subjects']] == ['Mathematics']


def test_unknown_api_route_gets_envelope(client):
    resp = client.get('/api/nothing-here')
    assert resp.status_code == 404
    assert resp.get_json() == {'success': False, 'error': 'Not found'}


def test_wrong_method_gets_envelope(client):
    resp = client.delete('/api/subjects')
    assert resp.status_code == 405
    assert resp.get_json()['success'] is False


def test_out_of_range_integer_id_is_404(client):
    resp = client.get('/api/classes/99999999999999999999999')
    assert resp.status_code == 404
    assert resp.get_json() == {'success': False, 'error': 'Class not found'}
    assert client.delete('/api/grades/-99999999999999999999').status_code == 404


def test_pagination_rejects_huge_page(client, school):
    resp = client.get('/api/students?page=99999999999999999999')
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid pagination parameters'


def test_repeated_link_ids_are_collapsed(client, school, create):
    tid = school['teacher']['id']
    resp = client.post('/api/subjects', json={'name': 'Physics', 'teacherIds': [tid, tid]})
    assert resp.status_code == 201
    assert [t['id'] for t in resp.get_json()['data']['teachers']] == [tid]

    english = create('subjects', {'name': 'English'})
    resp = client.put(f'/api/teachers/{tid}', json={
        'subjectIds': [english['id'], school['subject']['id'], english['id']],
    })
    assert resp.status_code == 200
    detail = client.get(f'/api/teachers/{tid}').get_json()['data']
    assert sorted(s['name'] for s in detail['subjects']) == ['English', 'Mathematics']
