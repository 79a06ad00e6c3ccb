import pytest
from fastapi.testclient import TestClient
from sqlmodel import select

from lms import models
from lms.main import app
from lms.models import Role

client = TestClient(app)

QUESTIONS = [
    {'type': 'mcq', 'question_text': '2+2=?', 'max_marks': 2,
     'options': [{'text': '4', 'is_correct': True}, {'text': '5', 'is_correct': False}]},
    {'type': 'true-false', 'question_text': 'Sky is blue', 'max_marks': 1,
     'options': [{'text': 'True', 'is_correct': True}, {'text': 'False', 'is_correct': False}]},
]


def _create_assignment(course_id, headers, **overrides):
    payload = {'title': 'Quiz', 'description': 'd', 'questions': QUESTIONS}
    payload.update(overrides)
    return client.post(f'/courses/{course_id}/assignments', json=payload, headers=headers)


def test_health_and_request_id():
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert 'X-Request-ID' in r.headers
    r2 = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r2.headers['X-Request-ID'] == 'abc123'


def test_token_required(make_course):
    course = make_course()
    r = client.get(f'/courses/{course.id}/assignments')
    assert r.status_code in (401, 403)
    r2 = client.get(f'/courses/{course.id}/assignments', headers={'Authorization': 'Bearer not.a.token'})
    assert r2.status_code == 401


def test_full_grading_flow(make_user, make_course, headers_for):
    instructor = make_user(Role.INSTRUCTOR, name='Ian')
    student = make_user(Role.STUDENT, name='Sam')
    course = make_course(assigned_to=instructor.id)

    created = _create_assignment(course.id, headers_for(instructor), deadline='2999-01-01T00:00:00Z')
    assert created.status_code == 201
    body = created.json()
    assert body['success'] is True
    assignment_id = body['assignment']['id']
    assert body['assignment']['deadline'].startswith('2999-01-01T00:00:00')

    submitted = client.post(
        f'/assignments/{assignment_id}/submit',
        json={'answers': [{'question_index': 0, 'answer': '4'}, {'question_index': 1, 'answer': 'False'}]},
        headers=headers_for(student),
    )
    assert submitted.status_code == 200
    submission = submitted.json()['submission']
    assert submission['marks'] == 2

    again = client.post(f'/assignments/{assignment_id}/submit', json={'answers': []}, headers=headers_for(student))
    assert again.status_code == 409
    assert again.json()['detail'] == 'You have already submitted this assignment'

    view = client.get(f'/assignments/{assignment_id}/submissions', headers=headers_for(instructor))
    assert view.status_code == 200
    data = view.json()
    assert data['assignment_title'] == 'Quiz'
    assert data['submissions'][0]['student_name'] == 'Sam'
    assert data['submissions'][0]['answers'][1] == {'question': 'Sky is blue', 'type': 'true-false', 'answer': 'False', 'max_marks': 1}

    url = f'/assignments/{assignment_id}/submissions/{submission["id"]}/marks'
    for _ in range(2):
        r = client.put(url, json={'marks': 3}, headers=headers_for(instructor))
        assert r.status_code == 200
    view = client.get(f'/assignments/{assignment_id}/submissions', headers=headers_for(instructor)).json()
    assert view['submissions'][0]['marks'] == 3

    assert client.put(url, json={'marks': 1}, headers=headers_for(student)).status_code == 403
    missing = client.put(f'/assignments/{assignment_id}/submissions/9999/marks', json={'marks': 1}, headers=headers_for(instructor))
    assert missing.status_code == 404


def test_student_listing_is_redacted(make_user, make_course, headers_for):
    instructor = make_user(Role.INSTRUCTOR)
    x = make_user(Role.STUDENT)
    y = make_user(Role.STUDENT)
    course = make_course(assigned_to=instructor.id)
    assignment_id = _create_assignment(course.id, headers_for(instructor)).json()['assignment']['id']
    for student in (x, y):
        r = client.post(f'/assignments/{assignment_id}/submit', json={'answers': []}, headers=headers_for(student))
        assert r.status_code == 200

    as_x = client.get(f'/courses/{course.id}/assignments', headers=headers_for(x)).json()['assignments']
    assert [s['student_id'] for s in as_x[0]['submissions']] == [x.id]
    as_owner = client.get(f'/courses/{course.id}/assignments', headers=headers_for(instructor)).json()['assignments']
    assert len(as_owner[0]['submissions']) == 2
    assert client.get('/courses/9999/assignments', headers=headers_for(x)).status_code == 404


def test_create_rejections(make_user, make_course, headers_for):
    owner = make_user(Role.INSTRUCTOR)
    stranger = make_user(Role.INSTRUCTOR)
    course = make_course(assigned_to=owner.id)

    r = _create_assignment(course.id, headers_for(stranger))
    assert r.status_code == 403
    assert r.json()['detail'] == 'Only the assigned instructor or admin can create assignments'
    assert _create_assignment(9999, headers_for(owner)).status_code == 404

    r = _create_assignment(course.id, headers_for(owner), questions=[])
    assert r.status_code == 400
    assert r.json()['detail'] == 'At least one question is required'

    bad_tf = [{'type': 'true-false', 'question_text': 'x', 'options': [{'text': 'True', 'is_correct': True}]}]
    r = _create_assignment(course.id, headers_for(owner), questions=bad_tf)
    assert r.status_code == 400
    assert 'exactly 2 options' in r.json()['detail']

    r = _create_assignment(course.id, headers_for(owner), deadline='soon')
    assert r.status_code == 400

    listing = client.get(f'/courses/{course.id}/assignments', headers=headers_for(owner)).json()
    assert listing['assignments'] == []


def test_submit_rejections(make_user, make_course, headers_for):
    instructor = make_user(Role.INSTRUCTOR)
    student = make_user(Role.STUDENT)
    course = make_course(assigned_to=instructor.id)
    open_id = _create_assignment(course.id, headers_for(instructor)).json()['assignment']['id']
    closed_id = _create_assignment(course.id, headers_for(instructor), deadline='2000-01-01T00:00:00Z').json()['assignment']['id']

    assert client.post('/assignments/9999/submit', json={'answers': []}, headers=headers_for(student)).status_code == 404
    r = client.post(f'/assignments/{open_id}/submit', json={'answers': []}, headers=headers_for(instructor))
    assert r.status_code == 403
    r = client.post(f'/assignments/{closed_id}/submit', json={'answers': []}, headers=headers_for(student))
    assert r.status_code == 409
    assert r.json()['detail'] == 'Submission deadline has passed'
    r = client.post(f'/assignments/{open_id}/submit', json={'answers': 'nope'}, headers=headers_for(student))
    assert r.status_code == 400
    r = client.post(f'/assignments/{open_id}/submit', json={}, headers=headers_for(student))
    assert r.status_code == 400
    r = client.post(f'/assignments/{open_id}/submit', json={'answers': [{'question_index': 5, 'answer': 'x'}]}, headers=headers_for(student))
    assert r.status_code == 400
    assert r.json()['detail'] == 'Invalid question index'
    # none of the rejected attempts counted as a submission
    r = client.post(f'/assignments/{open_id}/submit', json={'answers': [{'question_index': 0, 'answer': '4'}]}, headers=headers_for(student))
    assert r.status_code == 200


def test_delete_assignment(make_user, make_course, headers_for):
    instructor = make_user(Role.INSTRUCTOR)
    admin = make_user(Role.ADMIN)
    student = make_user(Role.STUDENT)
    course = make_course(assigned_to=instructor.id)
    first = _create_assignment(course.id, headers_for(instructor)).json()['assignment']['id']
    second = _create_assignment(course.id, headers_for(instructor)).json()['assignment']['id']

    assert client.delete(f'/assignments/{first}', headers=headers_for(student)).status_code == 403
    assert client.delete(f'/assignments/{first}', headers=headers_for(instructor)).status_code == 200
    assert client.delete(f'/assignments/{second}', headers=headers_for(admin)).status_code == 200
    assert client.delete(f'/assignments/{first}', headers=headers_for(admin)).status_code == 404
    assert client.get(f'/assignments/{second}/submissions', headers=headers_for(admin)).status_code == 404


def _raw_json(method, url, body, headers):
    # Infinity and NaN are not valid JSON, so the body is sent as raw text
    return client.request(method, url, content=body, headers={**headers, 'Content-Type': 'application/json'})


@pytest.mark.parametrize('token', ['Infinity', '-Infinity', 'NaN'])
def test_non_finite_numbers_rejected(make_user, make_course, headers_for, session, token):
    instructor = make_user(Role.INSTRUCTOR)
    student = make_user(Role.STUDENT)
    course = make_course(assigned_to=instructor.id)
    headers = headers_for(instructor)

    question = ('{"type": "mcq", "question_text": "q", "max_marks": %s, '
                '"options": [{"text": "a", "is_correct": true}]}' % token)
    r = _raw_json('POST', f'/courses/{course.id}/assignments', '{"title": "Q", "questions": [%s]}' % question, headers)
    assert r.status_code == 400
    assert r.json()['detail'] == 'Max marks must be greater than 0'
    assert session.exec(select(models.Assignment)).all() == []

    assignment_id = _create_assignment(course.id, headers).json()['assignment']['id']
    submission = client.post(f'/assignments/{assignment_id}/submit', json={'answers': []}, headers=headers_for(student))
    url = f'/assignments/{assignment_id}/submissions/{submission.json()["submission"]["id"]}/marks'
    r = _raw_json('PUT', url, '{"marks": %s}' % token, headers)
    assert r.status_code == 400
    assert r.json()['detail'] == 'Marks must be a finite number'

    assert client.get(f'/assignments/{assignment_id}/submissions', headers=headers).status_code == 200
    assert client.get(f'/courses/{course.id}/assignments', headers=headers).status_code == 200


def test_malformed_questions_are_bad_requests(make_user, make_course, headers_for):
    owner = make_user(Role.INSTRUCTOR)
    course = make_course(assigned_to=owner.id)
    for questions, message in [
        ('nope', 'At least one question is required'),
        (['nope'], 'Each question must be an object'),
        ([{'type': 'mcq', 'question_text': 'q', 'max_marks': 'abc',
           'options': [{'text': 'a', 'is_correct': True}]}], 'Max marks must be greater than 0'),
    ]:
        r = _create_assignment(course.id, headers_for(owner), questions=questions)
        assert r.status_code == 400
        assert r.json()['detail'] == message


def test_marks_body_is_required(make_user, make_course, headers_for):
    instructor = make_user(Role.INSTRUCTOR)
    student = make_user(Role.STUDENT)
    course = make_course(assigned_to=instructor.id)
    assignment_id = _create_assignment(course.id, headers_for(instructor)).json()['assignment']['id']
    submitted = client.post(f'/assignments/{assignment_id}/submit', json={'answers': [{'question_index': 0, 'answer': '4'}]},
                            headers=headers_for(student)).json()['submission']
    url = f'/assignments/{assignment_id}/submissions/{submitted["id"]}/marks'

    assert client.put(url, json={}, headers=headers_for(instructor)).status_code == 422
    view = client.get(f'/assignments/{assignment_id}/submissions', headers=headers_for(instructor)).json()
    assert view['submissions'][0]['marks'] == 2
    assert client.put(url, json={'marks': None}, headers=headers_for(instructor)).status_code == 200
    view = client.get(f'/assignments/{assignment_id}/submissions', headers=headers_for(instructor)).json()
    assert view['submissions'][0]['marks'] is None
