from workshop_api.services import entity_store


def test_list_users_filters_by_role(client, mentor, learner, auth_header) -> None:
    everyone = client.get('/users', headers=auth_header(learner))
    mentors = client.get('/users', params={'role': 'mentor'}, headers=auth_header(learner))
    invalid = client.get('/users', params={'role': 'admin'}, headers=auth_header(learner))

    assert [user['id'] for user in everyone.json()] == [mentor.id, learner.id]
    assert [user['id'] for user in mentors.json()] == [mentor.id]
    assert invalid.status_code == 422


def test_get_user_and_missing_user(client, mentor, learner, auth_header) -> None:
    found = client.get(f'/users/{mentor.id}', headers=auth_header(learner))
    missing = client.get('/users/999', headers=auth_header(learner))

    assert found.json()['email'] == 'grace@example.com'
    assert missing.status_code == 404


def test_user_updates_own_profile_but_not_role(client, learner, auth_header) -> None:
    update = client.patch(
        f'/users/{learner.id}',
        json={'name': 'Ada L.', 'notificationPreferences': False},
        headers=auth_header(learner),
    )
    role_change = client.patch(f'/users/{learner.id}', json={'role': 'mentor'}, headers=auth_header(learner))

    assert update.status_code == 200
    assert update.json()['name'] == 'Ada L.'
    assert update.json()['notificationPreferences'] is False
    assert role_change.status_code == 422


def test_password_change_is_used_at_next_login(client, learner, auth_header) -> None:
    client.patch(f'/users/{learner.id}', json={'password': 'new-password'}, headers=auth_header(learner))

    old = client.post('/auth/login', json={'email': 'ada@example.com', 'password': 'battery-staple'})
    new = client.post('/auth/login', json={'email': 'ada@example.com', 'password': 'new-password'})

    assert old.status_code == 401
    assert new.status_code == 200


def test_users_cannot_change_other_accounts(client, mentor, learner, auth_header) -> None:
    update = client.patch(f'/users/{mentor.id}', json={'name': 'Nope'}, headers=auth_header(learner))
    delete = client.delete(f'/users/{mentor.id}', headers=auth_header(learner))

    assert update.status_code == 403
    assert delete.status_code == 403


def test_user_deletes_own_account(client, learner, auth_header) -> None:
    learner_id, headers = learner.id, auth_header(learner)

    response = client.delete(f'/users/{learner_id}', headers=headers)

    assert response.status_code == 204
    assert client.get(f'/users/{learner_id}', headers=headers).status_code == 404


def test_user_workshops_for_mentor_and_learner(client, db, mentor, learner, workshop, auth_header) -> None:
    entity_store.create_enrollment(db, learner_id=learner.id, workshop_id=workshop.id)

    mentor_workshops = client.get(f'/users/{mentor.id}/workshops', headers=auth_header(learner))
    learner_workshops = client.get(f'/users/{learner.id}/workshops', headers=auth_header(learner))

    assert [item['id'] for item in mentor_workshops.json()] == [workshop.id]
    assert [item['id'] for item in learner_workshops.json()] == [workshop.id]
