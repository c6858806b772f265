from discipleship.curriculums import get_available_curriculums, get_curriculum_lessons, is_catalog_curriculum


def test_catalog_shapes():
    assert set(get_available_curriculums()) == {'search-for-truth', 'exploring-gods-word', 'first-principles', 'custom'}
    for cid, count in (('search-for-truth', 12), ('exploring-gods-word', 8), ('first-principles', 10), ('custom', 0)):
        lessons = get_curriculum_lessons(cid)
        assert len(lessons) == count
        assert [lesson.number for lesson in lessons] == list(range(1, count + 1))


def test_unknown_curriculum_is_custom():
    assert get_curriculum_lessons('new-believers') == []
    assert not is_catalog_curriculum('new-believers')
    assert is_catalog_curriculum('first-principles')


def test_curriculums_endpoint(client):
    r = client.get('/api/v1/curriculums')
    assert r.status_code == 200
    by_id = {c['id']: c['lessons'] for c in r.json()}
    assert by_id['search-for-truth'][7] == {
        'number': 8, 'title': 'Baptism', 'description': "Water baptism in Jesus' name",
    }
    assert by_id['custom'] == []
