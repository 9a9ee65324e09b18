"""Senior/consulting hierarchy: both ends of every edge stay in step."""
import pytest
from sqlmodel import select

from medlens.core.errors import NotFoundError, ValidationError
from medlens.models import Role, User
from medlens.schemas import UserCreate, UserUpdate
from medlens.services import hierarchy


def _assert_consistent(db):
    db.expire_all()
    users = db.exec(select(User)).all()
    by_id = {u.id: u for u in users}
    for u in users:
        if u.assigned_senior_doctor_id is not None:
            assert u.id in by_id[u.assigned_senior_doctor_id].assigned_consulting_doctors
        for child_id in u.assigned_consulting_doctors:
            assert by_id[child_id].assigned_senior_doctor_id == u.id
        assert len(set(u.assigned_consulting_doctors)) == len(u.assigned_consulting_doctors)


def test_assign_links_both_directions(db, make_user):
    senior = make_user(Role.senior_doctor)
    consulting = make_user(Role.consulting_doctor)
    c, s = hierarchy.assign_consulting_to_senior(db, consulting.id, senior.id)
    assert c.assigned_senior_doctor_id == senior.id
    assert s.assigned_consulting_doctors == [consulting.id]
    _assert_consistent(db)


def test_reassign_moves_edge_to_new_senior(db, make_user):
    s1 = make_user(Role.senior_doctor)
    s2 = make_user(Role.senior_doctor)
    consulting = make_user(Role.consulting_doctor)
    hierarchy.assign_consulting_to_senior(db, consulting.id, s1.id)
    hierarchy.assign_consulting_to_senior(db, consulting.id, s2.id)
    db.expire_all()
    assert db.get(User, s1.id).assigned_consulting_doctors == []
    assert db.get(User, s2.id).assigned_consulting_doctors == [consulting.id]
    _assert_consistent(db)


def test_assign_twice_keeps_set_semantics(db, make_user):
    senior = make_user(Role.senior_doctor)
    consulting = make_user(Role.consulting_doctor)
    hierarchy.assign_consulting_to_senior(db, consulting.id, senior.id)
    _, s = hierarchy.assign_consulting_to_senior(db, consulting.id, senior.id)
    assert s.assigned_consulting_doctors == [consulting.id]


def test_assign_rejects_wrong_roles(db, make_user):
    senior = make_user(Role.senior_doctor)
    coordinator = make_user(Role.front_desk_coordinator)
    with pytest.raises(ValidationError):
        hierarchy.assign_consulting_to_senior(db, coordinator.id, senior.id)
    with pytest.raises(ValidationError):
        hierarchy.assign_consulting_to_senior(db, senior.id, senior.id)
    with pytest.raises(NotFoundError):
        hierarchy.assign_consulting_to_senior(db, 999, senior.id)


def test_register_with_invalid_senior(db, make_user):
    consulting = make_user(Role.consulting_doctor)
    data = UserCreate(
        email="new@example.com",
        password="secret123",
        first_name="New",
        last_name="Doctor",
        role=Role.consulting_doctor,
        assigned_senior_doctor=consulting.id,
    )
    with pytest.raises(ValidationError) as exc:
        hierarchy.register_user(db, data)
    assert exc.value.message == "Invalid senior doctor assignment"
    assert db.exec(select(User).where(User.email == "new@example.com")).first() is None


def test_role_change_detaches_hierarchy(db, make_user):
    admin = make_user(Role.admin)
    senior = make_user(Role.senior_doctor)
    consulting = make_user(Role.consulting_doctor, senior=senior)
    target = db.get(User, consulting.id)
    hierarchy.update_user(db, target, UserUpdate(role=Role.senior_doctor), db.get(User, admin.id))
    db.expire_all()
    assert db.get(User, consulting.id).assigned_senior_doctor_id is None
    assert db.get(User, senior.id).assigned_consulting_doctors == []
    _assert_consistent(db)


def test_senior_leaving_role_releases_children(db, make_user):
    admin = make_user(Role.admin)
    senior = make_user(Role.senior_doctor)
    c1 = make_user(Role.consulting_doctor, senior=senior)
    c2 = make_user(Role.consulting_doctor, senior=senior)
    hierarchy.update_user(db, db.get(User, senior.id), UserUpdate(role=Role.admin), db.get(User, admin.id))
    db.expire_all()
    assert db.get(User, c1.id).assigned_senior_doctor_id is None
    assert db.get(User, c2.id).assigned_senior_doctor_id is None
    _assert_consistent(db)


def test_delete_user_detaches_and_refuses_self(db, make_user):
    admin = make_user(Role.admin)
    senior = make_user(Role.senior_doctor)
    consulting = make_user(Role.consulting_doctor, senior=senior)
    with pytest.raises(ValidationError) as exc:
        hierarchy.delete_user(db, admin.id, db.get(User, admin.id))
    assert exc.value.message == "Cannot delete your own account"
    hierarchy.delete_user(db, consulting.id, db.get(User, admin.id))
    db.expire_all()
    assert db.get(User, consulting.id) is None
    assert db.get(User, senior.id).assigned_consulting_doctors == []


def test_get_hierarchy(db, make_user):
    senior = make_user(Role.senior_doctor)
    consulting = make_user(Role.consulting_doctor, senior=senior)
    view = hierarchy.get_hierarchy(db, db.get(User, senior.id))
    assert view.senior_doctor is None
    assert [c.id for c in view.consulting_doctors] == [consulting.id]
    view = hierarchy.get_hierarchy(db, db.get(User, consulting.id))
    assert view.senior_doctor.id == senior.id


def test_register_rejects_senior_for_other_roles(db, make_user):
    senior = make_user(Role.senior_doctor)
    data = UserCreate(
        email="fd@example.com",
        password="secret123",
        first_name="Front",
        last_name="Desk",
        role=Role.front_desk_coordinator,
        assigned_senior_doctor=senior.id,
    )
    with pytest.raises(ValidationError) as exc:
        hierarchy.register_user(db, data)
    assert exc.value.message == "Only consulting doctors can be assigned to a senior doctor"
    db.expire_all()
    assert db.get(User, senior.id).assigned_consulting_doctors == []
    assert db.exec(select(User).where(User.email == "fd@example.com")).first() is None
