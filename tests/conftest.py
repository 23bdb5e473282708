import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("INVITE_EMAILS_ENABLED", "false")

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from carebase.core.security import hash_password  # noqa: E402
from carebase.db.init_db import create_tables  # noqa: E402
from carebase.db.session import make_engine, make_session_factory  # noqa: E402
from carebase.main import create_app  # noqa: E402
from carebase.models import (  # noqa: E402
    GlobalRole,
    Medicine,
    Organization,
    OrgMember,
    OrgRole,
    OrgType,
    Prescription,
    PrescriptionItem,
    PrescriptionStatus,
    User,
)
from carebase.services.access import load_actor  # noqa: E402
from carebase.utils.jwt import create_access_token  # noqa: E402

PASSWORD = "Secret123!"


@pytest.fixture
def engine(tmp_path):
    # file-backed so several connections (threads, API requests) share it
    eng = make_engine(f"sqlite:///{tmp_path / 'carebase.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


def _user(s, email, role=GlobalRole.USER):
    u = User(email=email,
             name=email.split("@")[0],
             password_hash=hash_password(PASSWORD),
             global_role=role)
    s.add(u)
    s.flush()
    return u


@pytest.fixture
def world(session_factory):
    """
    Users and orgs shared by most tests. Seeded in its own session, which is
    closed before the test body runs.
    """
    with session_factory() as s:
        hospital = Organization(name="City Hospital", type=OrgType.HOSPITAL)
        pharmacy = Organization(name="Corner Pharmacy",
                                type=OrgType.PHARMACY,
                                domain="cornerpharmacy.lk")
        pharmacy2 = Organization(name="Harbour Pharmacy",
                                 type=OrgType.PHARMACY)
        lab = Organization(name="Central Lab", type=OrgType.LAB)
        s.add_all([hospital, pharmacy, pharmacy2, lab])
        s.flush()

        root = _user(s, "root@carebase.lk", GlobalRole.ROOT_ADMIN)
        doctor = _user(s, "doctor@cityhospital.lk")
        pharmacist = _user(s, "pharm@cornerpharmacy.lk")
        pharmacist2 = _user(s, "pharm@harbour.lk")
        ward_pharmacist = _user(s, "ward@cityhospital.lk")
        lab_tech = _user(s, "tech@centrallab.lk")
        patient = _user(s, "patient@mail.lk")
        guardian = _user(s, "guardian@mail.lk")
        stranger = _user(s, "stranger@mail.lk")

        s.add_all([
            OrgMember(user_id=doctor.id, org_id=hospital.id,
                      role=OrgRole.DOCTOR),
            OrgMember(user_id=pharmacist.id, org_id=pharmacy.id,
                      role=OrgRole.PHARMACIST),
            OrgMember(user_id=pharmacist2.id, org_id=pharmacy2.id,
                      role=OrgRole.PHARMACIST),
            # pharmacist role, but not at a pharmacy org
            OrgMember(user_id=ward_pharmacist.id, org_id=hospital.id,
                      role=OrgRole.PHARMACIST),
            OrgMember(user_id=lab_tech.id, org_id=lab.id,
                      role=OrgRole.LAB_TECH),
        ])

        med = Medicine(name="Paracetamol", strength="500mg", form="TABLET")
        med2 = Medicine(name="Amoxicillin", strength="250mg", form="CAPSULE")
        s.add_all([med, med2])
        s.commit()

        ids = SimpleNamespace(
            hospital=hospital.id,
            pharmacy=pharmacy.id,
            pharmacy2=pharmacy2.id,
            lab=lab.id,
            root=root.id,
            doctor=doctor.id,
            pharmacist=pharmacist.id,
            pharmacist2=pharmacist2.id,
            ward_pharmacist=ward_pharmacist.id,
            lab_tech=lab_tech.id,
            patient=patient.id,
            guardian=guardian.id,
            stranger=stranger.id,
            medicine=med.id,
            medicine2=med2.id,
        )
    return ids


@pytest.fixture
def actor_for(session_factory):
    """actor_for(user_id) -> Actor built from the stored memberships."""

    def _build(user_id):
        with session_factory() as s:
            return load_actor(s, s.get(User, user_id))

    return _build


@pytest.fixture
def make_prescription(session_factory, world):
    """make_prescription(10, 5, status=...) -> (prescription_id, [item ids])"""

    def _make(*quantities, status=PrescriptionStatus.ACTIVE):
        with session_factory() as s:
            rx = Prescription(
                patient_id=world.patient,
                doctor_id=world.doctor,
                status=status,
                items=[
                    PrescriptionItem(medicine_id=world.medicine,
                                     dose="1 tab",
                                     frequency="2x daily",
                                     duration_days=5,
                                     quantity=q) for q in quantities
                ],
            )
            s.add(rx)
            s.commit()
            return rx.id, [i.id for i in rx.items]

    return _make


@pytest.fixture
def client(engine):
    app = create_app(engine=engine)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth():
    """auth(user_id) -> Authorization header dict."""

    def _headers(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
