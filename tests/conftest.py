from __future__ import annotations

import dataclasses
import threading
from contextlib import contextmanager
from datetime import datetime

import pytest
from werkzeug.security import generate_password_hash

from presencia.attendance.model import AttendanceSummary, LectureRecord, SubmissionResult, record_key
from presencia.catalog.model import AppOptions, Subject
from presencia.container import wire
from presencia.core.enums import CorrectionStatus, Role
from presencia.corrections.model import CorrectionRequest
from presencia.users.model import AdminProfile, StudentProfile, TeacherProfile, UserCredentials


class FakeCatalogRepo:
    def __init__(self, subjects=(), options=None):
        self.subjects = {s.subject_id: s for s in subjects}
        self.options = options or AppOptions()

    def list_subjects(self):
        return sorted(self.subjects.values(), key=lambda s: s.name)

    def get_subject(self, subject_id):
        return self.subjects.get(subject_id)

    def get_options(self):
        return self.options


class FakeUsersRepo:
    def __init__(self):
        self.profiles = {}
        self.hashes = {}

    def add(self, profile, password=None):
        self.profiles[profile.uid] = profile
        if password:
            self.hashes[profile.uid] = generate_password_hash(password, method="pbkdf2:sha256:1000")
        return profile

    def get_profile(self, uid):
        return self.profiles.get(uid)

    def get_credentials_by_email(self, email):
        for p in self.profiles.values():
            if p.email == email:
                return UserCredentials(uid=p.uid, email=p.email, password_hash=self.hashes.get(p.uid))
        return None

    def list_profiles(self, *, role=None):
        return [p for p in self.profiles.values() if role is None or p.role == role]

    def list_students_in_class(self, class_id):
        return [p for p in self.profiles.values() if isinstance(p, StudentProfile) and p.class_id == class_id]

    def list_teachers_for_class(self, class_id):
        return [p for p in self.profiles.values() if isinstance(p, TeacherProfile) and p.teaches(class_id)]

    def create_profile(self, profile, *, password_hash=None):
        self.profiles[profile.uid] = profile
        if password_hash:
            self.hashes[profile.uid] = password_hash

    def update_profile(self, profile):
        if profile.uid not in self.profiles:
            return False
        self.profiles[profile.uid] = profile
        return True

    def delete_profile(self, uid):
        self.hashes.pop(uid, None)
        return self.profiles.pop(uid, None) is not None


class FakeAttendanceRepo:
    """In-memory records and summaries guarded by one lock, like a single database."""

    def __init__(self):
        self.records = {}
        self.summaries = {}
        self.lock = threading.RLock()

    def _insert(self, record, subject_name):
        if record.key in self.records:
            return False
        self.records[record.key] = record
        key = (record.student_uid, record.subject_id)
        current = self.summaries.get(key) or AttendanceSummary(
            student_uid=record.student_uid,
            subject_id=record.subject_id,
            subject_name=subject_name,
            class_id=record.class_id,
        )
        self.summaries[key] = dataclasses.replace(
            current,
            subject_name=subject_name,
            attended=current.attended + (1 if record.present else 0),
            total=current.total + 1,
        )
        return True

    def seed_summary(self, *, student_uid, subject_id, subject_name, class_id, attended, total):
        self.summaries[(student_uid, subject_id)] = AttendanceSummary(
            student_uid=student_uid,
            subject_id=subject_id,
            subject_name=subject_name,
            class_id=class_id,
            attended=attended,
            total=total,
        )

    def next_lecture_number(self, *, work_date, class_id, subject_id):
        with self.lock:
            numbers = [
                r.lecture_number
                for r in self.records.values()
                if r.date == work_date and r.class_id == class_id and r.subject_id == subject_id
            ]
            return max(numbers, default=0) + 1

    def submit_batch(self, *, class_id, subject_id, subject_name, work_date, lecture_count, marks, marked_by):
        with self.lock:
            start = self.next_lecture_number(work_date=work_date, class_id=class_id, subject_id=subject_id)
            numbers = tuple(range(start, start + int(lecture_count)))
            created = 0
            for n in numbers:
                for m in marks:
                    record = LectureRecord(
                        date=work_date,
                        subject_id=subject_id,
                        class_id=class_id,
                        student_uid=m.student_uid,
                        lecture_number=n,
                        present=m.present,
                        marked_by=marked_by,
                    )
                    if self._insert(record, subject_name):
                        created += 1
            return SubmissionResult(
                class_id=class_id,
                subject_id=subject_id,
                date=work_date,
                lecture_numbers=numbers,
                records_created=created,
            )

    def mark_lecture(self, record, *, subject_name):
        with self.lock:
            return self._insert(record, subject_name)

    def get_record(self, *, work_date, subject_id, student_uid, lecture_number):
        return self.records.get(record_key(work_date, subject_id, student_uid, lecture_number))

    def list_records(self, *, class_id, subject_id):
        items = [r for r in self.records.values() if r.class_id == class_id and r.subject_id == subject_id]
        return sorted(items, key=lambda r: (r.date, r.lecture_number))

    def get_summary(self, *, student_uid, subject_id):
        return self.summaries.get((student_uid, subject_id))

    def list_summaries_for_student(self, student_uid):
        return [s for (uid, _), s in sorted(self.summaries.items()) if uid == student_uid]

    def list_summaries_for_students(self, student_uids):
        wanted = set(student_uids)
        return [s for (uid, _), s in sorted(self.summaries.items()) if uid in wanted]


class FakeApprovalTx:
    def __init__(self, repo):
        self._repo = repo
        self._attendance = repo.attendance

    def lock_correction(self, correction_id):
        return self._repo.items.get(int(correction_id))

    def lock_record(self, *, work_date, subject_id, student_uid, lecture_number):
        return self._attendance.get_record(
            work_date=work_date, subject_id=subject_id, student_uid=student_uid, lecture_number=lecture_number
        )

    def mark_record_present(self, key, *, notes):
        record = self._attendance.records.get(key)
        if record is None or record.present:
            return False
        self._attendance.records[key] = dataclasses.replace(record, present=True, notes=notes)
        return True

    def increment_attended(self, *, student_uid, subject_id):
        summary = self._attendance.summaries.get((student_uid, subject_id))
        if summary is None or summary.attended >= summary.total:
            return False
        self._attendance.summaries[(student_uid, subject_id)] = dataclasses.replace(summary, attended=summary.attended + 1)
        return True

    def set_status(self, *, correction_id, status, decided_by, decided_at):
        c = self._repo.items.get(int(correction_id))
        if c is None or c.status != CorrectionStatus.PENDING:
            return False
        self._repo.items[c.correction_id] = dataclasses.replace(
            c, status=status, status_updated_at=decided_at, decided_by=decided_by
        )
        return True


class FakeCorrectionsRepo:
    def __init__(self, attendance):
        self.attendance = attendance
        self.items = {}
        self._next_id = 1
        self.fail_step = None

    def _pending_exists(self, new):
        return any(
            c.status == CorrectionStatus.PENDING
            and (c.student_uid, c.subject_id, c.date, c.lecture_number)
            == (new.student_uid, new.subject_id, new.date, new.lecture_number)
            for c in self.items.values()
        )

    def create_pending(self, new):
        with self.attendance.lock:
            if self._pending_exists(new):
                return None
            cid = self._next_id
            self._next_id += 1
            self.items[cid] = CorrectionRequest(
                correction_id=cid,
                status=CorrectionStatus.PENDING,
                status_updated_at=new.submitted_at,
                **dataclasses.asdict(new),
            )
            return cid

    def add(self, correction):
        self.items[correction.correction_id] = correction
        self._next_id = max(self._next_id, correction.correction_id + 1)
        return correction

    def get(self, correction_id):
        return self.items.get(int(correction_id))

    def list_for_student(self, student_uid):
        return [c for c in self.items.values() if c.student_uid == student_uid]

    def list_for_subject(self, subject_id, *, class_id=None):
        return [
            c for c in self.items.values() if c.subject_id == subject_id and (class_id is None or c.class_id == class_id)
        ]

    def list_all(self):
        return list(self.items.values())

    def reject(self, *, correction_id, decided_by, decided_at):
        with self.attendance.lock:
            return FakeApprovalTx(self).set_status(
                correction_id=correction_id,
                status=CorrectionStatus.REJECTED,
                decided_by=decided_by,
                decided_at=decided_at,
            )

    @contextmanager
    def approval(self):
        with self.attendance.lock:
            saved = (dict(self.attendance.records), dict(self.attendance.summaries), dict(self.items))
            try:
                yield FakeApprovalTx(self)
            except BaseException:
                self.attendance.records, self.attendance.summaries, self.items = saved
                raise


CLASS_ID = "BTech-1-A"


@pytest.fixture
def fixed_now():
    return datetime(2025, 3, 10, 10, 0, 0)


@pytest.fixture
def catalog_repo():
    return FakeCatalogRepo(
        subjects=[
            Subject(subject_id="MATH-1", name="Mathematics"),
            Subject(subject_id="PHY-1", name="Physics"),
            Subject(subject_id="CHEM-1", name="Chemistry"),
        ],
        options=AppOptions(courses=("BTech",), years=("1", "2"), sections=("A", "B")),
    )


@pytest.fixture
def users_repo():
    repo = FakeUsersRepo()
    repo.add(AdminProfile(uid="a1", email="admin@test.local", name="Admin"), password="admin123")
    repo.add(
        TeacherProfile(
            uid="t1",
            email="teacher@test.local",
            name="Dr. Rao",
            subject_id="MATH-1",
            subject_name="Mathematics",
            class_ids=(CLASS_ID,),
        ),
        password="teacher123",
    )
    repo.add(
        TeacherProfile(
            uid="t2",
            email="physics@test.local",
            name="Dr. Sen",
            subject_id="PHY-1",
            subject_name="Physics",
            class_ids=(CLASS_ID,),
        )
    )
    for uid, roll, name in [("s1", "1", "Asha"), ("s2", "2", "Bilal"), ("s10", "10", "Chen")]:
        repo.add(
            StudentProfile(
                uid=uid,
                email=f"{uid}@test.local",
                name=name,
                father=f"Father of {name}",
                course="BTech",
                year="1",
                section="A",
                roll=roll,
            ),
            password="student123",
        )
    return repo


@pytest.fixture
def attendance_repo():
    return FakeAttendanceRepo()


@pytest.fixture
def corrections_repo(attendance_repo):
    return FakeCorrectionsRepo(attendance_repo)


@pytest.fixture
def container(users_repo, catalog_repo, attendance_repo, corrections_repo):
    return wire(
        users_repo=users_repo,
        catalog_repo=catalog_repo,
        attendance_repo=attendance_repo,
        corrections_repo=corrections_repo,
        retries=3,
        stream_poll_seconds=0.01,
    )


@pytest.fixture
def teacher(users_repo):
    return users_repo.get_profile("t1")


@pytest.fixture
def admin(users_repo):
    return users_repo.get_profile("a1")


@pytest.fixture
def student(users_repo):
    return users_repo.get_profile("s1")


@pytest.fixture
def app(container, monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    from presencia.main import create_app

    return create_app(container=container)


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, email, password):
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture
def login_as(client):
    def _login(role: Role):
        email, password = {
            Role.ADMIN: ("admin@test.local", "admin123"),
            Role.TEACHER: ("teacher@test.local", "teacher123"),
            Role.STUDENT: ("s1@test.local", "student123"),
        }[role]
        resp = login(client, email, password)
        assert resp.status_code == 200, resp.get_json()
        return client

    return _login
