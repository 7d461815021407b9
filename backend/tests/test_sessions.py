"""Tests for server-side sessions and password-reset tokens."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import PASSWORD, make_user
from practicum.clock import ensure_utc, utcnow
from practicum.errors import AuthError, ValidationError
from practicum.middleware.auth import verify_password
from practicum.models.session import UserSession
from practicum.models.user import User
from practicum.services import session_service

STUDENT = "65123456789"
UA = "Mozilla/5.0 (X11; Linux x86_64)"
IP = "10.0.0.5"


def open_session(db, remember_me=False, user_id=STUDENT, **user_fields):
    user = make_user(db, user_id, password=PASSWORD, **user_fields)
    session, token = session_service.create_session(db, user, remember_me=remember_me, user_agent=UA, ip_address=IP)
    return user, session, token


class TestAuthenticate:
    def test_by_username_or_id(self, db):
        make_user(db, "T12345678901", role="teacher", password=PASSWORD, username="somsri")
        assert session_service.authenticate(db, "somsri", PASSWORD).id == "T12345678901"
        assert session_service.authenticate(db, "T12345678901", PASSWORD).id == "T12345678901"

    def test_wrong_password(self, db):
        make_user(db, STUDENT, password=PASSWORD)
        with pytest.raises(AuthError):
            session_service.authenticate(db, STUDENT, "nope")

    def test_disabled_account(self, db):
        make_user(db, STUDENT, password=PASSWORD, is_active=False)
        with pytest.raises(AuthError):
            session_service.authenticate(db, STUDENT, PASSWORD)


class TestResolveSession:
    """Lifetime, idle timeout and fingerprint drift."""

    def test_valid_session_touches_activity(self, db):
        _, session, token = open_session(db)
        later = ensure_utc(session.created_at) + timedelta(minutes=30)
        ctx = session_service.resolve_session(db, token, UA, IP, now=later)
        assert ctx.user_id == STUDENT
        assert ctx.role == "student"
        db.expire_all()
        assert ensure_utc(db.get(UserSession, session.id).last_activity) == later

    def test_role_inferred_when_missing(self, db):
        _, session, token = open_session(db, user_id="A12345678901", role=None)
        assert session.role == "admin"
        assert session_service.resolve_session(db, token, UA, IP).role == "admin"

    def test_missing_token(self, db):
        with pytest.raises(AuthError):
            session_service.resolve_session(db, None)

    def test_tampered_token(self, db):
        _, _, token = open_session(db)
        with pytest.raises(AuthError):
            session_service.resolve_session(db, token[:-2] + "xx", UA, IP)

    def test_expired(self, db):
        _, session, token = open_session(db)
        later = ensure_utc(session.created_at) + timedelta(hours=49)
        with pytest.raises(AuthError):
            session_service.resolve_session(db, token, UA, IP, now=later)
        db.expire_all()
        assert db.get(UserSession, session.id).revoked is True

    def test_remember_me_lasts_longer(self, db):
        _, session, token = open_session(db, remember_me=True)
        created = ensure_utc(session.created_at)
        assert ensure_utc(session.expires_at) - created == timedelta(days=15)
        # Still alive after two days of regular use
        for hours in range(1, 50):
            session_service.resolve_session(db, token, UA, IP, now=created + timedelta(hours=hours))

    def test_idle_timeout(self, db):
        _, session, token = open_session(db)
        later = ensure_utc(session.created_at) + timedelta(minutes=121)
        with pytest.raises(AuthError):
            session_service.resolve_session(db, token, UA, IP, now=later)

    def test_drift_revokes_on_third_alert(self, db):
        _, session, token = open_session(db)
        session_service.resolve_session(db, token, "curl/8.0", IP)
        ctx = session_service.resolve_session(db, token, UA, "192.168.1.9")
        assert ctx.security_alerts == 2
        with pytest.raises(AuthError):
            session_service.resolve_session(db, token, "curl/8.0", "192.168.1.9")
        db.expire_all()
        assert db.get(UserSession, session.id).revoked is True

    def test_end_session(self, db):
        _, session, token = open_session(db)
        session_service.end_session(db, session.id)
        with pytest.raises(AuthError):
            session_service.resolve_session(db, token, UA, IP)

    def test_deactivated_user(self, db):
        user, _, token = open_session(db)
        user.is_active = False
        db.commit()
        with pytest.raises(AuthError):
            session_service.resolve_session(db, token, UA, IP)


class TestPasswordReset:
    EMAIL = "student@nsru.ac.th"

    def test_single_use(self, db):
        user, session, _ = open_session(db, email=self.EMAIL)
        token = session_service.request_password_reset(db, self.EMAIL)
        assert session_service.check_reset_token(db, token).email == self.EMAIL

        session_service.reset_password(db, token, "brand-new-pass")
        db.expire_all()
        assert verify_password("brand-new-pass", db.get(User, STUDENT).password_hash)
        assert db.get(UserSession, session.id).revoked is True

        with pytest.raises(ValidationError):
            session_service.reset_password(db, token, "another-pass")

    def test_expired_token(self, db):
        open_session(db, email=self.EMAIL)
        token = session_service.request_password_reset(db, self.EMAIL)
        later = utcnow() + timedelta(minutes=31)
        with pytest.raises(ValidationError):
            session_service.check_reset_token(db, token, now=later)

    def test_unknown_address(self, db):
        assert session_service.request_password_reset(db, "nobody@nsru.ac.th") is None

    def test_domain_required(self, db):
        with pytest.raises(ValidationError):
            session_service.request_password_reset(db, "student@gmail.com")

    def test_short_password(self, db):
        open_session(db, email=self.EMAIL)
        token = session_service.request_password_reset(db, self.EMAIL)
        with pytest.raises(ValidationError):
            session_service.reset_password(db, token, "123")


class TestStudyYearRefresh:
    def test_login_updates_stored_year(self, db):
        user = make_user(db, "66123456789", password=PASSWORD, year=1)
        now = datetime(2025, 8, 1, tzinfo=timezone.utc)
        session_service.create_session(db, user, now=now)
        db.expire_all()
        assert db.get(User, "66123456789").year == 3
