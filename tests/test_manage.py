from unittest.mock import AsyncMock, MagicMock, patch

import manage
from app.core.security import verify_password
from app.models.account import Account

ARGS = ["--name", "Ann", "--phone", "555", "--password", "secret"]


def get_account(db_session, email):
    db_session.expire_all()
    return db_session.query(Account).filter(Account.email == email).first()


def test_create_user_is_verified(db_session):
    assert manage.main(["create-user", "ann@x.com", *ARGS]) == manage.EXIT_OK

    account = get_account(db_session, "ann@x.com")
    assert account.is_verified is True
    assert account.otp_code is None
    assert verify_password("secret", account.hashed_password)


def test_create_user_twice_fails(db_session):
    manage.main(["create-user", "ann@x.com", *ARGS])
    assert manage.main(["create-user", "ann@x.com", *ARGS]) == manage.EXIT_FAILED


def test_create_unverified_user_has_pending_otp(db_session):
    assert manage.main(["create-unverified-user", "ann@x.com", *ARGS]) == manage.EXIT_OK

    account = get_account(db_session, "ann@x.com")
    assert account.is_verified is False
    assert account.has_pending_otp


def test_unverify(db_session):
    manage.main(["create-user", "ann@x.com", *ARGS])
    assert manage.main(["unverify", "ann@x.com"]) == manage.EXIT_OK
    assert get_account(db_session, "ann@x.com").is_verified is False


def test_unverify_missing_account(db_session):
    assert manage.main(["unverify", "ghost@x.com"]) == manage.EXIT_MISSING


def test_resend_otp_dispatches(db_session):
    manage.main(["create-unverified-user", "ann@x.com", *ARGS])
    dispatcher = MagicMock()
    dispatcher.send_otp = AsyncMock(return_value="smtp")

    with patch("manage.get_dispatcher", return_value=dispatcher):
        assert manage.main(["resend-otp", "ann@x.com"]) == manage.EXIT_OK

    account = get_account(db_session, "ann@x.com")
    dispatcher.send_otp.assert_awaited_once_with("ann@x.com", "Ann", account.otp_code, 10)


def test_resend_otp_missing_account(db_session):
    assert manage.main(["resend-otp", "ghost@x.com"]) == manage.EXIT_MISSING


def test_resend_otp_without_mailer_fails(db_session):
    manage.main(["create-unverified-user", "ann@x.com", *ARGS])
    with patch("manage.get_dispatcher", return_value=manage.get_dispatcher.__wrapped__()):
        assert manage.main(["resend-otp", "ann@x.com"]) == manage.EXIT_FAILED
