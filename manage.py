"""
Account maintenance commands.

    python manage.py create-user user@example.com --name Ann --phone 555 --password secret
    python manage.py create-unverified-user user@example.com --name Ann --phone 555 --password secret
    python manage.py unverify user@example.com
    python manage.py resend-otp user@example.com
"""
import argparse
import asyncio
import logging
import sys

from app.core.security import get_password_hash
from app.db.base import Base, SessionLocal, engine
from app.models.account import Account
from app.services.auth import AuthService
from app.services.notifications import get_dispatcher
from app.services.otp import OtpGenerator
from app.services.store import AccountStore
from app.utils.errors import AuthError, NotFoundError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger("kavyaserve.manage")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_MISSING = 2


async def create_user(store: AccountStore, args) -> int:
    if await store.find_by_email(args.email):
        logger.error("Account already exists: %s", args.email)
        return EXIT_FAILED
    account = await store.create_account(
        args.email, args.name, args.phone, get_password_hash(args.password), verified=True
    )
    logger.info("Created verified account %s (id=%s)", account.email, account.id)
    return EXIT_OK


async def create_unverified_user(store: AccountStore, args) -> int:
    existing = await store.find_by_email(args.email)
    if existing and existing.is_verified:
        logger.error("Account already verified: %s", args.email)
        return EXIT_FAILED
    otp, expires_at = OtpGenerator().generate()
    account = await store.upsert_for_signup(
        args.email, args.name, args.phone, get_password_hash(args.password), otp, expires_at
    )
    logger.info("Unverified account %s ready, OTP %s valid until %s UTC", account.email, otp, expires_at)
    return EXIT_OK


async def unverify(store: AccountStore, args) -> int:
    account = await store.find_by_email(args.email)
    if not account:
        logger.error("User not found: %s", args.email)
        return EXIT_MISSING
    await store.mark_unverified(account)
    logger.info("Marked %s as unverified", account.email)
    return EXIT_OK


async def resend_otp(store: AccountStore, args) -> int:
    service = AuthService(store, get_dispatcher())
    result = await service.resend_otp(args.email)
    logger.info(result["message"])
    if "otp" in result:
        logger.info("OTP for %s: %s", args.email, result["otp"])
    return EXIT_OK


COMMANDS = {
    "create-user": create_user,
    "create-unverified-user": create_unverified_user,
    "unverify": unverify,
    "resend-otp": resend_otp,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Account maintenance commands")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("create-user", "create-unverified-user"):
        p = sub.add_parser(name)
        p.add_argument("email")
        p.add_argument("--name", required=True)
        p.add_argument("--phone", required=True)
        p.add_argument("--password", required=True)

    for name in ("unverify", "resend-otp"):
        p = sub.add_parser(name)
        p.add_argument("email")

    return parser


async def run(args) -> int:
    db = SessionLocal()
    try:
        return await COMMANDS[args.command](AccountStore(db), args)
    except NotFoundError as e:
        logger.error("%s: %s", e.message, args.email)
        return EXIT_MISSING
    except AuthError as e:
        logger.error("%s%s", e.message, f" ({e.error})" if e.error else "")
        return EXIT_FAILED
    finally:
        db.close()


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    create_tables()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
