"""
Local launcher: prepares .env, creates the account table, reports which mail
channels will carry OTP emails, then serves main:app with uvicorn.

    python start.py [--port 8000] [--no-reload] [--skip-setup] [--setup-only]
"""
import argparse
import logging
import os
from pathlib import Path
from typing import List

import uvicorn
from dotenv import load_dotenv

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("kavyaserve.start")

DEFAULT_ENV = (
    "SECRET_KEY=change-me\n"
    "DATABASE_URL=sqlite:///./app.db\n"
    "SKIP_EMAIL=true\n"
    "SENDGRID_API_KEY=\n"
    "SMTP_HOST=\n"
    "SMTP_USERNAME=\n"
    "SMTP_PASSWORD=\n"
    "EMAIL_FROM=no-reply@example.com\n"
)


def write_env_file(env_path: Path = Path(".env"), example_path: Path = Path(".env.example")) -> bool:
    """Create .env from .env.example (or a bypass-mode default). Returns False if one already exists."""
    if env_path.exists():
        return False
    template = example_path.read_text() if example_path.exists() else DEFAULT_ENV
    env_path.write_text(template)
    logger.info("Created %s from %s; fill in SECRET_KEY and a mail provider",
                env_path, example_path if example_path.exists() else "defaults")
    return True


def check_mail_config(config) -> List[str]:
    """Log how OTP emails will go out and return the configured channel names, in dispatch order."""
    from app.utils.email import build_channels

    live = [channel.name for channel in build_channels(config) if channel.is_configured()]
    if config.SKIP_EMAIL:
        logger.info("SKIP_EMAIL is on: signup and resend return the OTP in the response body")
    elif live:
        logger.info("OTP email channels: %s", " -> ".join(live))
    else:
        logger.warning(
            "No mail channel configured and SKIP_EMAIL is off: every signup will answer "
            "'Signup failed (no-mailer-config)'. Set SENDGRID_API_KEY or "
            "SMTP_HOST/SMTP_USERNAME/SMTP_PASSWORD, or SKIP_EMAIL=true for local use"
        )
    return live


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the OTP auth API locally")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 8000)))
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload on code changes")
    parser.add_argument("--skip-setup", action="store_true", help="Do not write .env or create tables")
    parser.add_argument("--setup-only", action="store_true", help="Prepare .env and tables, then exit")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if not args.skip_setup:
        write_env_file()
    # Settings are read at import time, so .env must be loaded first
    load_dotenv()

    from app.core.config import settings
    import manage

    if not args.skip_setup:
        manage.create_tables()
        logger.info("Account table ready (%s)", settings.DATABASE_URL)

    check_mail_config(settings)

    if args.setup_only:
        return 0

    uvicorn.run("main:app", host="0.0.0.0", port=args.port, reload=not args.no_reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
