"""
Startup dependency checks for the Akshara backend.

Validates configuration and the database before the application starts
serving requests. Fails fast with an actionable message when a requirement
is not met.
"""

import sys
import time
from typing import Optional

from sqlalchemy import text

from akshara.config import settings
from akshara.db.connection import SessionLocal

DEFAULT_JWT_SECRET = "your-secret-key"


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\n❌ STARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\n💡 Hint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def check_required_environment() -> None:
    """
    Validate settings that must not keep their development defaults.

    Raises:
        StartupCheckError: If a required value is missing or insecure
    """
    if not settings.jwt_secret:
        raise StartupCheckError(
            "JWT_SECRET is empty", "Set JWT_SECRET in your .env file"
        )
    if settings.environment == "production" and settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise StartupCheckError(
            "JWT_SECRET still has its development default in production",
            "Generate one with: openssl rand -hex 32",
        )
    if settings.assistant_min_delay > settings.assistant_max_delay:
        raise StartupCheckError(
            "ASSISTANT_MIN_DELAY is greater than ASSISTANT_MAX_DELAY",
            "Lower ASSISTANT_MIN_DELAY or raise ASSISTANT_MAX_DELAY",
        )


def check_database_connection() -> None:
    """
    Verify the database is accessible and responsive.

    Raises:
        StartupCheckError: If the database connection fails
    """
    try:
        with SessionLocal() as session:
            result = session.execute(text("SELECT 1")).scalar()
            if result != 1:
                raise StartupCheckError(
                    "Database query returned unexpected result",
                    "Database may be corrupted or misconfigured",
                )
    except StartupCheckError:
        raise
    except Exception as e:
        error_str = str(e).lower()

        if "could not connect" in error_str or "connection refused" in error_str:
            hint = (
                "PostgreSQL is not running.\n"
                "  - Start it locally or point DATABASE_URL at a reachable server"
            )
        elif "authentication failed" in error_str or "password" in error_str:
            hint = (
                "Database authentication failed.\n"
                "  - Check credentials in .env file\n"
                f"  - Current user: {settings.postgres_user}"
            )
        elif "database" in error_str and "does not exist" in error_str:
            hint = f"Create it first: createdb {settings.postgres_db}"
        else:
            hint = f"Check your database configuration in .env\nError: {str(e)}"

        raise StartupCheckError(
            f"Cannot connect to database\n"
            f"Host: {settings.postgres_host}:{settings.postgres_port}\n"
            f"Database: {settings.postgres_db}",
            hint,
        ) from e


def run_all_startup_checks() -> None:
    """
    Execute all startup dependency checks in order.

    Raises:
        SystemExit: After printing the first failed check
    """
    checks = [
        ("Environment Variables", check_required_environment),
        ("Database Connection", check_database_connection),
    ]

    print("\n" + "=" * 70)
    print("🚀 Starting Akshara Backend - Running Startup Checks")
    print("=" * 70 + "\n")

    startup_start = time.time()
    for check_name, check_func in checks:
        print(f"  Checking {check_name}...", end=" ", flush=True)
        check_start = time.time()
        try:
            check_func()
        except StartupCheckError as e:
            print(f"❌ FAIL ({(time.time() - check_start) * 1000:.1f}ms)")
            print(str(e))
            sys.exit(1)
        print(f"✅ PASS ({(time.time() - check_start) * 1000:.1f}ms)")

    total_ms = (time.time() - startup_start) * 1000
    print("\n" + "=" * 70)
    print(f"✅ All startup checks passed - Server is ready ({total_ms:.1f}ms)")
    print("=" * 70 + "\n")
