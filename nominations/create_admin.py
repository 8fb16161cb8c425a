"""
Admin bootstrap script.

Creates the first administrator (idempotent). Administrators skip the
registration workflow: they are created verified, approved and active.

Usage:
    python -m nominations.create_admin --email admin@example.org
"""

import argparse
import getpass
import logging

from psycopg_pool import ConnectionPool

from nominations.adapters.repository.postgres import PostgresUserRepository, run_migrations
from nominations.config.settings import get_settings
from nominations.domain.credentials import BcryptPasswordPolicy
from nominations.domain.models import User, UserRole
from nominations.domain.ports import PasswordPolicy, UserRepository


def create_admin(
    repository: UserRepository,
    policy: PasswordPolicy,
    email: str,
    password: str,
    name_first: str = "Admin",
    name_last: str = "User",
) -> tuple[User, bool]:
    """
    Create an active administrator unless the email is already taken.

    Returns:
        (user, created) - created is False when the email already existed

    Raises:
        SystemExit: The password fails the password policy
    """
    existing = repository.find_by_email(email)
    if existing is not None:
        return existing, False

    reason = policy.validate(password)
    if reason is not None:
        raise SystemExit(f"Invalid password: {reason}")

    user = repository.create(
        {
            "email": email,
            "password": policy.hash(password),
            "name_first": name_first,
            "name_last": name_last,
        }
    )
    user.role = UserRole.ADMIN
    user.email_verified = True
    user.approved = True
    user.active = True
    repository.save(user)
    return user, True


def _prompt_password() -> str:
    password = getpass.getpass("Password: ")
    if not password:
        raise SystemExit("Password is required.")
    confirm = getpass.getpass("Confirm password: ")
    if password != confirm:
        raise SystemExit("Passwords do not match.")
    return password


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the first admin user (idempotent).")
    parser.add_argument("--email", required=True, help="Admin email (matched exactly)")
    parser.add_argument("--password", help="Admin password (omit to be prompted securely)")
    parser.add_argument("--name-first", default="Admin")
    parser.add_argument("--name-last", default="User")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = _parse_args(argv)
    settings = get_settings()
    password = args.password or _prompt_password()

    with ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=1, open=True) as pool:
        run_migrations(pool)
        user, created = create_admin(
            PostgresUserRepository(pool),
            BcryptPasswordPolicy(min_length=settings.password_min_length, cost=settings.bcrypt_cost),
            email=args.email.strip(),
            password=password,
            name_first=args.name_first,
            name_last=args.name_last,
        )

    if created:
        print(f"Created admin: id={user.id} email={user.email}")
    else:
        print(f"User already exists: id={user.id} email={user.email} role={user.role.value}")


if __name__ == "__main__":
    main()
