"""Create (or promote) an admin account.

Usage:
    storefront-create-admin
    storefront-create-admin --email owner@example.com --name "Shop Owner"
"""
import argparse
import getpass
import sys

from storefront.application.auth import AuthService, MIN_PASSWORD_LENGTH
from storefront.core_settings import get_settings
from storefront.errors import StorefrontError
from storefront.infrastructure.storage import Storage


def prompt_credentials(email=None, name=None, read_input=input, read_secret=getpass.getpass):
    email = email or read_input("Enter admin email: ").strip()
    if not email or "@" not in email:
        raise SystemExit("Invalid email address")

    password = read_secret(f"Enter password (min {MIN_PASSWORD_LENGTH} characters): ")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise SystemExit(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if read_secret("Confirm password: ") != password:
        raise SystemExit("Passwords do not match")

    if name is None:
        name = read_input("Enter admin name (optional): ").strip() or email.split("@")[0]
    return email, password, name


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create a storefront admin account")
    parser.add_argument("--email")
    parser.add_argument("--name")
    args = parser.parse_args(argv)

    settings = get_settings()
    email, password, name = prompt_credentials(args.email, args.name)

    storage = Storage.from_settings(settings)
    storage.init()
    try:
        with storage.repository() as repo:
            user = AuthService(repo, settings).create_admin(email, password, name)
    except StorefrontError as exc:
        print(f"Failed to create admin account: {exc.message}", file=sys.stderr)
        return 1
    finally:
        storage.close()

    print("Admin account ready.")
    print(f"  Email:   {user.email}")
    print(f"  Name:    {user.name}")
    print(f"  User ID: {user.id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
