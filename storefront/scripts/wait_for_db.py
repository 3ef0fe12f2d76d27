"""Block until Postgres accepts connections; used as a container entrypoint step."""
import sys
import time

import psycopg2

from storefront.core_settings import Settings, get_settings


def wait(settings: Settings, max_attempts: int = 30, delay: float = 1.0, connect=psycopg2.connect,
         sleep=time.sleep) -> int:
    for attempt in range(1, max_attempts + 1):
        try:
            conn = connect(
                dbname=settings.POSTGRES_DB,
                user=settings.POSTGRES_USER,
                password=settings.POSTGRES_PASSWORD,
                host=settings.POSTGRES_HOST,
                port=settings.POSTGRES_PORT,
            )
            conn.close()
            print(f"Database ready after {attempt} attempt(s).")
            return attempt
        except psycopg2.OperationalError as e:
            print(f"DB not ready (attempt {attempt}): {e}")
            sleep(delay)
    raise SystemExit("Database not ready after max attempts")


def main() -> int:
    settings = get_settings()
    url = settings.DATABASE_URL
    if settings.STORAGE_BACKEND.lower() != "sql" or (url and not url.startswith("postgresql")):
        print("Not using Postgres; nothing to wait for.")
        return 0
    wait(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
