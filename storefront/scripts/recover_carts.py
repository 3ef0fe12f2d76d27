"""Run one abandoned-cart recovery pass and print the counts.

Schedule this from cron (or run the API with
ABANDONED_CART_SCAN_INTERVAL_SECONDS set) but never both: overlapping runs
can email the same cart twice.
"""
import json
import sys

from storefront.application.abandoned_carts import AbandonedCartService
from storefront.application.notifier import Notifier
from storefront.core.logging_config import setup_logging
from storefront.core_settings import get_settings
from storefront.infrastructure.storage import Storage


def main() -> int:
    settings = get_settings()
    setup_logging(f"{settings.SERVICE_NAME}-recovery", settings.LOG_LEVEL, version=settings.SERVICE_VERSION)
    storage = Storage.from_settings(settings)
    try:
        with storage.repository() as repo:
            result = AbandonedCartService(
                repo,
                Notifier.from_settings(settings),
                age_hours=settings.ABANDONED_CART_AGE_HOURS,
                send_delay=settings.RECOVERY_EMAIL_DELAY_SECONDS,
            ).run_recovery()
    finally:
        storage.close()
    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
