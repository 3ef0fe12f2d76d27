import json
import time
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from storefront.core.logging_config import get_logger
from storefront.domain.models import AbandonedCart
from storefront.domain.repository import Repository
from .notifier import Notifier
from .schemas import CartLine

logger = get_logger(__name__)


class AbandonedCartService:
    """Tracks started checkouts and emails customers who did not finish.

    A cart is open until it is converted by an order for the same email.
    Open carts older than ``age_hours`` get exactly one recovery email.
    """

    def __init__(
        self,
        repo: Repository,
        notifier: Optional[Notifier] = None,
        age_hours: int = 24,
        send_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repo = repo
        self.notifier = notifier
        self.age_hours = age_hours
        self.send_delay = send_delay
        self.sleep = sleep

    def record_checkout_started(
        self, email: str, name: Optional[str], items: Sequence[CartLine], total_amount: int
    ) -> AbandonedCart:
        cart_data = json.dumps([item.model_dump() for item in items])
        with self.repo.transaction():
            cart = self.repo.get_open_cart(email)
            if cart is not None:
                self.repo.update_cart(cart.id, {
                    "customer_name": name,
                    "cart_data": cart_data,
                    "total_amount": total_amount,
                })
            else:
                cart = self.repo.add_cart(AbandonedCart(
                    customer_email=email,
                    customer_name=name,
                    cart_data=cart_data,
                    total_amount=total_amount,
                ))
        return cart

    def get_open_cart(self, email: str) -> Optional[AbandonedCart]:
        return self.repo.get_open_cart(email)

    def find_carts_for_recovery(self, now: Optional[datetime] = None) -> list[AbandonedCart]:
        cutoff = (now or datetime.utcnow()) - timedelta(hours=self.age_hours)
        return self.repo.carts_for_recovery(cutoff)

    def mark_recovery_sent(self, cart_id: int, now: Optional[datetime] = None) -> bool:
        with self.repo.transaction():
            return self.repo.mark_recovery_sent(cart_id, now or datetime.utcnow())

    def mark_converted(self, email: str, order_number: str) -> int:
        with self.repo.transaction():
            return self.repo.mark_converted(email, order_number)

    def run_recovery(self, now: Optional[datetime] = None) -> dict:
        """Email every cart due for recovery; failures wait for the next run.

        Meant to run as a single scheduler: two overlapping runs can both
        select the same cart before either marks it sent.
        """
        carts = self.find_carts_for_recovery(now)
        if not carts:
            logger.info("No abandoned carts due for recovery")
            return {"processed": 0, "sent": 0, "failed": 0}

        logger.info(
            "Starting abandoned cart recovery",
            extra={"extra_fields": {"carts": len(carts)}},
        )
        sent = failed = 0
        for index, cart in enumerate(carts):
            if index and self.send_delay:
                self.sleep(self.send_delay)
            delivered = self.notifier is not None and self.notifier.send_cart_recovery(cart)
            if delivered and self.mark_recovery_sent(cart.id):
                sent += 1
            elif delivered:
                # converted between selection and send; nothing to record
                logger.info(
                    "Cart converted during recovery run",
                    extra={"extra_fields": {"cart_id": cart.id}},
                )
            else:
                failed += 1

        logger.info(
            "Abandoned cart recovery finished",
            extra={"extra_fields": {"processed": len(carts), "sent": sent, "failed": failed}},
        )
        return {"processed": len(carts), "sent": sent, "failed": failed}
