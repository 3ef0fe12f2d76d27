"""Both storage backends must behave the same for the stock ledger, orders and carts."""
from datetime import datetime, timedelta

import pytest

from storefront.application.inventory import InventoryService
from storefront.domain.models import AbandonedCart, Order, OrderItem, Product, RecentlyViewedItem
from storefront.errors import DuplicateOrderNumberError
from storefront.infrastructure.db import Database
from storefront.infrastructure.memory_repository import InMemoryRepository, MemoryStore
from storefront.infrastructure.storage import Storage


@pytest.fixture(params=["memory", "sql"])
def repo(request):
    if request.param == "memory":
        yield InMemoryRepository(MemoryStore())
        return
    storage = Storage("sql", database=Database("sqlite://"))
    storage.init()
    with storage.repository() as r:
        yield r
    storage.close()


def add_product(repo, stock=5, threshold=10, name="Beaker 250ml"):
    with repo.transaction():
        return repo.add_product(Product(
            name=name, price_cents=1500, stock_quantity=stock, low_stock_threshold=threshold,
            in_stock=stock > 0,
        ))


def make_order(number, product, quantity=1):
    return Order(
        order_number=number,
        customer_name="Ada Buyer",
        customer_email="buyer@example.com",
        shipping_address="1 Main St",
        shipping_city="Springfield",
        shipping_state="IL",
        shipping_zip="62701",
        shipping_carrier="USPS",
        shipping_service="Priority Mail",
        payment_method="card",
        subtotal=product.price_cents * quantity,
        shipping_cost=900,
        total=product.price_cents * quantity + 900,
        items=[OrderItem(product_id=product.id, product_name=product.name, quantity=quantity,
                         price_per_unit=product.price_cents)],
    )


class TestStockLedger:
    def test_decrement_clamps_at_zero(self, repo):
        product = add_product(repo, stock=5)
        with repo.transaction():
            change = repo.decrement_stock(product.id, 10)
        assert (change.previous, change.new) == (5, 0)
        stored = repo.get_product(product.id)
        assert stored.stock_quantity == 0
        assert stored.in_stock is False

    def test_decrement_keeps_in_stock_while_positive(self, repo):
        product = add_product(repo, stock=5)
        with repo.transaction():
            repo.decrement_stock(product.id, 2)
        stored = repo.get_product(product.id)
        assert stored.stock_quantity == 3
        assert stored.in_stock is True

    def test_decrement_unknown_product(self, repo):
        assert repo.decrement_stock(999, 1) is None

    def test_threshold_crossing_reported_once(self, repo):
        product = add_product(repo, stock=15, threshold=10)
        inventory = InventoryService(repo)
        first = inventory.decrement_stock(product.id, 7, "Order A")
        second = inventory.decrement_stock(product.id, 3, "Order B")
        assert first.crossed_threshold
        assert (second.previous, second.new) == (8, 5)
        assert not second.crossed_threshold

    def test_decrement_writes_inventory_log(self, repo):
        product = add_product(repo, stock=5)
        InventoryService(repo).decrement_stock(product.id, 2, "Order SRTEST")
        [log] = repo.list_inventory_logs(product.id)
        assert (log.previous_quantity, log.new_quantity, log.change_reason) == (5, 3, "Order SRTEST")

    def test_low_stock_sorted_by_quantity(self, repo):
        add_product(repo, stock=50, name="Plenty")
        add_product(repo, stock=7, name="Seven")
        add_product(repo, stock=2, name="Two")
        assert [p.name for p in repo.low_stock_products()] == ["Two", "Seven"]


class TestTransactions:
    def test_failed_transaction_leaves_nothing_behind(self, repo):
        product = add_product(repo, stock=5)
        with pytest.raises(RuntimeError):
            with repo.transaction():
                repo.decrement_stock(product.id, 3)
                repo.add_product(Product(name="Half-written", price_cents=1))
                raise RuntimeError("boom")
        assert repo.get_product(product.id).stock_quantity == 5
        assert [p.name for p in repo.list_products()] == ["Beaker 250ml"]

    def test_nested_transaction_joins_outer(self, repo):
        product = add_product(repo, stock=5)
        with pytest.raises(RuntimeError):
            with repo.transaction():
                with repo.transaction():
                    repo.decrement_stock(product.id, 1)
                raise RuntimeError("outer failed after inner finished")
        assert repo.get_product(product.id).stock_quantity == 5

    def test_duplicate_order_number_rejected(self, repo):
        product = add_product(repo)
        with repo.transaction():
            repo.add_order(make_order("SRDUPLICATE", product))
        with pytest.raises(DuplicateOrderNumberError):
            with repo.transaction():
                repo.add_order(make_order("SRDUPLICATE", product))
        assert len(repo.list_orders()) == 1

    def test_order_items_persisted(self, repo):
        product = add_product(repo)
        with repo.transaction():
            repo.add_order(make_order("SRITEMS", product, quantity=2))
        order = repo.get_order_by_number("SRITEMS")
        assert [(i.product_name, i.quantity) for i in order.items] == [("Beaker 250ml", 2)]
        assert repo.product_has_orders(product.id)


class TestCarts:
    def add_cart(self, repo, email="shopper@example.com", age_hours=30):
        with repo.transaction():
            return repo.add_cart(AbandonedCart(
                customer_email=email, cart_data="[]", total_amount=4900,
                created_at=datetime.utcnow() - timedelta(hours=age_hours),
            ))

    def test_recovery_selection(self, repo):
        old = self.add_cart(repo, "old@example.com", age_hours=30)
        self.add_cart(repo, "fresh@example.com", age_hours=1)
        cutoff = datetime.utcnow() - timedelta(hours=24)
        assert [c.id for c in repo.carts_for_recovery(cutoff)] == [old.id]

    def test_mark_recovery_sent_excludes_cart(self, repo):
        cart = self.add_cart(repo)
        with repo.transaction():
            assert repo.mark_recovery_sent(cart.id, datetime.utcnow())
        assert repo.carts_for_recovery(datetime.utcnow()) == []

    def test_converted_cart_not_marked(self, repo):
        cart = self.add_cart(repo)
        with repo.transaction():
            assert repo.mark_converted("shopper@example.com", "SRDONE") == 1
            assert repo.mark_recovery_sent(cart.id, datetime.utcnow()) is False
        assert repo.carts_for_recovery(datetime.utcnow()) == []
        assert repo.get_open_cart("shopper@example.com") is None


class TestRecentlyViewed:
    START = datetime(2026, 1, 1, 12, 0)

    def view(self, repo, product, minutes, session_id="session-a"):
        with repo.transaction():
            repo.add_product_view(RecentlyViewedItem(
                session_id=session_id, product_id=product.id, viewed_at=self.START + timedelta(minutes=minutes),
            ))

    def test_distinct_products_most_recent_first(self, repo):
        flask, beaker, tips = (add_product(repo, name=n) for n in ("Flask", "Beaker", "Tips"))
        self.view(repo, flask, 0)
        self.view(repo, beaker, 1)
        self.view(repo, flask, 2)
        self.view(repo, tips, 3)
        self.view(repo, beaker, 4, session_id="session-b")
        assert repo.recently_viewed_product_ids("session-a", 6) == [tips.id, flask.id, beaker.id]
        assert repo.recently_viewed_product_ids("session-a", 2) == [tips.id, flask.id]
        assert repo.recently_viewed_product_ids("session-b", 6) == [beaker.id]
        assert repo.recently_viewed_product_ids("unknown", 6) == []

    def test_delete_views_before_cutoff(self, repo):
        product = add_product(repo)
        self.view(repo, product, 0)
        self.view(repo, product, 60, session_id="session-b")
        with repo.transaction():
            assert repo.delete_views_before(self.START + timedelta(minutes=30)) == 1
        assert repo.recently_viewed_product_ids("session-a", 6) == []
        assert repo.recently_viewed_product_ids("session-b", 6) == [product.id]

    def test_deleting_product_drops_its_views(self, repo):
        product = add_product(repo)
        self.view(repo, product, 0)
        with repo.transaction():
            assert repo.delete_product(product.id)
        assert repo.recently_viewed_product_ids("session-a", 6) == []
