import psycopg2
import pytest

from conftest import make_settings
from storefront.infrastructure.memory_repository import InMemoryRepository, MemoryStore
from storefront.scripts.create_admin import prompt_credentials
from storefront.scripts.seed import (
    SEED_SHIPPING_RATES,
    add_products,
    read_products_csv,
    seed_catalog,
    seed_shipping_rates,
)
from storefront.scripts.wait_for_db import wait


def answers(*values):
    it = iter(values)
    return lambda prompt="": next(it)


class TestPromptCredentials:
    def test_valid_input(self):
        email, password, name = prompt_credentials(
            read_input=answers("owner@example.com", ""), read_secret=answers("hunter22", "hunter22"))
        assert (email, password, name) == ("owner@example.com", "hunter22", "owner")

    def test_flags_skip_prompts(self):
        result = prompt_credentials("owner@example.com", "Owner", read_input=answers(),
                                    read_secret=answers("hunter22", "hunter22"))
        assert result == ("owner@example.com", "hunter22", "Owner")

    @pytest.mark.parametrize("email,secrets", [
        ("not-an-email", ("hunter22", "hunter22")),
        ("owner@example.com", ("short", "short")),
        ("owner@example.com", ("hunter22", "hunter23")),
    ])
    def test_invalid_input_exits(self, email, secrets):
        with pytest.raises(SystemExit):
            prompt_credentials(read_input=answers(email, ""), read_secret=answers(*secrets))


class TestSeed:
    def test_seed_is_idempotent(self):
        repo = InMemoryRepository(MemoryStore())
        assert seed_shipping_rates(repo) == len(SEED_SHIPPING_RATES)
        assert seed_catalog(repo) == 4
        assert seed_shipping_rates(repo) == 0
        assert seed_catalog(repo) == 0
        rates = repo.list_active_rates()
        assert [r.display_order for r in rates] == list(range(1, 8))
        assert all(p.stock_quantity == 100 and p.in_stock for p in repo.list_products())

    def test_products_from_csv(self, tmp_path):
        path = tmp_path / "products.csv"
        path.write_text(
            "name,category,price_cents,stock_quantity,weight_grams\n"
            "Pipette Tips 200uL,consumables,1299,0,\n",
            encoding="utf-8",
        )
        rows = read_products_csv(path)
        assert rows == [{"name": "Pipette Tips 200uL", "category": "consumables", "price_cents": 1299,
                         "stock_quantity": 0}]
        repo = InMemoryRepository(MemoryStore())
        assert add_products(repo, rows) == 1
        [product] = repo.list_products()
        assert product.in_stock is False


class TestWaitForDb:
    def test_retries_until_ready(self):
        attempts = []
        sleeps = []

        class Conn:
            def close(self):
                pass

        def connect(**kwargs):
            attempts.append(kwargs)
            if len(attempts) < 3:
                raise psycopg2.OperationalError("connection refused")
            return Conn()

        settings = make_settings(POSTGRES_HOST="db", POSTGRES_DB="shop")
        assert wait(settings, delay=0.5, connect=connect, sleep=sleeps.append) == 3
        assert sleeps == [0.5, 0.5]
        assert attempts[0]["host"] == "db" and attempts[0]["dbname"] == "shop"

    def test_gives_up(self):
        def connect(**kwargs):
            raise psycopg2.OperationalError("connection refused")

        with pytest.raises(SystemExit):
            wait(make_settings(), max_attempts=2, connect=connect, sleep=lambda s: None)
