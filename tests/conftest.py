import json
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_configure(config):
    """Select the config overlay before the domain module is first imported."""
    os.environ["PROTEAN_ENV"] = config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    from storefront.catalog import reset_catalog
    from storefront.notifications.channel import reset_channels
    from storefront.payment.gateway import reset_gateway
    from storefront.shipment.carrier import reset_carrier

    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()

    reset_catalog()
    reset_gateway()
    reset_carrier()
    reset_channels()


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def catalog():
    from storefront.catalog import set_catalog
    from storefront.catalog.memory_adapter import InMemoryCatalog

    instance = InMemoryCatalog()
    set_catalog(instance)
    return instance


@pytest.fixture()
def gateway():
    from storefront.payment.gateway import set_gateway
    from storefront.payment.gateway.fake_adapter import FakeGateway

    instance = FakeGateway()
    set_gateway(instance)
    return instance


@pytest.fixture()
def carrier():
    from storefront.shipment.carrier import set_carrier
    from storefront.shipment.carrier.fake_adapter import FakeCarrier

    instance = FakeCarrier()
    set_carrier(instance)
    return instance


@pytest.fixture()
def email():
    from storefront.notifications.channel import EMAIL, set_channel
    from storefront.notifications.channel.fake_email import FakeEmailAdapter

    instance = FakeEmailAdapter()
    set_channel(EMAIL, instance)
    return instance


@pytest.fixture()
def sms():
    from storefront.notifications.channel import SMS, set_channel
    from storefront.notifications.channel.fake_sms import FakeSMSAdapter

    instance = FakeSMSAdapter()
    set_channel(SMS, instance)
    return instance


# ---------------------------------------------------------------------------
# Scenario builder
# ---------------------------------------------------------------------------
STORE = "store-001"
WAREHOUSE = "store-002"


class Shop:
    """Seeds catalog, stock, zones and coupons, and drives orders through commands."""

    def __init__(self, catalog):
        self.catalog = catalog

    @staticmethod
    def process(command):
        from protean import current_domain

        return current_domain.process(command, asynchronous=False)

    @staticmethod
    def address(**overrides):
        address = {
            "name": "Ada Buyer",
            "street": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "postal_code": "62701",
            "country": "US",
        }
        address.update(overrides)
        return address

    def product(self, product_id="prod-001", sku="SKU-001", price=25.0, **attributes):
        self.catalog.add_product(product_id, sku=sku, name=f"Product {sku}", price=price, **attributes)
        return product_id

    def stock(self, product_id="prod-001", store_id=STORE, quantity=10, sku="SKU-001", **kwargs):
        from storefront.inventory.provisioning import ProvisionInventory

        return self.process(
            ProvisionInventory(product_id=product_id, store_id=store_id, sku=sku, quantity=quantity, **kwargs)
        )

    def zone(self, name="Domestic", countries=("US",), rates=None, **kwargs):
        from storefront.shipping.management import CreateShippingZone

        rates = rates if rates is not None else [{"min_weight": 0.0, "price": 8.0}]
        for key in ("states", "additional_fees"):
            if key in kwargs:
                kwargs[key] = json.dumps(kwargs[key])
        return self.process(
            CreateShippingZone(name=name, countries=json.dumps(list(countries)), rates=json.dumps(rates), **kwargs)
        )

    def coupon(self, code="SAVE10", coupon_type="percentage", value=10.0, **kwargs):
        from storefront.coupon.management import CreateCoupon

        now = datetime.now(UTC)
        kwargs.setdefault("starts_at", now - timedelta(days=1))
        kwargs.setdefault("ends_at", now + timedelta(days=30))
        for key in ("product_ids", "category_ids"):
            if key in kwargs:
                kwargs[key] = json.dumps(kwargs[key])
        return self.process(CreateCoupon(code=code, coupon_type=coupon_type, value=value, **kwargs))

    def place_order(
        self,
        customer_id="cust-001",
        lines=(("prod-001", STORE, 1),),
        payment_method="credit_card",
        coupon_code=None,
        address=None,
    ):
        from storefront.order.creation import CreateOrder

        items = [{"product_id": p, "store_id": s, "quantity": q} for p, s, q in lines]
        return self.process(
            CreateOrder(
                customer_id=customer_id,
                items=json.dumps(items),
                shipping_address=json.dumps(address or self.address()),
                payment_method=payment_method,
                coupon_code=coupon_code,
            )
        )

    def pay(self, placed):
        from storefront.payment.confirmation import ConfirmPayment

        return self.process(ConfirmPayment(payment_id=placed["payment_id"]))

    def advance(self, order_id, *statuses):
        from storefront.order.fulfillment import UpdateOrderStatus

        for status in statuses:
            self.process(UpdateOrderStatus(order_id=order_id, status=status))

    @staticmethod
    def order(order_id):
        from storefront.order.lookup import load_order

        return load_order(order_id)

    @staticmethod
    def record(record_id):
        from protean import current_domain

        from storefront.inventory.record import InventoryRecord

        return current_domain.repository_for(InventoryRecord).get(record_id)


@pytest.fixture()
def shop(catalog, gateway, carrier, email, sms):
    return Shop(catalog)


@pytest.fixture()
def stocked_shop(shop):
    """One product at 25.00 with 10 units in stock and a flat 8.00 domestic zone."""
    shop.product("prod-001", sku="SKU-001", price=25.0, weight=1.0)
    shop.zone()
    shop.record_id = shop.stock("prod-001", quantity=10)
    return shop
