import unittest
import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.dialects import postgresql

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.models.enums import DeliveryType
from app.services.pricing import PricingService, check_addon_price, check_service_price, format_price


def _service(min_price="50.00", name="Deep Tissue Massage"):
    return SimpleNamespace(id=uuid.uuid4(), min_price=Decimal(min_price), name=name, duration_minutes=60)


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestPriceRules(unittest.TestCase):
    def test_format_price(self):
        self.assertEqual(format_price(Decimal("50.00")), "50")
        self.assertEqual(format_price(Decimal("49.5")), "49.50")

    def test_price_below_minimum(self):
        with self.assertRaises(ValidationFailed) as ctx:
            check_service_price(_service(), Decimal("45.00"))
        self.assertEqual(ctx.exception.message, "Price must be at least $50 for Deep Tissue Massage")
        self.assertEqual(ctx.exception.code, "price_below_minimum")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_price_at_minimum_is_accepted(self):
        check_service_price(_service(), Decimal("50"))

    def test_price_must_be_positive(self):
        with self.assertRaises(ValidationFailed) as ctx:
            check_service_price(_service(min_price="0"), Decimal("0"))
        self.assertEqual(ctx.exception.code, "invalid_price")

    def test_available_addon_needs_price(self):
        with self.assertRaises(ValidationFailed):
            check_addon_price(True, None)
        with self.assertRaises(ValidationFailed):
            check_addon_price(True, Decimal("0"))
        check_addon_price(True, Decimal("15"))
        check_addon_price(False, None)


class TestPricingService(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.db = MagicMock()
        self.db.execute = AsyncMock()
        self.db.commit = AsyncMock()
        self.db.flush = AsyncMock()
        self.db.refresh = AsyncMock()
        self.db.rollback = AsyncMock()
        self.business_id = uuid.uuid4()

    async def test_unknown_service_is_not_found(self):
        self.db.execute.return_value = _result(None)
        with self.assertRaises(NotFound):
            await PricingService(self.db).add_service(self.business_id, uuid.uuid4(), Decimal("60"))

    async def test_duplicate_service_is_conflict(self):
        service = _service()
        self.db.execute.side_effect = [_result(service), _result(uuid.uuid4())]
        with self.assertRaises(Conflict) as ctx:
            await PricingService(self.db).add_service(self.business_id, service.id, Decimal("60"))
        self.assertEqual(ctx.exception.code, "duplicate_service")
        self.db.add.assert_not_called()

    async def test_add_service_defaults_duration_from_catalog(self):
        service = _service()
        self.db.execute.side_effect = [_result(service), _result(None)]

        business_service = await PricingService(self.db).add_service(
            self.business_id, service.id, Decimal("75"), delivery_type=DeliveryType.VIRTUAL
        )

        self.assertEqual(business_service.business_duration_minutes, 60)
        self.assertEqual(business_service.delivery_type, DeliveryType.VIRTUAL)
        self.db.add.assert_called_once_with(business_service)
        self.db.commit.assert_awaited_once()

    async def test_update_with_stale_version_is_conflict(self):
        service = _service()
        self.db.execute.side_effect = [_result(service), _result(None), _result(uuid.uuid4())]

        with self.assertRaises(Conflict) as ctx:
            await PricingService(self.db).update_service(
                self.business_id,
                service.id,
                Decimal("80"),
                DeliveryType.CUSTOMER_LOCATION,
                True,
                expected_version=2,
            )

        self.assertEqual(ctx.exception.code, "version_conflict")
        update_sql = str(self.db.execute.await_args_list[1].args[0].compile(dialect=postgresql.dialect()))
        self.assertIn("business_services.version =", update_sql)
        self.assertIn("business_services.version +", update_sql)

    async def test_update_reapplies_price_floor(self):
        self.db.execute.return_value = _result(_service(min_price="100"))
        with self.assertRaises(ValidationFailed):
            await PricingService(self.db).update_service(
                self.business_id, uuid.uuid4(), Decimal("99.99"), DeliveryType.VIRTUAL, True
            )
        self.assertEqual(self.db.execute.await_count, 1)

    async def test_deferred_commit_only_flushes(self):
        service = _service()
        self.db.execute.side_effect = [_result(service), _result(None)]
        await PricingService(self.db, autocommit=False).upsert_service(
            self.business_id, service.id, Decimal("55"), DeliveryType.VIRTUAL, True
        )
        self.db.flush.assert_awaited_once()
        self.db.commit.assert_not_called()

    async def test_deactivate_services_is_one_update(self):
        await PricingService(self.db, autocommit=False).deactivate_services(self.business_id, {uuid.uuid4()})

        sql = str(self.db.execute.await_args.args[0].compile(dialect=postgresql.dialect()))
        self.assertIn("UPDATE business_services SET", sql)
        self.assertIn("is_active=", sql)
        self.assertIn("business_services.service_id IN", sql)
        self.assertIn("business_services.version +", sql)
        self.db.flush.assert_awaited_once()

    async def test_withdraw_addons(self):
        await PricingService(self.db).withdraw_addons(self.business_id, [uuid.uuid4()])

        sql = str(self.db.execute.await_args.args[0].compile(dialect=postgresql.dialect()))
        self.assertIn("UPDATE business_addons SET", sql)
        self.assertIn("is_available=", sql)
        self.assertIn("business_addons.addon_id IN", sql)

    async def test_nothing_dropped_writes_nothing(self):
        service = PricingService(self.db)
        await service.deactivate_services(self.business_id, set())
        await service.withdraw_addons(self.business_id, [])
        self.db.execute.assert_not_called()
        self.db.commit.assert_not_called()


if __name__ == "__main__":
    unittest.main()
