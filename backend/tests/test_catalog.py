"""Tests for the per-shop SAV type / status resolver."""
import pytest
from sqlalchemy.exc import OperationalError

from conftest import NOW
from savtrack.models.catalog import ShopSavStatus, ShopSavType
from savtrack.services.catalog import (
    DEFAULT_CATALOG,
    CatalogDefaults,
    CatalogResolver,
    StatusConfig,
    TypeConfig,
    load_catalog,
    normalize_status,
)


def test_default_types():
    catalog = CatalogResolver()
    assert catalog.resolve_type("internal").max_processing_days == 0
    assert catalog.resolve_type("internal").excluded_from_stats is True
    assert catalog.resolve_type("external").max_processing_days == 9
    assert catalog.resolve_type("client").max_processing_days == 7
    assert [t.type_key for t in catalog.all_types()] == ["internal", "external", "client"]


def test_default_statuses():
    catalog = CatalogResolver()
    keys = [s.status_key for s in catalog.all_statuses()]
    assert keys == [
        "pending", "in_progress", "testing", "parts_ordered", "parts_received", "ready", "cancelled",
    ]
    assert catalog.is_final("ready") and catalog.is_final("cancelled")
    assert not any(catalog.pauses_timer(k) for k in keys)


def test_shop_row_overrides_default():
    catalog = CatalogResolver(types=[TypeConfig("client", "Client pro", max_processing_days=3)])
    assert catalog.resolve_type("client").label == "Client pro"
    assert catalog.resolve_type("client").max_processing_days == 3
    # other keys still fall back to the defaults
    assert catalog.resolve_type("external").max_processing_days == 9


def test_unknown_key_gets_generic_fallback():
    catalog = CatalogResolver()
    config = catalog.resolve_type("insurance")
    assert config.label == "insurance"
    assert config.max_processing_days == 7
    assert catalog.find_type("insurance") is None
    assert catalog.is_known_type("insurance") is False

    status = catalog.resolve_status("on_hold")
    assert status.label == "on_hold"
    assert status.pause_timer is False


def test_injected_defaults():
    defaults = CatalogDefaults(
        types=(TypeConfig("repair", "Réparation", max_processing_days=2),),
        statuses=(StatusConfig("open", "Ouvert"), StatusConfig("done", "Fini", is_final_status=True)),
        fallback_processing_days=1,
    )
    catalog = CatalogResolver(defaults=defaults)
    assert catalog.resolve_type("repair").max_processing_days == 2
    assert catalog.resolve_type("client").max_processing_days == 1
    assert catalog.is_final("done")
    assert DEFAULT_CATALOG.types[0].type_key == "internal"


def test_delivered_is_read_as_ready():
    catalog = CatalogResolver()
    assert normalize_status("delivered") == "ready"
    assert catalog.resolve_status("delivered").status_key == "ready"
    assert catalog.is_ready("delivered")
    assert catalog.is_known_status("delivered")


def test_ready_and_cancelled_label_heuristics():
    catalog = CatalogResolver(
        statuses=[
            StatusConfig("termine", "Terminé", is_final_status=True),
            StatusConfig("abandon", "Abandonné par le client", is_final_status=True),
            StatusConfig("diag", "Diagnostic"),
        ]
    )
    assert catalog.is_ready("termine")
    assert not catalog.is_ready("diag")
    assert catalog.is_cancelled("abandon")
    assert not catalog.is_cancelled("termine")
    assert catalog.closed_status_keys() >= {"termine", "abandon", "ready", "cancelled", "delivered"}


@pytest.mark.asyncio
async def test_load_catalog_reads_active_rows(db_session, shop):
    db_session.add_all(
        [
            ShopSavType(shop_id=shop.id, type_key="client", type_label="Client", display_order=2,
                        max_processing_days=5, updated_at=NOW),
            ShopSavType(shop_id=shop.id, type_key="old", type_label="Ancien", is_active=False,
                        updated_at=NOW),
            ShopSavStatus(shop_id=shop.id, status_key="waiting", status_label="En attente client",
                          pause_timer=True, updated_at=NOW),
        ]
    )
    await db_session.commit()

    catalog = await load_catalog(db_session, shop.id)
    assert [t.type_key for t in catalog.all_types()] == ["client"]
    assert catalog.resolve_type("client").max_processing_days == 5
    assert catalog.pauses_timer("waiting") is True


class _BrokenSession:
    def __init__(self):
        self.rolled_back = False

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    async def rollback(self):
        self.rolled_back = True


@pytest.mark.asyncio
async def test_load_catalog_falls_back_to_defaults_on_store_error():
    session = _BrokenSession()
    catalog = await load_catalog(session, shop_id=None)
    assert session.rolled_back is True
    assert catalog.resolve_type("external").max_processing_days == 9
    assert [s.status_key for s in catalog.all_statuses()][0] == "pending"
