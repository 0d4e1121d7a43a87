"""Tests for engine initialization and the transactional session scope."""

import pytest
from sqlalchemy import select

from catalog_config.schema import CatalogSettings
from catalog_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_settings,
    reset_engine,
    session_scope,
)
from catalog_kernel.models.product import ProductModel


@pytest.fixture
def registered_engine():
    engine = init_engine_from_settings("sqlite://", CatalogSettings())
    create_tables()
    yield engine
    reset_engine()


class TestEngineRegistry:
    def test_uninitialized_access_raises(self):
        reset_engine()

        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()

    def test_init_from_settings_registers_engine(self, registered_engine):
        assert get_engine() is registered_engine
        assert registered_engine.dialect.name == "sqlite"


class TestSessionScope:
    def test_commits_on_success(self, registered_engine):
        with session_scope() as session:
            session.add(ProductModel(tenant_id="t", sku="A", name="A", version=1))

        with session_scope() as session:
            skus = session.execute(select(ProductModel.sku)).scalars().all()
        assert skus == ["A"]

    def test_rolls_back_on_error(self, registered_engine):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(ProductModel(tenant_id="t", sku="B", name="B", version=1))
                session.flush()
                raise ValueError("abort")

        with session_scope() as session:
            assert session.execute(select(ProductModel.sku)).scalars().all() == []
