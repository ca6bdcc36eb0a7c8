"""Shared fixtures: in-memory database, catalog service and data factory."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.catalog.models import (
    CharacteristicAssignment,
    CharacteristicGroup,
    CharacteristicValue,
    Product,
    ProductVariant,
)
from app.catalog.service import CatalogService
from app.domain.state_machines import Lifecycle
from app.infrastructure.database import Base


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with foreign keys and SAVEPOINT support."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # Let SQLAlchemy emit BEGIN itself so nested transactions work.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session matching the application's session factory settings."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def service(session: AsyncSession) -> CatalogService:
    """Catalog service bound to the test session."""
    return CatalogService(session)


class CatalogFactory:
    """Creates committed catalog rows for tests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._sku = 0

    async def _commit(self, row: Any) -> Any:
        self.session.add(row)
        await self.session.commit()
        return row

    async def product(
        self,
        name: str = "Wheelchair",
        price_cents: int = 10000,
        stock_quantity: int = 5,
        status: Lifecycle = Lifecycle.ACTIVE,
        **fields: Any,
    ) -> Product:
        """Create a product."""
        self._sku += 1
        fields.setdefault("sku", f"SKU-{self._sku:04d}")
        return await self._commit(
            Product(
                name=name,
                price_cents=price_cents,
                stock_quantity=stock_quantity,
                status=status.value,
                **fields,
            )
        )

    async def variant(
        self,
        product: Product,
        status: Lifecycle = Lifecycle.ACTIVE,
        **fields: Any,
    ) -> ProductVariant:
        """Create a variant of a product."""
        self._sku += 1
        fields.setdefault("sku", f"{product.sku}-V{self._sku}")
        fields.setdefault("name", f"{product.name} variant")
        return await self._commit(
            ProductVariant(master_id=product.id, status=status.value, **fields)
        )

    async def group(
        self,
        name: str,
        parent: CharacteristicGroup | None = None,
        sort_order: int = 0,
        is_active: bool = True,
    ) -> CharacteristicGroup:
        """Create a group; without a parent it is a section."""
        return await self._commit(
            CharacteristicGroup(
                name=name,
                parent_id=parent.id if parent else None,
                sort_order=sort_order,
                is_active=is_active,
            )
        )

    async def value(
        self,
        group: CharacteristicGroup,
        value: str,
        sort_order: int = 0,
        color_hex: str | None = None,
        is_active: bool = True,
    ) -> CharacteristicValue:
        """Create a value in a group."""
        return await self._commit(
            CharacteristicValue(
                group_id=group.id,
                value=value,
                sort_order=sort_order,
                color_hex=color_hex,
                is_active=is_active,
            )
        )

    async def assign(
        self,
        value: CharacteristicValue,
        product: Product | None = None,
        variant: ProductVariant | None = None,
        additional_value: str | None = None,
    ) -> CharacteristicAssignment:
        """Attach a value to a product or a variant."""
        return await self._commit(
            CharacteristicAssignment(
                product_id=product.id if product else None,
                variant_id=variant.id if variant else None,
                value_id=value.id,
                additional_value=additional_value,
            )
        )


@pytest_asyncio.fixture
async def factory(session: AsyncSession) -> CatalogFactory:
    """Data factory bound to the test session."""
    return CatalogFactory(session)
