import asyncio
import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from storefront.core import metrics
from storefront.db.base import Base
from storefront.models.cart import Cart, CartItem
from storefront.models.catalog import Category, Product, ProductImage, ProductStatus
from storefront.models.wishlist import WishlistItem
from storefront.schemas.intent import ActionKind, AuthEntry, IntentState, ProductRef, ResumeStatus
from storefront.schemas.user import UserCreate
from storefront.services import auth as auth_service
from storefront.services import cart as cart_service
from storefront.services import wishlist as wishlist_service
from storefront.services.auth_events import AuthEventBus, AuthenticationSucceeded
from storefront.services.intent_gate import IntentCaptureGate
from storefront.services.intent_store import MemoryIntentBackend, PendingIntentStore
from storefront.services.resume import ResumeCoordinator, UNAVAILABLE_NOTICE, handle_authentication_success


@pytest.fixture
def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return SessionLocal


@pytest.fixture
def cart_calls(monkeypatch: pytest.MonkeyPatch) -> list[uuid.UUID]:
    calls: list[uuid.UUID] = []
    original = cart_service.add_to_cart

    async def counting_add_to_cart(session, user_id, product_id, quantity=1):
        calls.append(product_id)
        return await original(session, user_id, product_id, quantity=quantity)

    monkeypatch.setattr(cart_service, "add_to_cart", counting_add_to_cart)
    return calls


@pytest.fixture
def wishlist_calls(monkeypatch: pytest.MonkeyPatch) -> list[uuid.UUID]:
    calls: list[uuid.UUID] = []
    original = wishlist_service.add_to_wishlist

    async def counting_add_to_wishlist(session, user_id, product_id):
        calls.append(product_id)
        return await original(session, user_id, product_id)

    monkeypatch.setattr(wishlist_service, "add_to_wishlist", counting_add_to_wishlist)
    return calls


async def _seed(session, stock: int = 5, **overrides) -> Product:
    category = Category(slug=f"shoes-{uuid.uuid4().hex[:6]}", name="Shoes")
    product = Product(
        category=category,
        slug=f"red-shoe-{uuid.uuid4().hex[:6]}",
        sku=f"SKU-{uuid.uuid4().hex[:8]}",
        name="Red Shoe",
        base_price=2499,
        currency="INR",
        stock_quantity=stock,
        status=ProductStatus.published,
        images=[ProductImage(url="/media/products/red-shoe.jpg", sort_order=0)],
        **overrides,
    )
    session.add_all([category, product])
    await session.commit()
    await session.refresh(product)
    return product


async def _user(session, email: str = "shopper@example.com"):
    return await auth_service.create_user(session, UserCreate(email=email, password="shopperpass", name="Shopper"))


def _ref(product: Product) -> ProductRef:
    return ProductRef(id=product.id, name=product.name, image_url="/media/products/red-shoe.jpg")


async def _cart_quantity(session, user_id: uuid.UUID, product_id: uuid.UUID) -> int:
    result = await session.execute(
        select(CartItem.quantity)
        .join(Cart, Cart.id == CartItem.cart_id)
        .where(Cart.user_id == user_id, CartItem.product_id == product_id)
    )
    return sum(result.scalars().all())


def test_purchase_intent_is_replayed_once(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def run():
        async with session_factory() as session:
            product = await _seed(session)
            user = await _user(session)
            await IntentCaptureGate(store).open(ActionKind.purchase, _ref(product), "/cart", AuthEntry.register)

            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)

            assert outcome.status == ResumeStatus.resumed
            assert outcome.redirect_to == "/cart"
            assert outcome.state == IntentState.resumed
            assert outcome.action_kind == ActionKind.purchase
            assert outcome.notice == "Red Shoe was added to your cart."
            assert await _cart_quantity(session, user.id, product.id) == 1
            assert await store.load() is None

    asyncio.run(run())
    assert len(cart_calls) == 1
    assert metrics.snapshot()["intents_resumed"] == 1


def test_wishlist_intent_is_replayed_once(session_factory, wishlist_calls, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def run():
        async with session_factory() as session:
            product = await _seed(session)
            user = await _user(session)
            await IntentCaptureGate(store).open(ActionKind.wishlist, _ref(product), f"/products/{product.slug}")

            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)

            assert outcome.status == ResumeStatus.resumed
            assert outcome.redirect_to == f"/products/{product.slug}"
            assert outcome.notice == "Red Shoe was saved to your wishlist."
            saved = await session.execute(select(WishlistItem).where(WishlistItem.user_id == user.id))
            assert [item.product_id for item in saved.scalars()] == [product.id]

    asyncio.run(run())
    assert len(wishlist_calls) == 1
    assert cart_calls == []


def test_duplicate_authentication_event_replays_once(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def run():
        async with session_factory() as session:
            product = await _seed(session)
            user = await _user(session)
            await IntentCaptureGate(store).open(ActionKind.purchase, _ref(product), "/cart")

            coordinator = ResumeCoordinator(session, store)
            first = await coordinator.on_authentication_success(user)
            second = await coordinator.on_authentication_success(user)

            assert first.status == ResumeStatus.resumed
            assert second.status == ResumeStatus.nothing_pending
            assert first.state == IntentState.resumed
            assert second.state == IntentState.idle
            assert second.redirect_to == "/"
            assert await _cart_quantity(session, user.id, product.id) == 1

    asyncio.run(run())
    assert len(cart_calls) == 1


def test_concurrent_resumes_share_one_intent(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def run():
        async with session_factory() as setup:
            product = await _seed(setup)
            user = await _user(setup)
        await IntentCaptureGate(store).open(ActionKind.purchase, _ref(product), "/cart")

        async def resume_in_tab():
            async with session_factory() as session:
                return await ResumeCoordinator(session, store).on_authentication_success(user)

        outcomes = await asyncio.gather(resume_in_tab(), resume_in_tab())
        statuses = sorted(outcome.status.value for outcome in outcomes)
        assert statuses == ["nothing_pending", "resumed"]

    asyncio.run(run())
    assert len(cart_calls) == 1


def test_cancelled_intent_is_not_replayed(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def run():
        async with session_factory() as session:
            product = await _seed(session)
            user = await _user(session)
            gate = IntentCaptureGate(store)
            await gate.open(ActionKind.purchase, _ref(product), "/cart")
            await gate.cancel()

            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)
            assert outcome.status == ResumeStatus.nothing_pending
            assert outcome.redirect_to == "/"

    asyncio.run(run())
    assert cart_calls == []


def test_corrupted_slot_is_treated_as_empty(session_factory, cart_calls) -> None:
    backend = MemoryIntentBackend()
    store = PendingIntentStore("guest-1", backend=backend)

    async def run():
        async with session_factory() as session:
            user = await _user(session)
            await backend.set(store.key, '{"action_kind": "purchase", "product": ', 60)

            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)
            assert outcome.status == ResumeStatus.nothing_pending
            assert await backend.get(store.key) is None

    asyncio.run(run())
    assert cart_calls == []


def test_deleted_product_reports_unavailable(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def run():
        async with session_factory() as session:
            product = await _seed(session)
            user = await _user(session)
            await IntentCaptureGate(store).open(ActionKind.purchase, _ref(product), "/cart")
            product.is_deleted = True
            await session.commit()

            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)
            assert outcome.status == ResumeStatus.product_unavailable
            assert outcome.redirect_to == "/"
            assert outcome.state == IntentState.resumed
            assert outcome.notice == UNAVAILABLE_NOTICE
            assert outcome.product is not None and outcome.product.id == product.id
            assert await store.load() is None

    asyncio.run(run())
    assert cart_calls == []
    assert metrics.snapshot()["intents_unavailable"] == 1


def test_unknown_product_reports_unavailable(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())
    ghost = ProductRef(id=uuid.uuid4(), name="Ghost Sneaker")

    async def run():
        async with session_factory() as session:
            user = await _user(session)
            await IntentCaptureGate(store).open(ActionKind.purchase, ghost, "/cart")
            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)
            assert outcome.status == ResumeStatus.product_unavailable

    asyncio.run(run())
    assert cart_calls == []


def test_failed_mutation_is_reported_and_not_retried(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def run():
        async with session_factory() as session:
            product = await _seed(session, stock=0)
            product_id = product.id
            user = await _user(session)
            user_id = user.id
            await IntentCaptureGate(store).open(ActionKind.purchase, _ref(product), "/cart")

            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)
            assert outcome.status == ResumeStatus.failed
            assert outcome.redirect_to == "/cart"
            assert outcome.state == IntentState.resumed
            assert outcome.notice == "We couldn't add Red Shoe to your cart. Please try again."
            assert await store.load() is None
            assert await _cart_quantity(session, user_id, product_id) == 0

            again = await ResumeCoordinator(session, store).on_authentication_success(user)
            assert again.status == ResumeStatus.nothing_pending

    asyncio.run(run())
    assert len(cart_calls) == 1
    assert metrics.snapshot()["intent_resume_failures"] == 1


def test_unexpected_mutation_error_is_contained(session_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    store = PendingIntentStore("guest-1", backend=MemoryIntentBackend())

    async def broken_add_to_cart(session, user_id, product_id, quantity=1):
        raise RuntimeError("database went away")

    monkeypatch.setattr(cart_service, "add_to_cart", broken_add_to_cart)

    async def run():
        async with session_factory() as session:
            product = await _seed(session)
            user = await _user(session)
            await IntentCaptureGate(store).open(ActionKind.purchase, _ref(product), "/cart")
            outcome = await ResumeCoordinator(session, store).on_authentication_success(user)
            assert outcome.status == ResumeStatus.failed
            assert await store.load() is None

    asyncio.run(run())


def test_without_guest_session_nothing_is_pending(session_factory, cart_calls) -> None:
    async def run():
        async with session_factory() as session:
            user = await _user(session)
            outcome = await ResumeCoordinator(session, None).on_authentication_success(user)
            assert outcome.status == ResumeStatus.nothing_pending
            assert outcome.redirect_to == "/"
            assert outcome.notice is None

    asyncio.run(run())
    assert cart_calls == []


def test_event_bus_drives_the_coordinator(session_factory, cart_calls) -> None:
    store = PendingIntentStore("guest-bus")
    bus = AuthEventBus()
    bus.subscribe(handle_authentication_success)
    bus.subscribe(handle_authentication_success)
    assert len(bus.handlers) == 1

    async def run():
        async with session_factory() as session:
            product = await _seed(session)
            user = await _user(session)
            await IntentCaptureGate(store).open(ActionKind.purchase, _ref(product), "/cart")

            event = AuthenticationSucceeded(user=user, session=session, guest_session_id="guest-bus", method="login")
            results = await bus.publish(event)
            assert [result.status for result in results] == [ResumeStatus.resumed]

            replayed = await bus.publish(event)
            assert [result.status for result in replayed] == [ResumeStatus.nothing_pending]

    asyncio.run(run())
    assert len(cart_calls) == 1


def test_failing_subscriber_does_not_break_publish(session_factory) -> None:
    bus = AuthEventBus()

    async def explode(event):
        raise RuntimeError("boom")

    async def ok(event):
        return "ok"

    bus.subscribe(explode)
    bus.subscribe(ok)

    async def run():
        async with session_factory() as session:
            user = await _user(session)
            results = await bus.publish(AuthenticationSucceeded(user=user, session=session, guest_session_id=None))
            assert results == ["ok"]

    asyncio.run(run())
