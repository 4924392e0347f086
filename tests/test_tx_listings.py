"""Listing fixtures (create / purchase)."""

from __future__ import annotations

from market_spec.config import MAX_UINT256, WEI_PER_ETHER
from market_spec.errors import ErrorCode
from market_spec.state_transition import apply_call, deploy
from market_spec.test_accounts import BUYER, CAROL, OWNER, SELLER
from market_spec.types import AccountState, Call, CallType, Listing, MarketState
from market_spec.views import balance_of, get_listing, ledger_total, total_listings, unclaimed_value

PRICE = 1_000_000
GENESIS_TS = 1_700_000_000
BUYER_FUNDS = 10 * WEI_PER_ETHER


def _hash(byte: int) -> bytes:
    return bytes([byte]) * 32


def _base_state() -> MarketState:
    return deploy(
        OWNER,
        timestamp=GENESIS_TS,
        accounts=[
            AccountState(address=OWNER),
            AccountState(address=SELLER),
            AccountState(address=BUYER, balance=BUYER_FUNDS),
            AccountState(address=CAROL, balance=BUYER_FUNDS),
        ],
    )


def _listed_state(listing_id: str = "l1", price: int = PRICE) -> MarketState:
    state = _base_state()
    state.listings[listing_id] = Listing(
        listing_id=listing_id,
        seller=SELLER,
        price=price,
        proof_hash=_hash(1),
        created_at=GENESIS_TS,
    )
    state.total_listings = 1
    return state


def _create(listing_id: str, price: int, *, caller: bytes = SELLER, nonce: int = 0, proof: bytes = _hash(1)) -> Call:
    return Call(
        caller=caller,
        call_type=CallType.CREATE_LISTING,
        payload={"listing_id": listing_id, "price": price, "proof_hash": proof},
        nonce=nonce,
    )


def _purchase(listing_id: str, value: int, *, caller: bytes = BUYER, nonce: int = 0) -> Call:
    return Call(
        caller=caller,
        call_type=CallType.PURCHASE_LISTING,
        payload={"listing_id": listing_id},
        value=value,
        nonce=nonce,
    )


# --- create_listing specs ---


def test_create_listing_success(state_test_group) -> None:
    post, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_success",
        _base_state(),
        _create("l1", PRICE),
    )
    assert result.ok
    listing = get_listing(post, "l1")
    assert listing is not None
    assert listing.seller == SELLER
    assert listing.price == PRICE
    assert not listing.sold
    assert listing.proof_hash == _hash(1)
    assert listing.created_at == GENESIS_TS
    assert post.total_listings == 1
    assert post.accounts[SELLER].nonce == 1

    [event] = result.events
    assert event.name == "ListingCreated"
    assert event.args == {"listing_id": "l1", "seller": SELLER, "price": PRICE, "proof_hash": _hash(1)}


def test_create_listing_zero_price(state_test_group) -> None:
    state = _base_state()
    post, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_zero_price",
        state,
        _create("l1", 0),
    )
    assert result.error.code == ErrorCode.INVALID_PRICE
    assert post is state
    assert post.accounts[SELLER].nonce == 0


def test_create_listing_bool_price(state_test_group) -> None:
    _, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_bool_price",
        _base_state(),
        _create("l1", True),
    )
    assert result.error.code == ErrorCode.INVALID_PRICE


def test_create_listing_duplicate_id(state_test_group) -> None:
    state = _listed_state()
    post, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_duplicate_id",
        state,
        _create("l1", 5, caller=CAROL),
    )
    assert result.error.code == ErrorCode.LISTING_ALREADY_EXISTS
    assert post.listings["l1"].seller == SELLER
    assert post.listings["l1"].price == PRICE


def test_create_listing_duplicate_of_sold_id(state_test_group) -> None:
    state = _listed_state()
    state.listings["l1"].sold = True
    post, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_duplicate_of_sold_id",
        state,
        _create("l1", PRICE, caller=CAROL),
    )
    assert result.error.code == ErrorCode.LISTING_ALREADY_EXISTS
    assert post.listings["l1"].seller == SELLER
    assert post.listings["l1"].sold
    assert post.total_listings == 1


def test_create_listing_max_uint256_price(state_test_group) -> None:
    post, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_max_uint256_price",
        _base_state(),
        _create("l1", MAX_UINT256),
    )
    assert result.ok
    assert post.listings["l1"].price == MAX_UINT256


def test_create_listing_id_not_utf8() -> None:
    state = _base_state()
    post, result = apply_call(state, _create("\ud800", PRICE))
    assert result.error.code == ErrorCode.INVALID_PAYLOAD
    assert post is state
    assert post.listings == {}


def test_purchase_listing_id_not_utf8() -> None:
    _, result = apply_call(_listed_state(), _purchase("l1\udfff", PRICE))
    assert result.error.code == ErrorCode.INVALID_PAYLOAD


def test_create_listing_short_proof_hash(state_test_group) -> None:
    _, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_short_proof_hash",
        _base_state(),
        _create("l1", PRICE, proof=bytes(31)),
    )
    assert result.error.code == ErrorCode.INVALID_PAYLOAD


def test_create_listing_when_paused(state_test_group) -> None:
    state = _base_state()
    state.paused = True
    _, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_when_paused",
        state,
        _create("l1", PRICE),
    )
    assert result.error.code == ErrorCode.ENFORCED_PAUSE


def test_create_listing_with_value(state_test_group) -> None:
    call = _create("l1", PRICE, caller=BUYER)
    call.value = 1
    _, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_with_value",
        _base_state(),
        call,
    )
    assert result.error.code == ErrorCode.NON_PAYABLE


def test_create_listing_counts_creations(state_test_group) -> None:
    state = _listed_state()
    post, result = state_test_group(
        "transactions/listings/create_listing.json",
        "create_listing_second_listing",
        state,
        _create("l2", 42, caller=CAROL),
    )
    assert result.ok
    assert total_listings(post) == 2
    assert set(post.listings) == {"l1", "l2"}


# --- purchase_listing specs ---


def test_purchase_listing_exact_payment(state_test_group) -> None:
    post, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_exact_payment",
        _listed_state(),
        _purchase("l1", PRICE),
    )
    assert result.ok
    assert post.listings["l1"].sold
    assert post.accounts[SELLER].balance == 975_000
    assert balance_of(post, OWNER) == 25_000
    assert post.accounts[BUYER].balance == BUYER_FUNDS - PRICE
    assert post.contract_balance == 25_000
    assert unclaimed_value(post) == 0
    assert post.accounts[BUYER].nonce == 1

    [event] = result.events
    assert event.name == "PurchaseCompleted"
    assert event.args == {"listing_id": "l1", "buyer": BUYER, "seller": SELLER, "price": PRICE}


def test_purchase_listing_refunds_excess(state_test_group) -> None:
    post, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_refunds_excess",
        _listed_state(),
        _purchase("l1", PRICE + 500_000),
    )
    assert result.ok
    assert post.accounts[BUYER].balance == BUYER_FUNDS - PRICE
    assert post.accounts[SELLER].balance == 975_000
    assert post.contract_balance == ledger_total(post) == 25_000


def test_purchase_listing_fee_rounds_down(state_test_group) -> None:
    post, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_fee_rounds_down",
        _listed_state(price=999),
        _purchase("l1", 999),
    )
    assert result.ok
    assert balance_of(post, OWNER) == 24
    assert post.accounts[SELLER].balance == 975


def test_purchase_listing_zero_fee(state_test_group) -> None:
    state = _listed_state()
    state.platform_fee_bps = 0
    post, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_zero_fee",
        state,
        _purchase("l1", PRICE),
    )
    assert result.ok
    assert post.accounts[SELLER].balance == PRICE
    assert OWNER not in post.balances
    assert post.contract_balance == 0


def test_purchase_listing_insufficient_payment(state_test_group) -> None:
    state = _listed_state()
    post, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_insufficient_payment",
        state,
        _purchase("l1", PRICE - 1),
    )
    assert result.error.code == ErrorCode.INSUFFICIENT_PAYMENT
    assert not post.listings["l1"].sold
    assert post.accounts[BUYER].balance == BUYER_FUNDS
    assert post.contract_balance == 0


def test_purchase_listing_already_sold(state_test_group) -> None:
    state = _listed_state()
    state.listings["l1"].sold = True
    _, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_already_sold",
        state,
        _purchase("l1", PRICE),
    )
    assert result.error.code == ErrorCode.LISTING_ALREADY_SOLD


def test_purchase_listing_not_found(state_test_group) -> None:
    _, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_not_found",
        _base_state(),
        _purchase("missing", PRICE),
    )
    assert result.error.code == ErrorCode.LISTING_NOT_FOUND


def test_purchase_listing_when_paused(state_test_group) -> None:
    state = _listed_state()
    state.paused = True
    _, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_when_paused",
        state,
        _purchase("l1", PRICE),
    )
    assert result.error.code == ErrorCode.ENFORCED_PAUSE


def test_purchase_listing_unfunded_value(state_test_group) -> None:
    state = _listed_state()
    state.accounts[BUYER].balance = PRICE - 1
    _, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_unfunded_value",
        state,
        _purchase("l1", PRICE),
    )
    assert result.error.code == ErrorCode.INSUFFICIENT_BALANCE


def test_purchase_listing_second_buyer_rejected(state_test_group) -> None:
    first, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_first_buyer",
        _listed_state(),
        _purchase("l1", PRICE),
    )
    assert result.ok
    post, result = state_test_group(
        "transactions/listings/purchase_listing.json",
        "purchase_listing_second_buyer_rejected",
        first,
        _purchase("l1", PRICE, caller=CAROL),
    )
    assert result.error.code == ErrorCode.LISTING_ALREADY_SOLD
    assert post.accounts[CAROL].balance == BUYER_FUNDS
