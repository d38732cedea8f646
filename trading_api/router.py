"""
FastAPI Router for Ledger Procedures.

One POST procedure per ledger operation:
- executeTrade, closeTrade
- createSubscription, cancelSubscription
- fundWallet
- copyTrade
- createAccount, updateAccount, createTrader
- createSignal, updateSignal, deactivateSignal

plus GET reads for accounts, trades, wallets, transactions,
subscriptions and copy-trade history.

Amounts are JSON numbers in both directions and never pass
through float; see trading_api.responses. Rejected operations
return the error kind, code, message and context under
``detail``.
"""

from typing import Iterable, List, NoReturn, Optional, Type

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ledger_engine import LedgerConfig, LedgerError, LedgerService
from storage.database import get_session_factory
from trading_api.schemas import (
    AccountResponse,
    CancelSubscriptionRequest,
    CloseTradeRequest,
    CopyTradeRequest,
    CopyTradeResponse,
    CreateAccountRequest,
    CreateSignalRequest,
    CreateSubscriptionRequest,
    CreateTraderRequest,
    DeactivateSignalRequest,
    ErrorResponse,
    ExecuteTradeRequest,
    FundWalletRequest,
    SignalResponse,
    SubscriptionResponse,
    TradeResponse,
    TraderResponse,
    TradeStatusEnum,
    TransactionResponse,
    UpdateAccountRequest,
    UpdateSignalRequest,
    WalletResponse,
)
from trading_api.responses import DecimalJSONResponse, DecimalRoute

router = APIRouter(
    prefix="/ledger",
    tags=["Ledger"],
    route_class=DecimalRoute,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


# =============================================================
# HELPER: Get service instance
# =============================================================

def get_ledger_service() -> LedgerService:
    return LedgerService(get_session_factory(), LedgerConfig.from_env())


def _reject(error: LedgerError) -> NoReturn:
    raise HTTPException(status_code=error.http_status, detail=error.to_dict()) from error


def _respond(model: Type[BaseModel], record, status_code: int = status.HTTP_200_OK) -> DecimalJSONResponse:
    return DecimalJSONResponse(model.model_validate(record.to_dict()).model_dump(), status_code=status_code)


def _respond_list(model: Type[BaseModel], records: Iterable) -> DecimalJSONResponse:
    return DecimalJSONResponse([model.model_validate(r.to_dict()).model_dump() for r in records])


# =============================================================
# TRADE PROCEDURES
# =============================================================

@router.post("/executeTrade", response_model=TradeResponse, status_code=status.HTTP_201_CREATED)
def execute_trade(
    request: ExecuteTradeRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """
    Open a position.

    A buy debits quantity * entry_price; a sell credits it.
    """
    try:
        trade = service.execute_trade(
            account_id=request.account_id,
            symbol=request.symbol,
            asset_type=request.asset_type,
            direction=request.direction.value,
            quantity=request.quantity,
            entry_price=request.entry_price,
        )
    except LedgerError as e:
        _reject(e)
    return _respond(TradeResponse, trade, status.HTTP_201_CREATED)


@router.post("/closeTrade", response_model=TradeResponse)
def close_trade(
    request: CloseTradeRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Close an executed trade and credit its profit or loss."""
    try:
        trade = service.close_trade(request.trade_id, request.exit_price)
    except LedgerError as e:
        _reject(e)
    return _respond(TradeResponse, trade)


@router.get("/trades/{trade_id}", response_model=TradeResponse)
def get_trade(
    trade_id: int,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        trade = service.get_trade(trade_id)
    except LedgerError as e:
        _reject(e)
    return _respond(TradeResponse, trade)


# =============================================================
# SUBSCRIPTION PROCEDURES
# =============================================================

@router.post("/createSubscription", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
def create_subscription(
    request: CreateSubscriptionRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """
    Buy a subscription to a trader.

    Checks, in order: subscriber exists, trader exists, balance
    covers the price, price is at least the trader's price.
    """
    try:
        subscription = service.create_subscription(
            request.subscriber_id, request.trader_id, request.price_paid
        )
    except LedgerError as e:
        _reject(e)
    return _respond(SubscriptionResponse, subscription, status.HTTP_201_CREATED)


@router.post("/cancelSubscription", response_model=SubscriptionResponse)
def cancel_subscription(
    request: CancelSubscriptionRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Cancel an active subscription (no refund)."""
    try:
        subscription = service.cancel_subscription(request.subscription_id)
    except LedgerError as e:
        _reject(e)
    return _respond(SubscriptionResponse, subscription)


# =============================================================
# WALLET PROCEDURES
# =============================================================

@router.post("/fundWallet", response_model=WalletResponse)
def fund_wallet(
    request: FundWalletRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """
    Credit the account's wallet in a currency, creating it on
    first funding.
    """
    try:
        wallet = service.fund_wallet(
            request.account_id,
            request.currency,
            request.amount,
            external_reference=request.external_reference,
        )
    except LedgerError as e:
        _reject(e)
    return _respond(WalletResponse, wallet)


# =============================================================
# COPY TRADING PROCEDURES
# =============================================================

@router.post("/copyTrade", response_model=CopyTradeResponse, status_code=status.HTTP_201_CREATED)
def copy_trade(
    request: CopyTradeRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Copy a trader's active signal into a subscriber's account."""
    try:
        copy = service.copy_trade(request.subscriber_id, request.trader_id, request.signal_id)
    except LedgerError as e:
        _reject(e)
    return _respond(CopyTradeResponse, copy, status.HTTP_201_CREATED)


@router.post("/createSignal", response_model=SignalResponse, status_code=status.HTTP_201_CREATED)
def create_signal(
    request: CreateSignalRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        signal = service.create_signal(
            trader_id=request.trader_id,
            symbol=request.symbol,
            asset_type=request.asset_type,
            direction=request.direction.value,
            entry_price=request.entry_price,
            target_price=request.target_price,
            stop_loss=request.stop_loss,
            description=request.description,
            expires_at=request.expires_at,
        )
    except LedgerError as e:
        _reject(e)
    return _respond(SignalResponse, signal, status.HTTP_201_CREATED)


@router.post("/updateSignal", response_model=SignalResponse)
def update_signal(
    request: UpdateSignalRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Revise targets, description, expiry or the active flag of a signal."""
    try:
        signal = service.update_signal(
            request.signal_id,
            target_price=request.target_price,
            stop_loss=request.stop_loss,
            description=request.description,
            expires_at=request.expires_at,
            is_active=request.is_active,
        )
    except LedgerError as e:
        _reject(e)
    return _respond(SignalResponse, signal)


@router.post("/deactivateSignal", response_model=SignalResponse)
def deactivate_signal(
    request: DeactivateSignalRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        signal = service.deactivate_signal(request.signal_id)
    except LedgerError as e:
        _reject(e)
    return _respond(SignalResponse, signal)


# =============================================================
# ACCOUNT PROCEDURES
# =============================================================

@router.post("/createAccount", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Open an account with the starting balance."""
    try:
        account = service.create_account(
            email=request.email,
            username=request.username,
            first_name=request.first_name,
            last_name=request.last_name,
            phone=request.phone,
            country=request.country,
        )
    except LedgerError as e:
        _reject(e)
    return _respond(AccountResponse, account, status.HTTP_201_CREATED)


@router.post("/updateAccount", response_model=AccountResponse)
def update_account(
    request: UpdateAccountRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Change profile fields; omitted fields are kept."""
    try:
        account = service.update_account(
            request.account_id,
            first_name=request.first_name,
            last_name=request.last_name,
            phone=request.phone,
            country=request.country,
            is_verified=request.is_verified,
        )
    except LedgerError as e:
        _reject(e)
    return _respond(AccountResponse, account)


@router.post("/createTrader", response_model=TraderResponse, status_code=status.HTTP_201_CREATED)
def create_trader(
    request: CreateTraderRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        trader = service.create_trader(
            request.user_id, request.display_name, request.subscription_price, bio=request.bio
        )
    except LedgerError as e:
        _reject(e)
    return _respond(TraderResponse, trader, status.HTTP_201_CREATED)


@router.get("/traders/{trader_id}", response_model=TraderResponse)
def get_trader(
    trader_id: int,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        trader = service.get_trader(trader_id)
    except LedgerError as e:
        _reject(e)
    return _respond(TraderResponse, trader)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        account = service.get_account(account_id)
    except LedgerError as e:
        _reject(e)
    return _respond(AccountResponse, account)


@router.get("/accounts/{account_id}/trades", response_model=List[TradeResponse])
def list_trades(
    account_id: int,
    status_filter: Optional[TradeStatusEnum] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(100, ge=1, le=500),
    service: LedgerService = Depends(get_ledger_service),
):
    """An account's trades, newest first."""
    try:
        trades = service.list_trades(
            account_id,
            status=status_filter.value if status_filter else None,
            limit=limit,
        )
    except LedgerError as e:
        _reject(e)
    return _respond_list(TradeResponse, trades)


@router.get("/accounts/{account_id}/wallets", response_model=List[WalletResponse])
def list_wallets(
    account_id: int,
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        wallets = service.list_wallets(account_id)
    except LedgerError as e:
        _reject(e)
    return _respond_list(WalletResponse, wallets)


@router.get("/accounts/{account_id}/transactions", response_model=List[TransactionResponse])
def list_transactions(
    account_id: int,
    limit: int = Query(100, ge=1, le=500),
    service: LedgerService = Depends(get_ledger_service),
):
    try:
        transactions = service.list_transactions(account_id, limit=limit)
    except LedgerError as e:
        _reject(e)
    return _respond_list(TransactionResponse, transactions)


@router.get("/accounts/{account_id}/subscriptions", response_model=List[SubscriptionResponse])
def list_subscriptions(
    account_id: int,
    service: LedgerService = Depends(get_ledger_service),
):
    subscriptions = service.list_subscriptions(account_id)
    return _respond_list(SubscriptionResponse, subscriptions)


@router.get("/accounts/{account_id}/copyTrades", response_model=List[CopyTradeResponse])
def get_copy_trade_history(
    account_id: int,
    service: LedgerService = Depends(get_ledger_service),
):
    copies = service.get_copy_trade_history(account_id)
    return _respond_list(CopyTradeResponse, copies)
