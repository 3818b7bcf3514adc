import pytest

from exchangedb.provider import (
    DatabaseProvider,
    FeeTreasuryDatabaseReader,
    FeeTreasuryDatabaseWriter,
    MarketDatabaseReader,
    MarketDatabaseWriter,
    MarketStatDatabaseReader,
    MarketStatDatabaseWriter,
    OrderDatabaseReader,
    OrderDatabaseWriter,
    ReadDatabaseProvider,
    TradeDatabaseReader,
    TradeDatabaseWriter,
    WalletDatabaseReader,
    WalletDatabaseWriter,
    WriteDatabaseProvider,
)


class Readers(
    OrderDatabaseReader,
    WalletDatabaseReader,
    TradeDatabaseReader,
    MarketDatabaseReader,
    MarketStatDatabaseReader,
    FeeTreasuryDatabaseReader,
):
    def get_order(self, order_id):
        return None

    def get_active_orders(self, market_id):
        return []

    def list_orders(self, filter, pagination=None):
        return None

    def get_wallet(self, user_id, asset):
        return None

    def list_wallets(self, filter, pagination=None):
        return None

    def list_trades(self, filter, pagination=None):
        return None

    def get_market(self, market_id):
        return None

    def list_markets(self):
        return []

    def get_market_stats(self, market_id):
        return None

    def get_fee_treasury(self, market_id):
        return None

    def list_fee_treasuries(self):
        return []


class Writers(
    OrderDatabaseWriter,
    WalletDatabaseWriter,
    TradeDatabaseWriter,
    MarketDatabaseWriter,
    MarketStatDatabaseWriter,
    FeeTreasuryDatabaseWriter,
):
    def create_order(self, order_data):
        return order_data

    def cancel_order(self, order_id):
        return None

    def cancel_all_orders(self, market_id):
        return []

    def cancel_all_global_orders(self):
        return []

    def update_order_status(self, order_id, status):
        return None

    def deposit_balance(self, user_id, asset, amount):
        return None

    def withdraw_balance(self, user_id, asset, amount):
        return None

    def lock_balance(self, user_id, asset, amount):
        return None

    def unlock_balance(self, user_id, asset, amount):
        return None

    def execute_limit_trade(self, is_buyer_taker, market_id, base_asset, quote_asset,
                            buyer_user_id, seller_user_id, buyer_order_id,
                            seller_order_id, price, base_amount, quote_amount,
                            buyer_fee_rate, seller_fee_rate):
        return None

    def create_market(self, market_data):
        return market_data

    def upsert_market_stats(self, market_id, high_24h, low_24h, volume_24h,
                            price_change_24h, last_price):
        return None

    def create_fee_treasury(self, fee_treasury_data):
        return fee_treasury_data

    def transfer_to_fee_treasury(self, fee_amount):
        return None


class Both(Readers, Writers):
    pass


class OnlyMarkets(MarketDatabaseReader):
    def get_market(self, market_id):
        return None

    def list_markets(self):
        return []


@pytest.mark.parametrize(
    "interface, methods",
    [
        (OrderDatabaseReader, {"get_order", "get_active_orders", "list_orders"}),
        (
            OrderDatabaseWriter,
            {"create_order", "cancel_order", "cancel_all_orders",
             "cancel_all_global_orders", "update_order_status"},
        ),
        (WalletDatabaseReader, {"get_wallet", "list_wallets"}),
        (
            WalletDatabaseWriter,
            {"deposit_balance", "withdraw_balance", "lock_balance", "unlock_balance"},
        ),
        (TradeDatabaseReader, {"list_trades"}),
        (TradeDatabaseWriter, {"execute_limit_trade"}),
        (MarketDatabaseReader, {"get_market", "list_markets"}),
        (MarketDatabaseWriter, {"create_market"}),
        (MarketStatDatabaseReader, {"get_market_stats"}),
        (MarketStatDatabaseWriter, {"upsert_market_stats"}),
        (FeeTreasuryDatabaseReader, {"get_fee_treasury", "list_fee_treasuries"}),
        (FeeTreasuryDatabaseWriter, {"create_fee_treasury", "transfer_to_fee_treasury"}),
    ],
)
def test_interface_methods(interface, methods):
    assert interface.__abstractmethods__ == frozenset(methods)
    with pytest.raises(TypeError):
        interface()


def test_combined_interfaces_require_all_methods():
    assert len(DatabaseProvider.__abstractmethods__) == len(
        ReadDatabaseProvider.__abstractmethods__ | WriteDatabaseProvider.__abstractmethods__
    )
    with pytest.raises(TypeError):
        DatabaseProvider()


def test_all_readers_make_a_read_provider():
    with pytest.raises(TypeError):
        ReadDatabaseProvider()
    assert issubclass(Readers, ReadDatabaseProvider) is True
    assert issubclass(Readers, WriteDatabaseProvider) is False
    assert isinstance(Readers(), DatabaseProvider) is False


def test_all_writers_make_a_write_provider():
    with pytest.raises(TypeError):
        WriteDatabaseProvider()
    assert issubclass(Writers, WriteDatabaseProvider) is True
    assert issubclass(Writers, ReadDatabaseProvider) is False


def test_readers_and_writers_make_a_full_provider():
    with pytest.raises(TypeError):
        DatabaseProvider()
    provider = Both()
    assert isinstance(provider, DatabaseProvider) is True
    assert isinstance(provider, ReadDatabaseProvider) is True
    assert isinstance(provider, WriteDatabaseProvider) is True


def test_partial_implementation_is_not_a_provider():
    with pytest.raises(TypeError):
        MarketDatabaseReader()
    assert issubclass(OnlyMarkets, ReadDatabaseProvider) is False
    assert issubclass(OnlyMarkets, MarketDatabaseReader) is True
    assert issubclass(int, DatabaseProvider) is False