"""
Service container using dependency-injector for the portfolio monitor
"""
from dependency_injector import containers, providers

from portfolio_monitor.config import Credentials, StoreConfig
from portfolio_monitor.core.scheduler import MonitorScheduler, build_monitor_tasks
from portfolio_monitor.gateways import OkxAccountClient, OkxHttpClient, OkxMarketDataClient, OkxRequestSigner
from portfolio_monitor.services.alert_evaluator import AlertEvaluator
from portfolio_monitor.services.high_low_tracker import HighLowTracker
from portfolio_monitor.services.movement_detector import MovementDetector
from portfolio_monitor.services.notification_service import TelegramNotificationService
from portfolio_monitor.services.position_ledger import PositionLedger
from portfolio_monitor.services.rollup_service import RollupService
from portfolio_monitor.store import InMemoryStateStore, MonitorRepository, RedisStateStore, StateStore


def _create_state_store(store_config: StoreConfig, credentials: Credentials) -> StateStore:
    if store_config.backend == "memory":
        return InMemoryStateStore(namespace=store_config.namespace)
    return RedisStateStore(
        credentials.redis_url,
        namespace=store_config.namespace,
        max_retries=store_config.max_retries,
        retry_delay=store_config.retry_delay_seconds
    )


class ServiceContainer(containers.DeclarativeContainer):
    """DI Container for the portfolio monitor"""

    # Supplied at construction as providers.Object overrides
    config = providers.Dependency()
    credentials = providers.Dependency()

    # State
    state_store = providers.Singleton(
        _create_state_store,
        store_config=config.provided.store,
        credentials=credentials
    )

    repository = providers.Singleton(
        MonitorRepository,
        store=state_store,
        default_movement_threshold=config.provided.monitor.default_movement_threshold_percent
    )

    # Exchange gateways
    request_signer = providers.Singleton(
        OkxRequestSigner,
        credentials=credentials
    )

    http_client = providers.Singleton(
        OkxHttpClient,
        config=config.provided.exchange,
        signer=request_signer
    )

    market_data = providers.Singleton(
        OkxMarketDataClient,
        http=http_client
    )

    account = providers.Singleton(
        OkxAccountClient,
        http=http_client,
        minimum_asset_value=config.provided.monitor.minimum_asset_value_usd
    )

    # Notifications
    notifier = providers.Singleton(
        TelegramNotificationService,
        config=config.provided.notifications,
        credentials=credentials,
        repository=repository
    )

    # Monitoring services
    position_ledger = providers.Singleton(
        PositionLedger,
        repository=repository,
        market_data=market_data,
        account=account,
        notifier=notifier,
        quote_currency=config.provided.exchange.quote_currency,
        epsilon=config.provided.monitor.epsilon
    )

    movement_detector = providers.Singleton(
        MovementDetector,
        repository=repository,
        notifier=notifier,
        quote_currency=config.provided.exchange.quote_currency
    )

    alert_evaluator = providers.Singleton(
        AlertEvaluator,
        repository=repository,
        notifier=notifier
    )

    high_low_tracker = providers.Singleton(
        HighLowTracker,
        repository=repository,
        quote_currency=config.provided.exchange.quote_currency
    )

    rollup_service = providers.Singleton(
        RollupService,
        repository=repository,
        market_data=market_data,
        account=account,
        notifier=notifier,
        daily_history_limit=config.provided.monitor.daily_history_limit,
        hourly_history_limit=config.provided.monitor.hourly_history_limit
    )

    # Scheduling
    monitor_tasks = providers.Callable(
        build_monitor_tasks,
        intervals=config.provided.monitor.intervals,
        market_data=market_data,
        position_ledger=position_ledger,
        movement_detector=movement_detector,
        alert_evaluator=alert_evaluator,
        high_low_tracker=high_low_tracker,
        rollup_service=rollup_service,
        notifier=notifier
    )

    scheduler = providers.Singleton(
        MonitorScheduler,
        tasks=monitor_tasks
    )
