"""
Service Factory for creating business service instances with proper dependencies.
"""
import threading
from typing import Optional

from bountyexpo.backend.config.settings import Settings
from bountyexpo.backend.database.context import DatabaseContext
from bountyexpo.backend.modules.bounty.services.board_loader import BoardLoader
from bountyexpo.backend.modules.bounty.services.mongo_bounty_backend import MongoBountyBackend
from bountyexpo.backend.modules.bounty.services.request_acceptance_service import RequestAcceptanceService
from bountyexpo.backend.modules.messaging.local_message_service import LocalMessageService
from bountyexpo.backend.modules.notification.notification_dispatcher import NotificationDispatcher
from bountyexpo.backend.modules.payments.services.mongo_escrow_ledger import MongoEscrowLedger
from bountyexpo.shared.modules.cache.cache_store import CacheStore
from bountyexpo.shared.modules.cache.cached_data_service import CachedDataService
from bountyexpo.shared.modules.cache.memory_cache_store import MemoryCacheStore
from bountyexpo.shared.modules.cache.redis_cache_store import RedisCacheStore
from bountyexpo.shared.modules.log.error_reporter import ErrorReporter
from bountyexpo.shared.modules.network.network_monitor import PollingNetworkMonitor
from bountyexpo.shared.modules.profile.auth_profile_service import AuthProfileService
from bountyexpo.shared.modules.queue.redis_client import RedisQueueClient


class ServiceFactory:
    """
    Factory for creating service instances with injected dependencies.

    Per-request services are built fresh; the cache (memory tier included),
    its store, the network monitor and the error reporter live for the whole
    process so that every request shares them.
    """

    _settings: Optional[Settings] = None
    _store: Optional[CacheStore] = None
    _cache: Optional[CachedDataService] = None
    _monitor: Optional[PollingNetworkMonitor] = None
    _error_reporter: Optional[ErrorReporter] = None
    _lock = threading.RLock()

    @classmethod
    def get_settings(cls) -> Settings:
        with cls._lock:
            if cls._settings is None:
                cls._settings = Settings.from_env()
            return cls._settings

    @classmethod
    def get_cache_store(cls) -> CacheStore:
        with cls._lock:
            if cls._store is None:
                settings = cls.get_settings()
                if settings.cache_backend == "memory":
                    cls._store = MemoryCacheStore()
                else:
                    cls._store = RedisCacheStore(settings.redis_host, settings.redis_port, settings.redis_cache_db)
            return cls._store

    @classmethod
    def get_cached_data_service(cls) -> CachedDataService:
        """
        The process-wide data cache, following reachability of the database.
        The monitor is polled on a daemon thread started on first use.
        """
        with cls._lock:
            if cls._cache is None:
                settings = cls.get_settings()
                ping_backend = MongoBountyBackend(DatabaseContext.get_mongo_db())
                cls._monitor = PollingNetworkMonitor(ping_backend.ping, interval_seconds=settings.network_poll_interval)
                cls._cache = CachedDataService(
                    cls.get_cache_store(),
                    network_monitor=cls._monitor,
                    default_ttl_ms=settings.cache_ttl_ms,
                )
                cls._monitor.start()
            return cls._cache

    @classmethod
    def get_error_reporter(cls) -> ErrorReporter:
        with cls._lock:
            if cls._error_reporter is None:
                cls._error_reporter = ErrorReporter()
            return cls._error_reporter

    @classmethod
    def reset(cls):
        """Drop the shared instances (tests, settings reload)."""
        with cls._lock:
            if cls._monitor is not None:
                cls._monitor.stop(timeout=1.0)
            if cls._cache is not None:
                cls._cache.close()
            cls._settings = cls._store = cls._cache = cls._monitor = cls._error_reporter = None

    @staticmethod
    def create_bounty_backend() -> MongoBountyBackend:
        # Get database from Flask context (works in both request and app context)
        mongo_db = DatabaseContext.get_mongo_db()
        return MongoBountyBackend(mongo_db, payments=MongoEscrowLedger(mongo_db))

    @staticmethod
    def create_board_loader() -> BoardLoader:
        return BoardLoader(ServiceFactory.create_bounty_backend(), ServiceFactory.get_cached_data_service())

    @staticmethod
    def create_notification_dispatcher() -> NotificationDispatcher:
        settings = ServiceFactory.get_settings()
        queue_client = RedisQueueClient(settings.notification_queue, settings.redis_host, settings.redis_port)
        return NotificationDispatcher(queue_client)

    @staticmethod
    def create_request_acceptance_service() -> RequestAcceptanceService:
        backend = ServiceFactory.create_bounty_backend()
        loader = BoardLoader(backend, ServiceFactory.get_cached_data_service())
        return RequestAcceptanceService(
            backend,
            loader,
            LocalMessageService(ServiceFactory.get_cache_store()),
            notifier=ServiceFactory.create_notification_dispatcher(),
            error_reporter=ServiceFactory.get_error_reporter(),
        )

    @staticmethod
    def create_auth_profile_service() -> AuthProfileService:
        """
        A profile store for one HTTP caller. Each request resumes the
        caller's own session, so no session state is shared between users.
        """
        return AuthProfileService(
            ServiceFactory.create_bounty_backend(),
            ServiceFactory.get_cache_store(),
            cache_expiry_ms=ServiceFactory.get_settings().profile_cache_ttl_ms,
        )
