"""
Auth Profile Service

Central store for the authenticated user's profile. An instance tracks one
session: a single-user process shares one through get_instance(), while the
HTTP layer builds one per request and resumes the caller's own session.
Subscribers receive every profile change. The durable profile cache is
keyed by user id.

Notification fan-out is guarded against re-entrancy: a listener that causes
another profile change (for example by calling refresh_profile) does not
recurse into the fan-out. The new value is queued and delivered once the
current round has finished.
"""
import json
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from bountyexpo.shared.modules.bounty.bounty_backend import BountyBackend
from bountyexpo.shared.modules.bounty.models.profile import Profile, Session
from bountyexpo.shared.modules.cache.cache_store import CacheStore
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode
from bountyexpo.shared.modules.log.logger import get_logger

PROFILE_CACHE_KEY = "BE:authProfile"
PROFILE_CACHE_EXPIRY_MS = 5 * 60 * 1000  # 5 minutes
# Balance only moves through the wallet and escrow paths
PROTECTED_FIELDS = ("id", "created_at", "balance")

ProfileListener = Callable[[Optional[Profile]], None]


def profile_cache_key(user_id: str) -> str:
    return f"{PROFILE_CACHE_KEY}:{user_id}"


class AuthProfileService:
    _instance: Optional["AuthProfileService"] = None
    _instance_lock = threading.Lock()

    def __init__(self, backend: BountyBackend, store: CacheStore, cache_expiry_ms: int = PROFILE_CACHE_EXPIRY_MS):
        self.backend = backend
        self.store = store
        self.cache_expiry_ms = cache_expiry_ms
        self.logger = get_logger(self.__class__.__name__)

        self.current_session: Optional[Session] = None
        self.current_profile: Optional[Profile] = None

        self._listeners: List[ProfileListener] = []
        self._lock = threading.RLock()
        self._notifying = False
        self._pending: Deque[Optional[Profile]] = deque()

    @classmethod
    def get_instance(cls, backend: Optional[BountyBackend] = None, store: Optional[CacheStore] = None,
                     cache_expiry_ms: int = PROFILE_CACHE_EXPIRY_MS) -> "AuthProfileService":
        with cls._instance_lock:
            if cls._instance is None:
                if backend is None or store is None:
                    raise ValueError("AuthProfileService needs a backend and a store on first use")
                cls._instance = cls(backend, store, cache_expiry_ms)
            return cls._instance

    @classmethod
    def reset_instance(cls):
        with cls._instance_lock:
            cls._instance = None

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------
    def set_session(self, session: Optional[Session]) -> Optional[Profile]:
        """Set the current session and fetch/sync its profile."""
        previous, self.current_session = self.current_session, session

        if session is None:
            self.current_profile = None
            if previous is not None:
                self._clear_cache(previous.user_id)
            self._notify_listeners(None)
            return None

        return self.fetch_and_sync_profile(session.user_id)

    def resume_session(self, session: Session):
        """Adopt an already established session without refetching its profile."""
        self.current_session = session

    def get_auth_user_id(self) -> Optional[str]:
        return self.current_session.user_id if self.current_session else None

    def get_current_profile(self) -> Optional[Profile]:
        return self.current_profile

    # -------------------------------------------------------------------------
    # Profile sync
    # -------------------------------------------------------------------------
    def fetch_and_sync_profile(self, user_id: str) -> Optional[Profile]:
        """
        Fetch the profile from the backend and sync it with the local cache.
        A missing row gets a minimal profile; any other failure falls back to
        the cached copy for the same user.
        """
        try:
            profile = self.backend.get_profile(user_id)
        except BackendError as e:
            if e.code == BackendErrorCode.NOT_FOUND:
                self.logger.warning(f"Profile not found, creating minimal profile for {user_id}")
                return self._create_minimal_profile(user_id)
            return self._fallback_to_cache(user_id, e)
        except Exception as e:
            return self._fallback_to_cache(user_id, e)

        self._set_profile(profile)
        return profile

    def _fallback_to_cache(self, user_id: str, error: Exception) -> Optional[Profile]:
        self.logger.error(f"Error fetching profile {user_id}: {error}")
        cached = self._load_from_cache(user_id)
        if cached and cached.id == user_id:
            self.current_profile = cached
            self._notify_listeners(cached)
            return cached
        return None

    def _create_minimal_profile(self, user_id: str) -> Optional[Profile]:
        """
        Create a placeholder profile for an auth user that has no profile row.
        Onboarding replaces the generated username later.
        """
        email = self.current_session.email if self.current_session else None
        username = email.split("@")[0] if email else f"user_{user_id[:8]}"

        try:
            profile = self.backend.insert_profile(Profile(id=user_id, username=username, email=email, balance=0))
        except BackendError as e:
            if e.code != BackendErrorCode.DUPLICATE_KEY:
                self.logger.error(f"Error creating minimal profile for {user_id}: {e}")
                return None
            # Created concurrently by another session
            self.logger.warning(f"Profile already exists (concurrent creation): {user_id}")
            try:
                profile = self.backend.get_profile(user_id)
            except BackendError as fetch_error:
                self.logger.error(f"Error fetching concurrently created profile {user_id}: {fetch_error}")
                return None

        self._set_profile(profile)
        self.logger.info(f"Profile ready for {user_id} ({profile.username})")
        return profile

    def update_profile(self, updates: Dict[str, Any]) -> Optional[Profile]:
        user_id = self.get_auth_user_id()
        if not user_id:
            self.logger.error("Cannot update profile: no authenticated user")
            return None

        updates = {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}
        try:
            profile = self.backend.update_profile(user_id, updates)
        except BackendError as e:
            self.logger.error(f"Error updating profile {user_id} with {updates}: {e}")
            return None

        self._set_profile(profile)
        return profile

    def refresh_profile(self) -> Optional[Profile]:
        user_id = self.get_auth_user_id()
        if not user_id:
            return None
        return self.fetch_and_sync_profile(user_id)

    def _set_profile(self, profile: Profile):
        self.current_profile = profile
        self._cache_profile(profile)
        self._notify_listeners(profile)

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------
    def subscribe(self, listener: ProfileListener) -> Callable[[], None]:
        """
        Subscribe to profile changes. The listener is called immediately
        with the current profile. Returns an unsubscribe function.
        """
        with self._lock:
            self._listeners.append(listener)
            current = self.current_profile
        self._call_listener(listener, current)

        def unsubscribe():
            with self._lock:
                self._listeners = [l for l in self._listeners if l is not listener]

        return unsubscribe

    def _notify_listeners(self, profile: Optional[Profile]):
        with self._lock:
            self._pending.append(profile)
            if self._notifying:
                return
            self._notifying = True

        try:
            while True:
                with self._lock:
                    if not self._pending:
                        # cleared under the lock so a concurrent append is never stranded
                        self._notifying = False
                        return
                    value = self._pending.popleft()
                    listeners = list(self._listeners)
                for listener in listeners:
                    self._call_listener(listener, value)
        except BaseException:
            with self._lock:
                self._notifying = False
            raise

    def _call_listener(self, listener: ProfileListener, profile: Optional[Profile]):
        try:
            listener(profile)
        except Exception as e:
            self.logger.error(f"Error in profile listener: {e}")

    # -------------------------------------------------------------------------
    # Local cache
    # -------------------------------------------------------------------------
    def _cache_profile(self, profile: Profile):
        try:
            cached = {"profile": profile.model_dump(mode="json"), "timestamp": int(time.time() * 1000)}
            self.store.set(profile_cache_key(profile.id), json.dumps(cached))
        except Exception as e:
            self.logger.error(f"Error caching profile: {e}")

    def _load_from_cache(self, user_id: str) -> Optional[Profile]:
        try:
            cached_json = self.store.get(profile_cache_key(user_id))
            if not cached_json:
                return None
            cached = json.loads(cached_json)
            if int(time.time() * 1000) - cached["timestamp"] > self.cache_expiry_ms:
                return None
            return Profile(**cached["profile"])
        except Exception as e:
            self.logger.error(f"Error loading profile from cache: {e}")
            return None

    def _clear_cache(self, user_id: str):
        try:
            self.store.delete(profile_cache_key(user_id))
        except Exception as e:
            self.logger.error(f"Error clearing profile cache: {e}")
