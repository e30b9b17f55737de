"""In-memory registry that makes signed reset tokens single-use and IP-bound."""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Set

from gestock.auth.errors import (
    ExpiredRegistrationError,
    IPMismatchError,
    TokenAlreadyUsedError,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 30 * 60


@dataclass
class RegistryEntry:
    ip_address: str
    issued_at: float


class TokenRegistry:
    """Process-local bookkeeping for password reset tokens.

    Every public method runs as a single critical section under one lock.
    Callers must not do I/O while holding a reservation-sensitive sequence;
    the lock itself is never held across calls.

    A token moves ``registered -> consumed`` (``mark_used``) or
    ``registered -> expired`` (``sweep``). ``reserve``/``release`` bracket a
    consume attempt so two concurrent attempts cannot both succeed.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.clock = clock

        self._lock = threading.Lock()
        self._entries: Dict[str, RegistryEntry] = {}
        # used token -> registration time, kept so sweep can evict it
        self._used: Dict[str, float] = {}
        self._pending: Set[str] = set()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def register(self, token: str, ip_address: str) -> None:
        """Record that ``token`` was issued to ``ip_address`` now."""
        with self._lock:
            self._entries[token] = RegistryEntry(ip_address=ip_address, issued_at=self.clock())
        logger.info(f"Reset token registered for IP {ip_address}")

    def is_used(self, token: str) -> bool:
        with self._lock:
            return token in self._used

    def reserve(self, token: str) -> None:
        """Atomically claim ``token`` for one consume attempt.

        Raises TokenAlreadyUsedError if the token was consumed or another
        attempt holds it.
        """
        with self._lock:
            if token in self._used or token in self._pending:
                raise TokenAlreadyUsedError('Reset token already used')
            self._pending.add(token)

    def release(self, token: str) -> None:
        """Drop a reservation after a failed consume attempt."""
        with self._lock:
            self._pending.discard(token)

    def mark_used(self, token: str) -> None:
        """Move ``token`` to the used set and forget its entry. Idempotent."""
        with self._lock:
            entry = self._entries.pop(token, None)
            self._pending.discard(token)
            if token not in self._used:
                self._used[token] = entry.issued_at if entry else self.clock()
        logger.info("Reset token marked as used")

    def validate_ip(self, token: str, ip_address: str) -> None:
        with self._lock:
            entry = self._entries.get(token)
        if entry is None:
            logger.warning("Reset token not found in registry")
            raise IPMismatchError('Reset token is not registered')
        if entry.ip_address != ip_address:
            logger.warning(f"Reset token IP mismatch. Expected: {entry.ip_address}, got: {ip_address}")
            raise IPMismatchError('Reset token was requested from a different IP')

    def validate_age(self, token: str) -> None:
        with self._lock:
            entry = self._entries.get(token)
            now = self.clock()
        if entry is None:
            raise ExpiredRegistrationError('Reset token is not registered')
        age = now - entry.issued_at
        if age > self.ttl_seconds:
            logger.warning(f"Reset token registration expired. Age: {int(age // 60)} minutes")
            raise ExpiredRegistrationError('Reset token registration has expired')

    def sweep(self) -> int:
        """Evict entries and used tokens older than the TTL.

        Tokens reserved by an in-flight consume are left for the next sweep.
        Returns the number of tokens removed.
        """
        removed = 0
        with self._lock:
            now = self.clock()
            for token, entry in list(self._entries.items()):
                if token in self._pending:
                    continue
                if now - entry.issued_at > self.ttl_seconds:
                    del self._entries[token]
                    self._used.pop(token, None)
                    removed += 1
            for token, issued_at in list(self._used.items()):
                if now - issued_at > self.ttl_seconds:
                    del self._used[token]
                    removed += 1
            active = len(self._entries)

        if removed:
            logger.info(f"Swept {removed} expired reset tokens. Active tokens: {active}")
        return removed

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def used_count(self) -> int:
        with self._lock:
            return len(self._used)

    def start(self):
        """Start the background sweeper thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._sweep_loop, daemon=True, name="TokenRegistrySweeper")
        self._thread.start()
        logger.info(f"Started token registry sweeper (every {self.sweep_interval_seconds}s)")

    def stop(self):
        """Stop the background sweeper thread."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=5)
        self._thread = None
        logger.info("Stopped token registry sweeper")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _sweep_loop(self):
        while not self._stop_event.wait(self.sweep_interval_seconds):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Error sweeping reset tokens: {e}", exc_info=True)


# Global registry instance
_global_registry: Optional[TokenRegistry] = None
_global_lock = threading.Lock()


def get_token_registry(ttl_seconds: float = DEFAULT_TTL_SECONDS,
                       sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> TokenRegistry:
    """Get or create the process-wide registry and start its sweeper.

    Settings only apply on the first call.
    """
    global _global_registry
    with _global_lock:
        if _global_registry is None:
            _global_registry = TokenRegistry(ttl_seconds, sweep_interval_seconds)
            _global_registry.start()
        return _global_registry


def shutdown_token_registry():
    """Stop and discard the process-wide registry."""
    global _global_registry
    with _global_lock:
        if _global_registry is not None:
            _global_registry.stop()
            _global_registry = None
