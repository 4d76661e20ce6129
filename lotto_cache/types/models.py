"""
Data models and type definitions for the caching engine.

This module defines the data structures shared by the stores, the
persistence layer, the namespace registry and the logging system.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum, auto
from typing import Dict, Optional, Any, Generic, TypeVar

T = TypeVar('T')

# Version tag written into every persisted entry
ENTRY_FORMAT_VERSION = 1


class LogLevel(Enum):
    """Logging levels for structured logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheOperation(Enum):
    """Store operations tagged on maintenance log entries."""
    DELETE = auto()
    CLEAR = auto()
    INVALIDATE = auto()
    CLEANUP = auto()
    EVICT = auto()
    LOAD = auto()


class DomainEvent(Enum):
    """Domain data changes that require cache invalidation."""
    SALES = "sales"
    COMMISSIONS = "commissions"
    PAID_PRIZES = "paid_prizes"
    TICKETS = "tickets"
    TICKET_AVERAGES = "ticket_averages"
    ROLL_CHANGES = "roll_changes"
    USER = "user"
    DASHBOARD = "dashboard"


@dataclass
class CacheEntry(Generic[T]):
    """
    A single cached payload with its lifetime metadata.

    All timestamps are seconds since the epoch. ``expires_at`` is fixed at
    creation time; reading an entry never extends it.
    """
    data: T
    created_at: float
    expires_at: float
    access_count: int = 1
    last_accessed_at: float = 0.0

    @classmethod
    def create(cls, data: T, now: float, ttl_minutes: float) -> 'CacheEntry[T]':
        """Build a fresh entry that expires ``ttl_minutes`` after ``now``."""
        return cls(
            data=data,
            created_at=now,
            expires_at=now + ttl_minutes * 60,
            access_count=1,
            last_accessed_at=now
        )

    def is_expired(self, now: float) -> bool:
        """An entry is expired from ``expires_at`` onwards."""
        return now >= self.expires_at

    def touch(self, now: float) -> None:
        """Record a cache hit."""
        self.access_count += 1
        self.last_accessed_at = now

    def eviction_score(self, now: float) -> float:
        """
        Frequency/recency score used to pick an eviction victim.

        Lower scores are evicted first. Each minute since the last access
        costs a tenth of an access.
        """
        idle_minutes = (now - self.last_accessed_at) / 60
        return self.access_count - idle_minutes * 0.1

    def to_storage(self) -> Dict[str, Any]:
        """Convert to the plain structure written to the durable medium."""
        return {
            'version': ENTRY_FORMAT_VERSION,
            'data': self.data,
            'createdAt': self.created_at,
            'expiresAt': self.expires_at,
            'accessCount': self.access_count,
            'lastAccessedAt': self.last_accessed_at
        }

    @classmethod
    def from_storage(cls, raw: Dict[str, Any]) -> 'CacheEntry':
        """
        Rebuild an entry from its stored structure.

        Raises:
            ValueError: If the version tag is unknown or a field is malformed
            KeyError: If a required field is missing
        """
        if raw.get('version') != ENTRY_FORMAT_VERSION:
            raise ValueError(f"Unsupported entry format version: {raw.get('version')!r}")

        entry = cls(
            data=raw['data'],
            created_at=float(raw['createdAt']),
            expires_at=float(raw['expiresAt']),
            access_count=int(raw['accessCount']),
            last_accessed_at=float(raw['lastAccessedAt'])
        )
        if entry.expires_at <= entry.created_at or entry.access_count < 1:
            raise ValueError("Stored entry violates its lifetime invariants")
        return entry

    def to_debug_dict(self, now: float) -> Dict[str, Any]:
        """Human-oriented view used by the debug dump."""
        return {
            'data': self.data,
            'created_at': datetime.fromtimestamp(self.created_at).isoformat(),
            'expires_at': datetime.fromtimestamp(self.expires_at).isoformat(),
            'last_accessed_at': datetime.fromtimestamp(self.last_accessed_at).isoformat(),
            'access_count': self.access_count,
            'ttl_remaining_seconds': max(0.0, self.expires_at - now),
            'is_expired': self.is_expired(now)
        }


@dataclass
class CacheStats:
    """Cache performance statistics."""
    hits: int = 0
    misses: int = 0
    total_requests: int = 0
    saved_requests: int = 0
    size: int = 0
    efficiency: int = 0

    def recompute(self, size: int) -> None:
        """Refresh the derived fields after a mutation."""
        self.size = size
        self.efficiency = efficiency_percent(self.hits, self.total_requests)

    def copy(self) -> 'CacheStats':
        return CacheStats(**asdict(self))

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def efficiency_percent(hits: int, total_requests: int) -> int:
    """Rounded hit percentage, 0 when nothing was requested."""
    if total_requests <= 0:
        return 0
    # Half-up rounding so 2.5% reports as 3 rather than banker's 2
    return int(100 * hits / total_requests + 0.5)


@dataclass
class NamespaceConfig:
    """Capacity, default TTL and persistence flag for one namespace."""
    max_size: int
    default_ttl_minutes: float
    persistent: bool = False

    def validate(self, name: str) -> None:
        """
        Validate namespace values.

        Raises:
            ValueError: If any value is out of range
        """
        if not isinstance(self.max_size, int) or self.max_size <= 0:
            raise ValueError(f"{name}: max_size must be a positive integer")
        if self.default_ttl_minutes <= 0:
            raise ValueError(f"{name}: default_ttl_minutes must be positive")
        if not isinstance(self.persistent, bool):
            raise ValueError(f"{name}: persistent must be a boolean")


def default_namespaces() -> Dict[str, NamespaceConfig]:
    """Namespaces sized by how volatile their data is."""
    return {
        'sales': NamespaceConfig(max_size=50, default_ttl_minutes=15, persistent=True),
        'finances': NamespaceConfig(max_size=50, default_ttl_minutes=240, persistent=True),
        'user': NamespaceConfig(max_size=20, default_ttl_minutes=30, persistent=True),
        # Too dynamic to be worth persisting
        'dashboard': NamespaceConfig(max_size=10, default_ttl_minutes=10, persistent=False),
    }


@dataclass
class CacheSettings:
    """
    Type-safe configuration for the caching engine.

    Loaded from the environment by ``ConfigManager``; tests usually build it
    directly.
    """
    namespaces: Dict[str, NamespaceConfig] = field(default_factory=default_namespaces)
    storage_path: Optional[str] = "data/cache_storage.json"
    key_prefix: str = "lotto_cache:"
    storage_backups: int = 0
    cleanup_interval: float = 300  # 5 minutes
    timezone: str = "America/Mexico_City"
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
    environment: str = "development"

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid
        """
        if not self.namespaces:
            raise ValueError("at least one cache namespace must be configured")
        for name, namespace in self.namespaces.items():
            namespace.validate(name)

        if not self.key_prefix:
            raise ValueError("key_prefix cannot be empty")

        if self.cleanup_interval < 0:
            raise ValueError("cleanup_interval cannot be negative")

        if self.storage_backups < 0:
            raise ValueError("storage_backups cannot be negative")

        valid_log_levels = [level.value for level in LogLevel]
        if self.log_level not in valid_log_levels:
            raise ValueError(f"log_level must be one of {valid_log_levels}")

        valid_environments = ["development", "testing", "production"]
        if self.environment not in valid_environments:
            raise ValueError(f"environment must be one of {valid_environments}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        return asdict(self)

    def get_environment_specific_defaults(self) -> Dict[str, Any]:
        """Get environment-specific default values."""
        if self.environment == "testing":
            return {
                "storage_path": None,
                "cleanup_interval": 0,
                "log_level": "DEBUG",
                "log_dir": None
            }
        if self.environment == "development":
            return {"log_level": "DEBUG"}
        return {"log_level": "INFO"}


@dataclass
class LogEntry:
    """Structured log entry."""
    timestamp: datetime
    level: LogLevel
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    service: Optional[str] = None
    operation: Optional[str] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON logging."""
        data = {
            'timestamp': self.timestamp.isoformat(),
            'level': self.level.value,
            'message': self.message,
            'context': self.context
        }

        if self.service:
            data['service'] = self.service
        if self.operation:
            data['operation'] = self.operation
        if self.duration_ms is not None:
            data['duration_ms'] = self.duration_ms
        if self.error:
            data['error'] = self.error

        return data
