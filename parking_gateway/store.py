# parking_gateway/store.py
"""
Discount type configuration store.

The real store belongs to the registration application; the gateway only needs
the read/update surface below. ``InMemoryDiscountTypeStore`` backs the service
and the tests.
"""
import enum
import logging
import threading
from typing import Any, Dict, List, Optional, Protocol

from .models import DiscountTypeConfig

logger = logging.getLogger(__name__)

NO_DISCOUNT_CODE = "none"

SYSTEM_DISCOUNT_TYPES = (
    DiscountTypeConfig(
        code="24hour",
        name="24小时优惠",
        description="短期停车优惠，适用于1天内离店",
        sortOrder=1,
        isSystem=True,
    ),
    DiscountTypeConfig(
        code="5day",
        name="5天优惠",
        description="长期停车优惠，适用于多日住宿",
        sortOrder=2,
        isSystem=True,
    ),
)


class DiscountTypeStore(Protocol):
    def bootstrap(self) -> None: ...

    def get_by_code(self, code: str) -> Optional[DiscountTypeConfig]: ...

    def list_all(self) -> List[DiscountTypeConfig]: ...

    def update(self, code: str, **fields: Any) -> Optional[DiscountTypeConfig]: ...


class StoreState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class InMemoryDiscountTypeStore:
    def __init__(self, seed: Optional[List[DiscountTypeConfig]] = None):
        self._seed = list(SYSTEM_DISCOUNT_TYPES if seed is None else seed)
        self._records: Dict[str, DiscountTypeConfig] = {}
        self._lock = threading.Lock()
        self.state = StoreState.UNINITIALIZED

    def bootstrap(self) -> None:
        # Idempotent: existing records are never overwritten by the seed
        with self._lock:
            if self.state is StoreState.READY:
                return
            self.state = StoreState.INITIALIZING
            for record in self._seed:
                self._records.setdefault(record.code, record.model_copy(deep=True))
            self.state = StoreState.READY
        logger.info("[STORE] bootstrapped %d discount types", len(self._records))

    def _ensure_ready(self) -> None:
        if self.state is not StoreState.READY:
            raise RuntimeError("discount type store used before bootstrap()")

    def get_by_code(self, code: str) -> Optional[DiscountTypeConfig]:
        self._ensure_ready()
        with self._lock:
            record = self._records.get(code)
            return record.model_copy(deep=True) if record else None

    def list_all(self) -> List[DiscountTypeConfig]:
        self._ensure_ready()
        with self._lock:
            records = sorted(self._records.values(), key=lambda r: r.sortOrder)
            return [r.model_copy(deep=True) for r in records]

    def update(self, code: str, **fields: Any) -> Optional[DiscountTypeConfig]:
        self._ensure_ready()
        with self._lock:
            record = self._records.get(code)
            if record is None:
                return None
            updated = record.model_copy(update=fields, deep=True)
            self._records[code] = updated
            return updated.model_copy(deep=True)
