"""
Cost ledgers.

A ledger is an append-only store of CostRecord entries. The in-memory ledger
is the default; the JSONL ledger persists one record per line so history
survives restarts.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

from .models import CostRecord

logger = logging.getLogger(__name__)


class CostLedger(ABC):
    """Abstract base class for cost record storage"""

    @abstractmethod
    def append(self, record: CostRecord) -> None:
        """
        Append one record

        Args:
            record: Record to store
        """
        pass

    @abstractmethod
    def query(self, predicate: Optional[Callable[[CostRecord], bool]] = None) -> List[CostRecord]:
        """
        Records matching a predicate, in insertion order

        Args:
            predicate: Filter; every record when omitted

        Returns:
            List of matching records
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every record"""
        pass

    def __len__(self) -> int:
        return len(self.query())


class InMemoryCostLedger(CostLedger):
    """Ledger held in process memory"""

    def __init__(self):
        self._records: List[CostRecord] = []
        self._lock = threading.Lock()

    def append(self, record: CostRecord) -> None:
        with self._lock:
            self._records.append(record)

    def query(self, predicate: Optional[Callable[[CostRecord], bool]] = None) -> List[CostRecord]:
        with self._lock:
            records = list(self._records)
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


class JsonlCostLedger(InMemoryCostLedger):
    """
    Ledger backed by an append-only JSON Lines file.

    Existing records are loaded on start; each append writes one line.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        with open(self.path, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    self._records.append(CostRecord.from_dict(json.loads(line)))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Skipping malformed ledger line {line_number} in {self.path}: {e}")
        logger.info(f"Loaded {len(self._records)} cost records from {self.path}")

    def append(self, record: CostRecord) -> None:
        with self._lock:
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(record.to_dict()) + "\n")
            self._records.append(record)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self.path.write_text("", encoding='utf-8')
