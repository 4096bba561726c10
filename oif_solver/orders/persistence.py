"""
Snapshot persistence for the order store.

Orders are written as a single JSON document. Writes go to a temporary file
in the target directory and are swapped in with ``os.replace``, so a crash
mid-write leaves the previous snapshot intact.
"""
import json
import logging
import os
import tempfile
from typing import Iterable, List

from oif_solver.exceptions import PersistenceError
from oif_solver.orders.models import Order, utcnow

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotPersistence:
    """
    Saves and loads order snapshots.

    Supports:
    - Atomic snapshot writes
    - Tolerant loading (missing or corrupt files yield an empty store)
    """

    def __init__(self, path: str):
        """
        Initialize persistence.

        Args:
            path: Snapshot file location
        """
        self.path = path

    def save_snapshot(self, orders: Iterable[Order]) -> int:
        """
        Write every order to the snapshot file.

        Args:
            orders: Orders to persist

        Returns:
            Number of orders written

        Raises:
            PersistenceError: If the file could not be written
        """
        records = [order.to_dict() for order in orders]
        document = {
            "version": SNAPSHOT_VERSION,
            "saved_at": utcnow().isoformat(),
            "orders": records,
        }

        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".orders-", suffix=".json.tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistenceError(f"Failed to save snapshot to {self.path}: {e}") from e

        logger.info(f"Saved {len(records)} orders to {self.path}")
        return len(records)

    def load_snapshot(self) -> List[Order]:
        """
        Read orders from the snapshot file.

        Returns:
            Saved orders, or an empty list if the file is missing or unreadable
        """
        if not os.path.exists(self.path):
            logger.info(f"No snapshot at {self.path}, starting empty")
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)
            orders = [Order.from_dict(record) for record in document["orders"]]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable snapshot {self.path}: {e}")
            return []

        version = document.get("version")
        if version != SNAPSHOT_VERSION:
            logger.warning(f"Snapshot {self.path} has version {version}, expected {SNAPSHOT_VERSION}")

        logger.info(f"Loaded {len(orders)} orders from {self.path}")
        return orders
