"""
Keyed record store interface for securelink.

A store holds independent namespaces; each namespace is one JSON object
mapping string keys to JSON-serializable records. Namespaces are loaded and
saved whole. The only mutation path is ``update_all`` (and the key-level
helpers built on it), which implementations must serialize per namespace
across the full load-modify-save cycle.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple


logger = logging.getLogger(__name__)


LINKS = "links"
BINDINGS = "binds"
LOGS = "logs"

NAMESPACES = (LINKS, BINDINGS, LOGS)


Records = Dict[str, Any]

# fn(records) -> result; may mutate records in place
MutateAll = Callable[[Records], Any]

# fn(current record or None) -> (new record or None, result)
MutateOne = Callable[[Optional[Any]], Tuple[Optional[Any], Any]]


def encode_records(records: Records) -> str:
    """Serialize a namespace the way it is written to disk."""
    return json.dumps(records, indent=2)


def decode_records(namespace: str, text: Optional[str]) -> Records:
    """
    Parse a serialized namespace.

    Missing, empty, corrupt or non-object content all yield an empty mapping.
    """
    if not text:
        return {}
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Namespace '{namespace}' is corrupt, treating as empty: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Namespace '{namespace}' does not hold an object, treating as empty")
        return {}
    return data


class RecordStore(ABC):
    """
    Abstract base class for keyed record store implementations.

    Mappings returned by ``load`` and passed to mutation callbacks are fresh
    copies owned by the caller for one cycle; they are never shared with the
    store or with other callers.
    """

    backend_name = "abstract"

    @abstractmethod
    async def load(self, namespace: str) -> Records:
        """
        Load a whole namespace.

        Returns:
            The mapping, or an empty mapping if the namespace does not exist
            or cannot be read
        """
        pass

    @abstractmethod
    async def update_all(self, namespace: str, fn: MutateAll,
                         timeout: Optional[float] = None) -> Any:
        """
        Run one serialized load-modify-save cycle over a namespace.

        ``fn`` receives the freshest persisted mapping and may mutate it in
        place. The mapping is written back only if it changed.

        Args:
            namespace: Namespace name
            fn: Mutation callback
            timeout: Override for the contention timeout in seconds

        Returns:
            Whatever ``fn`` returned

        Raises:
            BusyError: If exclusive access could not be obtained in time
            StorageFailureError: If reading or writing failed
        """
        pass

    async def save(self, namespace: str, records: Records,
                   timeout: Optional[float] = None) -> None:
        """Replace a whole namespace."""
        def replace(current: Records) -> None:
            current.clear()
            current.update(records)

        await self.update_all(namespace, replace, timeout=timeout)

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        """Read one record without taking the namespace lock."""
        records = await self.load(namespace)
        return records.get(key)

    async def update(self, namespace: str, key: str, fn: MutateOne,
                     timeout: Optional[float] = None) -> Any:
        """
        Serialized read-modify-write of a single key.

        ``fn`` receives the current record (or None) and returns
        ``(new_record, result)``; a new record of None deletes the key.
        """
        def apply(records: Records) -> Any:
            new_value, result = fn(records.get(key))
            if new_value is None:
                records.pop(key, None)
            else:
                records[key] = new_value
            return result

        return await self.update_all(namespace, apply, timeout=timeout)

    async def put(self, namespace: str, key: str, value: Any,
                  timeout: Optional[float] = None) -> None:
        """Insert or overwrite one record."""
        await self.update(namespace, key, lambda _current: (value, None), timeout=timeout)

    async def append(self, namespace: str, key: str, item: Any,
                     timeout: Optional[float] = None) -> int:
        """
        Append to the list stored at key, creating it if absent.

        Returns:
            The list length after the append
        """
        def add(current: Optional[Any]) -> Tuple[Any, int]:
            entries = list(current) if isinstance(current, list) else []
            entries.append(item)
            return entries, len(entries)

        return await self.update(namespace, key, add, timeout=timeout)

    async def close(self) -> None:
        """Release backend resources."""
        pass
