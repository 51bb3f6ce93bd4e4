from __future__ import annotations
import json
import logging
import os
import tempfile
import threading
from contextlib import ExitStack, contextmanager
from typing import Any, Dict, Iterator, List

from .settings import settings

logger = logging.getLogger(__name__)

TEACHERS = "teachers"
REVIEWS = "reviews"
VERSION_HEADER = "X-Collection-Version"
# Lock acquisition order; cross-collection writers always take teachers first
COLLECTIONS = (TEACHERS, REVIEWS)


class RecordStore:
	"""Flat-file store for the two record collections.

	Each collection is one JSON array on disk. There is no partial update:
	callers read the whole collection, build the new one and write it back.
	"""

	def __init__(self, data_dir: str) -> None:
		self.data_dir = data_dir
		os.makedirs(data_dir, exist_ok=True)
		self._locks: Dict[str, threading.RLock] = {name: threading.RLock() for name in COLLECTIONS}
		self._versions: Dict[str, int] = {name: 0 for name in COLLECTIONS}
		for name in COLLECTIONS:
			path = self._path(name)
			if not os.path.exists(path):
				with open(path, "w", encoding="utf-8") as f:
					json.dump([], f)
		logger.info("Record store using data_dir=%s", data_dir)

	def _path(self, collection: str) -> str:
		if collection not in self._locks:
			raise KeyError(f"unknown collection: {collection}")
		return os.path.join(self.data_dir, f"{collection}.json")

	def read_all(self, collection: str) -> List[Dict[str, Any]]:
		path = self._path(collection)
		try:
			with open(path, "r", encoding="utf-8") as f:
				data = json.load(f)
		except (OSError, ValueError) as e:
			logger.error("Error reading %s data from %s: %s", collection, path, e)
			return []
		if not isinstance(data, list):
			logger.error("Corrupt %s data in %s: expected a JSON array", collection, path)
			return []
		return data

	def write_all(self, collection: str, records: List[Dict[str, Any]]) -> int:
		path = self._path(collection)
		with self._locks[collection]:
			fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{collection}-", suffix=".tmp")
			try:
				with os.fdopen(fd, "w", encoding="utf-8") as f:
					json.dump(records, f, indent=2)
				os.replace(tmp_path, path)
			except Exception:
				logger.exception("Error saving %s data to %s", collection, path)
				if os.path.exists(tmp_path):
					os.remove(tmp_path)
				raise
			self._versions[collection] += 1
			logger.debug("Saved %d %s (version %d)", len(records), collection, self._versions[collection])
			return self._versions[collection]

	def version(self, collection: str) -> int:
		self._path(collection)
		return self._versions[collection]

	@contextmanager
	def lock(self, *collections: str) -> Iterator[None]:
		"""Hold the given collections' locks for a read-modify-write cycle."""
		for name in collections:
			self._path(name)
		with ExitStack() as stack:
			for name in COLLECTIONS:
				if name in collections:
					stack.enter_context(self._locks[name])
			yield


def find_index(records: List[Dict[str, Any]], record_id: str) -> int:
	for i, rec in enumerate(records):
		if rec.get("id") == record_id:
			return i
	return -1


_store: RecordStore | None = None


def get_store() -> RecordStore:
	global _store
	if _store is None:
		_store = RecordStore(settings.data_dir)
	return _store
