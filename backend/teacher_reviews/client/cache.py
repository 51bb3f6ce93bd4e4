from __future__ import annotations
import json
import logging
import os
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

IMPORT_HISTORY = "imports"
PENDING_LOG = "pending"


class LocalCache:
	"""Client-side copies of the last fetched collections plus the offline write and import logs.

	Consulted only when the server cannot be reached. Missing or unreadable
	files behave like an empty cache.
	"""

	def __init__(self, cache_dir: str) -> None:
		self.cache_dir = cache_dir
		os.makedirs(cache_dir, exist_ok=True)

	def _path(self, name: str) -> str:
		return os.path.join(self.cache_dir, f"{name}.json")

	def _load(self, name: str) -> Optional[Any]:
		path = self._path(name)
		if not os.path.exists(path):
			return None
		try:
			with open(path, "r", encoding="utf-8") as f:
				return json.load(f)
		except (OSError, ValueError) as e:
			logger.error("Error loading cached %s from %s: %s", name, path, e)
			return None

	def _save(self, name: str, data: Any) -> None:
		path = self._path(name)
		tmp_path = f"{path}.tmp"
		try:
			with open(tmp_path, "w", encoding="utf-8") as f:
				json.dump(data, f, indent=2)
			os.replace(tmp_path, path)
		except OSError as e:
			# A cache that cannot be written only costs the offline fallback
			logger.error("Error saving cached %s to %s: %s", name, path, e)

	def load_snapshot(self, collection: str) -> Optional[List[Dict[str, Any]]]:
		data = self._load(collection)
		if data is None:
			return None
		if not isinstance(data, list):
			logger.error("Ignoring cached %s: expected a JSON array", collection)
			return None
		return data

	def save_snapshot(self, collection: str, records: List[Dict[str, Any]]) -> None:
		self._save(collection, records)

	def load_pending(self) -> List[Dict[str, Any]]:
		data = self._load(PENDING_LOG)
		return data if isinstance(data, list) else []

	def save_pending(self, entries: List[Dict[str, Any]]) -> None:
		self._save(PENDING_LOG, entries)

	def load_import_history(self) -> List[Dict[str, Any]]:
		data = self._load(IMPORT_HISTORY)
		return data if isinstance(data, list) else []

	def record_import(self, result: Dict[str, Any]) -> List[Dict[str, Any]]:
		"""Insert or replace an import entry (newest first) and persist the log."""
		history = [h for h in self.load_import_history() if h.get("id") != result.get("id")]
		history.insert(0, result)
		self._save(IMPORT_HISTORY, history)
		return history
