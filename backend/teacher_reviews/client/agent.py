"""Client-side sync agent.

Keeps a per-session view of the teacher and review collections current:
loads them on start, re-fetches a collection whenever the server announces
it changed, and falls back to the local cache when the API is unreachable.
Records created while offline are kept locally with a ``local-`` id. Offline
edits and deletes are logged as pending operations and replayed over every
refreshed snapshot until discarded; there is no automatic merge with the server.
"""

from __future__ import annotations
import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import websockets
from websockets.exceptions import WebSocketException

from ..models import ReviewStatus, Sentiment
from ..notifier import EventKind
from ..settings import ClientSettings
from ..store import REVIEWS, TEACHERS
from .api import ApiError, OfflineError, ReviewApiClient, collection_records
from .cache import LocalCache
from .forms import ReviewDraft
from .stats import dashboard_stats

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local-"
OFFLINE_MESSAGE = "Could not connect to server. Working with local data."

EVENT_COLLECTIONS: Dict[str, str] = {
	EventKind.TEACHER_CHANGED.value: TEACHERS,
	EventKind.REVIEW_CHANGED.value: REVIEWS,
}


class ConnectionState(str, Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	CONNECTED = "connected"


@dataclass(frozen=True)
class Synced:
	id: str


@dataclass(frozen=True)
class PendingSync:
	local_id: str


RecordRef = Union[Synced, PendingSync]


def new_local_id() -> str:
	return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def record_ref(record: Dict[str, Any]) -> RecordRef:
	record_id = str(record.get("id", ""))
	if record_id.startswith(LOCAL_ID_PREFIX):
		return PendingSync(record_id)
	return Synced(record_id)


class PendingOp(str, Enum):
	CREATE = "create"
	UPDATE = "update"
	DELETE = "delete"


@dataclass
class PendingRecord:
	"""A write made offline, replayed over every refreshed snapshot.

	``record`` is the full record for a create, the changed fields (plus
	``id``) for an update and just ``{"id": ...}`` for a delete.
	"""

	collection: str
	ref: RecordRef
	record: Dict[str, Any]
	op: PendingOp = PendingOp.CREATE

	def to_json(self) -> Dict[str, Any]:
		return {"collection": self.collection, "op": self.op.value, "record": self.record}

	@classmethod
	def from_json(cls, data: Dict[str, Any]) -> "PendingRecord":
		record = data["record"]
		return cls(data["collection"], record_ref(record), record, PendingOp(data.get("op", PendingOp.CREATE.value)))


def overlay_pending(records: List[Dict[str, Any]], pending: Iterable[PendingRecord]) -> List[Dict[str, Any]]:
	view = list(records)
	for p in pending:
		record_id = p.record.get("id")
		if p.op == PendingOp.CREATE:
			view.append(p.record)
		elif p.op == PendingOp.UPDATE:
			view = [{**r, **p.record} if r.get("id") == record_id else r for r in view]
		else:
			view = [r for r in view if r.get("id") != record_id]
	return view


class SyncAgent:
	def __init__(
		self,
		api: Optional[ReviewApiClient] = None,
		cache: Optional[LocalCache] = None,
		*,
		ws_url: Optional[str] = None,
		collections: Sequence[str] = (TEACHERS, REVIEWS),
		reconnect_attempts: Optional[int] = None,
		reconnect_delay: Optional[float] = None,
		reconnect_delay_max: Optional[float] = None,
		connect: Optional[Callable[[str], Any]] = None,
		sleep: Optional[Callable[[float], Any]] = None,
	) -> None:
		cfg = ClientSettings()
		self.api = api or ReviewApiClient(cfg.api_base_url, timeout=cfg.http_timeout_seconds)
		self.cache = cache or LocalCache(cfg.cache_dir)
		self.ws_url = ws_url or cfg.ws_url
		self.collections = tuple(collections)
		self.reconnect_attempts = cfg.reconnect_attempts if reconnect_attempts is None else reconnect_attempts
		self.reconnect_delay = cfg.reconnect_delay_seconds if reconnect_delay is None else reconnect_delay
		self.reconnect_delay_max = cfg.reconnect_delay_max_seconds if reconnect_delay_max is None else reconnect_delay_max
		self._connect = connect or websockets.connect
		self._sleep = sleep or asyncio.sleep

		self.state = ConnectionState.DISCONNECTED
		self.offline = False
		self.error_message: Optional[str] = None
		self.views: Dict[str, List[Dict[str, Any]]] = {TEACHERS: [], REVIEWS: []}
		self.pending: List[PendingRecord] = []
		self._applied_versions: Dict[str, int] = {}
		self._change_listeners: List[Callable[[str], Any]] = []
		self._state_listeners: List[Callable[[ConnectionState], Any]] = []
		self._task: Optional[asyncio.Task] = None
		self._stopped = False
		self._restore_pending()

	# ---- listeners ----

	def on_change(self, callback: Callable[[str], Any]) -> Callable[[], None]:
		self._change_listeners.append(callback)
		return lambda: self._change_listeners.remove(callback) if callback in self._change_listeners else None

	def on_state_change(self, callback: Callable[[ConnectionState], Any]) -> Callable[[], None]:
		self._state_listeners.append(callback)
		return lambda: self._state_listeners.remove(callback) if callback in self._state_listeners else None

	def _emit_change(self, collection: str) -> None:
		for cb in list(self._change_listeners):
			cb(collection)

	def _set_state(self, state: ConnectionState) -> None:
		if state == self.state:
			return
		logger.info("Notification channel %s -> %s", self.state.value, state.value)
		self.state = state
		for cb in list(self._state_listeners):
			cb(state)

	def _go_offline(self) -> None:
		if not self.offline:
			logger.warning("API unreachable, switching to offline mode")
		self.offline = True
		self.error_message = OFFLINE_MESSAGE

	def _go_online(self) -> None:
		if self.offline:
			logger.info("API reachable again, leaving offline mode")
		self.offline = False
		self.error_message = None

	# ---- lifecycle ----

	async def start(self) -> None:
		"""Initial load, then keep the notification channel open in the background."""
		self._stopped = False
		await self.load()
		self._task = asyncio.create_task(self.run())

	async def stop(self) -> None:
		self._stopped = True
		if self._task is not None:
			self._task.cancel()
			try:
				await self._task
			except asyncio.CancelledError:
				pass
			self._task = None
		self._set_state(ConnectionState.DISCONNECTED)

	async def aclose(self) -> None:
		await self.stop()
		await self.api.aclose()

	async def run(self) -> None:
		attempts = 0
		while not self._stopped:
			self._set_state(ConnectionState.CONNECTING)
			try:
				async with self._connect(self.ws_url) as ws:
					attempts = 0
					self._set_state(ConnectionState.CONNECTED)
					# The server may have restarted and reset its counters
					self._applied_versions.clear()
					await self.load()
					async for raw in ws:
						await self.handle_message(raw)
			except (OSError, WebSocketException, asyncio.TimeoutError) as e:
				logger.warning("Notification channel error: %s", e)
			self._set_state(ConnectionState.DISCONNECTED)
			if self._stopped:
				break
			attempts += 1
			if attempts > self.reconnect_attempts:
				logger.error("Reconnection failed after %d attempts; manual refresh only", self.reconnect_attempts)
				break
			delay = min(self.reconnect_delay * (2 ** (attempts - 1)), self.reconnect_delay_max)
			logger.info("Reconnection attempt #%d in %.1fs", attempts, delay)
			await self._sleep(delay)

	async def handle_message(self, raw: Union[str, bytes]) -> None:
		try:
			message = json.loads(raw)
		except ValueError:
			message = raw.decode() if isinstance(raw, bytes) else raw
		if isinstance(message, str):
			message = {"event": message.strip()}
		if not isinstance(message, dict):
			return
		collection = EVENT_COLLECTIONS.get(message.get("event"))
		if collection is None or collection not in self.collections:
			logger.debug("Ignoring event %r", message.get("event"))
			return
		version = message.get("version")
		if isinstance(version, int) and version <= self._applied_versions.get(collection, -1):
			logger.debug("Already at %s v%d, skipping re-fetch", collection, self._applied_versions[collection])
			return
		try:
			await self.refresh(collection)
		except OfflineError as e:
			logger.warning("Re-fetch of %s after %s failed: %s", collection, message.get("event"), e)

	# ---- reads ----

	async def load(self, collections: Optional[Iterable[str]] = None) -> None:
		for collection in collections or self.collections:
			try:
				await self.refresh(collection)
			except OfflineError as e:
				logger.warning("No %s available: %s", collection, e)

	async def refresh(self, collection: str) -> List[Dict[str, Any]]:
		"""Full re-fetch of one collection; serves the cached copy if the API fails."""
		try:
			fetched = await self.api.fetch_collection(collection)
		except (OfflineError, ApiError) as e:
			logger.warning("Fetching %s failed (%s); using cached data", collection, e)
			self._go_offline()
			return self._serve_cached(collection)
		self._go_online()
		self._apply(collection, collection_records(fetched), fetched.version)
		return self.views[collection]

	def _apply(self, collection: str, records: List[Dict[str, Any]], version: Optional[int]) -> bool:
		if version is not None:
			applied = self._applied_versions.get(collection, -1)
			if version < applied:
				logger.debug("Discarding stale %s snapshot v%d (have v%d)", collection, version, applied)
				return False
			self._applied_versions[collection] = version
		view = overlay_pending(records, (p for p in self.pending if p.collection == collection))
		self.views[collection] = view
		self.cache.save_snapshot(collection, view)
		self._emit_change(collection)
		return True

	def _serve_cached(self, collection: str) -> List[Dict[str, Any]]:
		cached = self.cache.load_snapshot(collection)
		if cached is None:
			raise OfflineError(f"No cached {collection} available")
		self.views[collection] = cached
		self._emit_change(collection)
		return cached

	def _cached_records(self, collection: str) -> List[Dict[str, Any]]:
		if self.views.get(collection):
			return list(self.views[collection])
		return list(self.cache.load_snapshot(collection) or [])

	async def get_teacher(self, teacher_id: str) -> Optional[Dict[str, Any]]:
		try:
			fetched = await self.api.get_teacher(teacher_id)
			self._go_online()
			return fetched.data
		except ApiError as e:
			if e.status_code == 404:
				self._go_online()
				return None
			self._go_offline()
		except OfflineError:
			self._go_offline()
		return next((t for t in self._cached_records(TEACHERS) if t.get("id") == teacher_id), None)

	async def reviews_for_teacher(self, teacher_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
		try:
			fetched = await self.api.reviews_for_teacher(teacher_id, status)
			self._go_online()
			return collection_records(fetched)
		except (OfflineError, ApiError):
			self._go_offline()
		return [
			r for r in self._cached_records(REVIEWS)
			if r.get("teacherId") == teacher_id and (status is None or r.get("status") == status)
		]

	# ---- writes ----

	async def _after_write(self, *collections: str) -> None:
		# Connected sessions hear about the change from the server instead
		if self.state == ConnectionState.CONNECTED:
			return
		await self.load(c for c in collections if c in self.collections)

	def _save_pending(self) -> None:
		self.cache.save_pending([p.to_json() for p in self.pending])

	def _queue(self, collection: str, op: PendingOp, record: Dict[str, Any]) -> None:
		ref = record_ref(record)
		if op == PendingOp.UPDATE:
			for p in self.pending:
				if p.collection == collection and p.ref == ref and p.op == PendingOp.UPDATE:
					p.record = {**p.record, **record}
					break
			else:
				self.pending.append(PendingRecord(collection, ref, record, op))
		else:
			self.pending.append(PendingRecord(collection, ref, record, op))
		self._save_pending()
		logger.info("Queued offline %s of %s %s", op.value, collection, record.get("id"))

	def _add_pending(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
		local_id = new_local_id()
		record = {**fields, "id": local_id}
		self.pending.append(PendingRecord(collection, PendingSync(local_id), record))
		self._save_pending()
		records = self._cached_records(collection) + [record]
		self._replace_local(collection, records)
		logger.info("Stored %s %s locally, pending sync", collection, local_id)
		return record

	def _replace_local(self, collection: str, records: List[Dict[str, Any]]) -> None:
		self.views[collection] = records
		self.cache.save_snapshot(collection, records)
		self._emit_change(collection)

	def _edit_local(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
		records = self._cached_records(collection)
		for i, rec in enumerate(records):
			if rec.get("id") == record_id:
				records[i] = {**rec, **changes, "id": record_id}
				created = next(
					(p for p in self.pending if p.op == PendingOp.CREATE and p.ref == PendingSync(record_id)), None)
				if created is not None:
					# Still unsynced: fold the edit into the pending create
					created.record = records[i]
					self._save_pending()
				else:
					self._queue(collection, PendingOp.UPDATE, {**changes, "id": record_id})
				self._replace_local(collection, records)
				return records[i]
		raise OfflineError(f"{collection} record {record_id} is not available offline")

	def _remove_local(self, collection: str, keep: Callable[[Dict[str, Any]], bool]) -> int:
		records = self._cached_records(collection)
		kept = [r for r in records if keep(r)]
		removed_ids = [r.get("id") for r in records if not keep(r)]
		self.pending = [p for p in self.pending if not (p.collection == collection and p.record.get("id") in removed_ids)]
		for record_id in removed_ids:
			if not str(record_id).startswith(LOCAL_ID_PREFIX):
				self.pending.append(PendingRecord(collection, Synced(record_id), {"id": record_id}, PendingOp.DELETE))
		if removed_ids:
			self._save_pending()
		self._replace_local(collection, kept)
		return len(removed_ids)

	async def create_teacher(self, teacher: Dict[str, Any]) -> Dict[str, Any]:
		try:
			created = await self.api.create_teacher(teacher)
		except OfflineError:
			self._go_offline()
			return self._add_pending(TEACHERS, teacher)
		await self._after_write(TEACHERS)
		return created

	async def update_teacher(self, teacher_id: str, teacher: Dict[str, Any]) -> Dict[str, Any]:
		try:
			updated = await self.api.update_teacher(teacher_id, teacher)
		except OfflineError:
			self._go_offline()
			changes = {k: v for k, v in teacher.items() if not (k == "photo" and not v)}
			updated = self._edit_local(TEACHERS, teacher_id, changes)
			if "name" in changes:
				for review in self._cached_records(REVIEWS):
					if review.get("teacherId") == teacher_id:
						self._edit_local(REVIEWS, review["id"], {"teacherName": changes["name"]})
			return updated
		await self._after_write(TEACHERS, REVIEWS)
		return updated

	async def delete_teacher(self, teacher_id: str) -> Dict[str, Any]:
		try:
			result = await self.api.delete_teacher(teacher_id)
		except OfflineError:
			self._go_offline()
			self._remove_local(TEACHERS, lambda t: t.get("id") != teacher_id)
			removed = self._remove_local(REVIEWS, lambda r: r.get("teacherId") != teacher_id)
			return {"message": "Teacher deleted locally", "reviewsRemoved": removed}
		await self._after_write(TEACHERS, REVIEWS)
		return result

	async def submit_review(self, draft: ReviewDraft) -> Dict[str, Any]:
		"""Validate and submit a review; kept locally as pending if offline."""
		teacher = next((t for t in self._cached_records(TEACHERS) if t.get("id") == draft.teacher_id), None)
		payload = draft.to_payload(teacher.get("name") if teacher else None)
		try:
			created = await self.api.create_review(payload)
		except OfflineError:
			self._go_offline()
			record = {
				"teacherName": "",
				**payload,
				"createdAt": datetime.now(timezone.utc).isoformat(),
				"status": ReviewStatus.PENDING.value,
				"sentiment": Sentiment.NEUTRAL.value,
			}
			return self._add_pending(REVIEWS, record)
		await self._after_write(REVIEWS)
		return created

	async def update_review_status(self, review_id: str, status: Union[ReviewStatus, str]) -> Dict[str, Any]:
		value = ReviewStatus(status).value
		try:
			updated = await self.api.update_review_status(review_id, value)
		except OfflineError:
			self._go_offline()
			return self._edit_local(REVIEWS, review_id, {"status": value})
		await self._after_write(REVIEWS)
		return updated

	async def delete_review(self, review_id: str) -> Dict[str, Any]:
		try:
			result = await self.api.delete_review(review_id)
		except OfflineError:
			self._go_offline()
			self._remove_local(REVIEWS, lambda r: r.get("id") != review_id)
			return {"message": "Review deleted locally"}
		await self._after_write(REVIEWS)
		return result

	async def login(self, username: str, password: str) -> Dict[str, Any]:
		return await self.api.login(username, password)

	def dashboard(self) -> Dict[str, Any]:
		return dashboard_stats(self.views[TEACHERS], self.views[REVIEWS], self.cache.load_import_history())

	# ---- pending sync ----

	def _restore_pending(self) -> None:
		for entry in self.cache.load_pending():
			try:
				self.pending.append(PendingRecord.from_json(entry))
			except (KeyError, TypeError, ValueError) as e:
				logger.error("Skipping unreadable pending entry %r: %s", entry, e)
		if self.pending:
			logger.info("Restored %d writes pending sync from cache", len(self.pending))

	def is_pending(self, record: Dict[str, Any]) -> bool:
		"""True for records created, edited or deleted offline and not yet discarded."""
		ref = record_ref(record)
		return isinstance(ref, PendingSync) or any(p.ref == ref for p in self.pending)

	def discard_pending(self, ref: RecordRef) -> bool:
		"""Drop the offline writes for one record; the next refresh shows the server copy."""
		matches = [p for p in self.pending if p.ref == ref]
		if not matches:
			return False
		if isinstance(ref, PendingSync):
			self._remove_local(matches[0].collection, lambda r: r.get("id") != ref.local_id)
		else:
			self.pending = [p for p in self.pending if p.ref != ref]
			self._save_pending()
		return True
