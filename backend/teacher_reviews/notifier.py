from __future__ import annotations
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
	TEACHER_CHANGED = "teacher_updated"
	REVIEW_CHANGED = "review_updated"


Listener = Callable[[EventKind, int], Union[None, Awaitable[None]]]


def event_message(kind: EventKind, version: int) -> Dict[str, Any]:
	return {"event": kind.value, "version": version}


class ChangeNotifier:
	"""Fan-out of "a collection changed" events.

	Events carry only the kind and the collection version; subscribers
	re-fetch the collection themselves. Nothing is queued for clients that
	are not connected when an event is emitted.
	"""

	def __init__(self) -> None:
		self._sockets: Set[WebSocket] = set()
		self._listeners: List[Listener] = []

	@property
	def subscriber_count(self) -> int:
		return len(self._sockets)

	async def connect(self, websocket: WebSocket) -> None:
		# Only accepted sockets can be sent to
		await websocket.accept()
		self._sockets.add(websocket)
		logger.info("New client connected: %s", _client_label(websocket))

	def disconnect(self, websocket: WebSocket) -> None:
		if websocket in self._sockets:
			self._sockets.discard(websocket)
			logger.info("Client disconnected: %s", _client_label(websocket))

	def add_listener(self, listener: Listener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _remove() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)
		return _remove

	async def broadcast(self, kind: EventKind, version: int) -> None:
		message = event_message(kind, version)
		dead: List[WebSocket] = []
		for ws in list(self._sockets):
			try:
				await ws.send_json(message)
			except Exception as e:
				logger.warning("Dropping subscriber %s after failed send: %s", _client_label(ws), e)
				dead.append(ws)
		for ws in dead:
			self._sockets.discard(ws)
		for listener in list(self._listeners):
			result = listener(kind, version)
			if inspect.isawaitable(result):
				await result
		logger.debug("Broadcast %s v%d to %d clients", kind.value, version, len(self._sockets))


def _client_label(websocket: WebSocket) -> str:
	client = getattr(websocket, "client", None)
	if client is None:
		return hex(id(websocket))
	return f"{client.host}:{client.port}"


_notifier: Optional[ChangeNotifier] = None


def get_notifier() -> ChangeNotifier:
	global _notifier
	if _notifier is None:
		_notifier = ChangeNotifier()
	return _notifier
