from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..settings import ClientSettings
from ..store import VERSION_HEADER

logger = logging.getLogger(__name__)


class OfflineError(Exception):
	"""The server could not be reached (connection refused, DNS, timeout)."""


class ApiError(Exception):
	"""The server answered with a non-2xx status."""

	def __init__(self, status_code: int, message: str, details: Optional[Dict[str, Any]] = None) -> None:
		super().__init__(message)
		self.status_code = status_code
		self.message = message
		self.details = details or {}

	@classmethod
	def from_response(cls, r: httpx.Response) -> "ApiError":
		message = r.reason_phrase or f"HTTP {r.status_code}"
		details: Dict[str, Any] = {}
		try:
			detail = r.json().get("detail")
		except Exception:
			detail = None
		if isinstance(detail, str):
			message = detail
		elif isinstance(detail, dict):
			message = str(detail.get("message", message))
			details = detail.get("details") or {}
		elif isinstance(detail, list) and detail:
			# pydantic validation errors
			message = "; ".join(str(item.get("msg", item)) for item in detail if isinstance(item, dict)) or message
		return cls(r.status_code, message, details)


@dataclass
class Fetched:
	data: Any
	version: Optional[int] = None


class ReviewApiClient:
	def __init__(
		self,
		base_url: Optional[str] = None,
		*,
		timeout: Optional[float] = None,
		token: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		client_settings = ClientSettings()
		self.base_url = (base_url or client_settings.api_base_url).rstrip("/")
		self.token = token
		self._client = httpx.AsyncClient(
			base_url=self.base_url,
			timeout=timeout if timeout is not None else client_settings.http_timeout_seconds,
			headers={"Content-Type": "application/json"},
			transport=transport,
		)

	async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
		headers: Dict[str, str] = {}
		if self.token:
			headers["Authorization"] = f"Bearer {self.token}"
		try:
			r = await self._client.request(method, path, headers=headers, **kwargs)
		except httpx.TimeoutException as e:
			raise OfflineError("Request timed out.") from e
		except httpx.RequestError as e:
			raise OfflineError("Cannot connect to server. Please check your internet connection.") from e
		if r.is_error:
			err = ApiError.from_response(r)
			logger.warning("API error %s %s -> %d: %s", method, path, err.status_code, err.message)
			raise err
		return r

	async def _fetch(self, path: str, params: Optional[Dict[str, str]] = None) -> Fetched:
		r = await self._request("GET", path, params=params)
		raw_version = r.headers.get(VERSION_HEADER)
		version = int(raw_version) if raw_version and raw_version.isdigit() else None
		return Fetched(r.json(), version)

	async def list_teachers(self) -> Fetched:
		return await self._fetch("/teachers")

	async def get_teacher(self, teacher_id: str) -> Fetched:
		return await self._fetch(f"/teachers/{teacher_id}")

	async def create_teacher(self, teacher: Dict[str, Any]) -> Dict[str, Any]:
		return (await self._request("POST", "/teachers", json=teacher)).json()

	async def update_teacher(self, teacher_id: str, teacher: Dict[str, Any]) -> Dict[str, Any]:
		return (await self._request("PUT", f"/teachers/{teacher_id}", json=teacher)).json()

	async def delete_teacher(self, teacher_id: str) -> Dict[str, Any]:
		return (await self._request("DELETE", f"/teachers/{teacher_id}")).json()

	async def list_reviews(self, status: Optional[str] = None) -> Fetched:
		return await self._fetch("/reviews", {"status": status} if status else None)

	async def reviews_for_teacher(self, teacher_id: str, status: Optional[str] = None) -> Fetched:
		return await self._fetch(f"/reviews/teacher/{teacher_id}", {"status": status} if status else None)

	async def create_review(self, review: Dict[str, Any]) -> Dict[str, Any]:
		return (await self._request("POST", "/reviews", json=review)).json()

	async def update_review_status(self, review_id: str, status: str) -> Dict[str, Any]:
		return (await self._request("PATCH", f"/reviews/{review_id}/status", json={"status": status})).json()

	async def delete_review(self, review_id: str) -> Dict[str, Any]:
		return (await self._request("DELETE", f"/reviews/{review_id}")).json()

	async def login(self, username: str, password: str) -> Dict[str, Any]:
		data = (await self._request("POST", "/auth/login", json={"username": username, "password": password})).json()
		self.token = data.get("token")
		return data

	async def fetch_collection(self, collection: str) -> Fetched:
		if collection == "teachers":
			return await self.list_teachers()
		if collection == "reviews":
			return await self.list_reviews()
		raise KeyError(f"unknown collection: {collection}")

	async def aclose(self) -> None:
		await self._client.aclose()


def collection_records(fetched: Fetched) -> List[Dict[str, Any]]:
	return fetched.data if isinstance(fetched.data, list) else []
