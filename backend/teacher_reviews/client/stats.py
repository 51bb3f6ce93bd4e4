"""Derived data for the client views, computed from ``SyncAgent.views``."""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..models import METRIC_NAMES, ReviewStatus, Sentiment

ALL_STATUSES = "all"


def _has_metrics(review: Dict[str, Any]) -> bool:
	return isinstance(review.get("metrics"), dict) and isinstance(review.get("rating"), (int, float))


def _mean(values: Sequence[float]) -> float:
	return sum(values) / len(values) if values else 0.0


def dashboard_stats(
	teachers: List[Dict[str, Any]],
	reviews: List[Dict[str, Any]],
	import_history: Optional[List[Dict[str, Any]]] = None,
	*,
	top: int = 3,
	recent_imports: int = 5,
) -> Dict[str, Any]:
	"""Admin dashboard figures over every review regardless of status."""
	rated = [r for r in reviews if _has_metrics(r)]
	ratings: Dict[str, List[float]] = {}
	for review in rated:
		ratings.setdefault(review.get("teacherId", ""), []).append(float(review["rating"]))

	top_rated = [
		{"id": t["id"], "name": t.get("name", ""), "rating": _mean(ratings[t["id"]]), "reviewsCount": len(ratings[t["id"]])}
		for t in teachers
		if t.get("id") in ratings
	]
	# Stable sort keeps list order among equal ratings
	top_rated.sort(key=lambda t: t["rating"], reverse=True)

	return {
		"totalTeachers": len(teachers),
		"totalReviews": len(reviews),
		"averageRating": _mean([float(r["rating"]) for r in rated]),
		"pendingReviews": sum(1 for r in reviews if r.get("status") == ReviewStatus.PENDING.value),
		"recentImports": list(import_history or [])[:recent_imports],
		"topRatedTeachers": top_rated[:top],
		"sentimentBreakdown": {s.value: sum(1 for r in reviews if r.get("sentiment") == s.value) for s in Sentiment},
	}


def teacher_summary(
	teacher_id: str,
	reviews: Iterable[Dict[str, Any]],
	status: Optional[str] = ReviewStatus.APPROVED.value,
) -> Dict[str, Any]:
	"""Average rating and per-metric averages for one teacher.

	Only approved reviews count by default, as on the public profile; pass
	``status=None`` to include every review. With no reviews every figure is 0.
	"""
	mine = [
		r for r in reviews
		if r.get("teacherId") == teacher_id and _has_metrics(r) and (status is None or r.get("status") == status)
	]
	return {
		"teacherId": teacher_id,
		"reviewCount": len(mine),
		"averageRating": _mean([float(r["rating"]) for r in mine]),
		"metricAverages": {name: _mean([r["metrics"].get(name, 0) for r in mine]) for name in METRIC_NAMES},
	}


def teacher_fields(teachers: Iterable[Dict[str, Any]]) -> List[str]:
	"""Distinct subject fields in first-seen order."""
	seen: List[str] = []
	for teacher in teachers:
		field = teacher.get("field", "")
		if field and field not in seen:
			seen.append(field)
	return seen


def filter_teachers(
	teachers: Iterable[Dict[str, Any]],
	search: str = "",
	field: str = "",
	*,
	search_in: Sequence[str] = ("name", "bio"),
) -> List[Dict[str, Any]]:
	"""Case-insensitive substring search over ``search_in`` plus an exact field filter."""
	needle = search.strip().lower()
	result = []
	for teacher in teachers:
		if field and teacher.get("field") != field:
			continue
		if needle and not any(needle in str(teacher.get(key, "")).lower() for key in search_in):
			continue
		result.append(teacher)
	return result


def filter_reviews(
	reviews: Iterable[Dict[str, Any]],
	status: Optional[str] = ALL_STATUSES,
	search: str = "",
) -> List[Dict[str, Any]]:
	"""Moderation filter: status (or ``"all"``) and a search over comment and teacher name."""
	needle = search.strip().lower()
	result = []
	for review in reviews:
		if status not in (None, ALL_STATUSES) and review.get("status") != status:
			continue
		text = f"{review.get('comment', '')}\n{review.get('teacherName', '')}".lower()
		if needle and needle not in text:
			continue
		result.append(review)
	return result
