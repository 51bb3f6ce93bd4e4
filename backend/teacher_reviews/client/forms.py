from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models import ANONYMOUS_STUDENT, METRIC_NAMES, ReviewMetrics, compute_rating

MIN_COMMENT_LENGTH = 10


class FormError(ValueError):
	pass


@dataclass
class ReviewDraft:
	"""What a student fills in before a review is submitted.

	Metrics start at 0 meaning "not rated yet"; submission requires every
	metric in 1..5 and a comment of at least MIN_COMMENT_LENGTH characters.
	"""

	teacher_id: str
	comment: str = ""
	metrics: Dict[str, int] = field(default_factory=lambda: {name: 0 for name in METRIC_NAMES})
	student_name: Optional[str] = None

	def set_metric(self, name: str, value: int) -> None:
		if name not in METRIC_NAMES:
			raise FormError(f"Unknown metric: {name}")
		self.metrics[name] = value

	def validate(self) -> ReviewMetrics:
		if len(self.comment.strip()) < MIN_COMMENT_LENGTH:
			raise FormError(f"Please provide a more detailed comment (at least {MIN_COMMENT_LENGTH} characters).")
		values = [self.metrics.get(name, 0) for name in METRIC_NAMES]
		if any(not isinstance(v, int) or v < 1 or v > 5 for v in values):
			raise FormError("Please rate all categories before submitting.")
		return ReviewMetrics(**{name: self.metrics[name] for name in METRIC_NAMES})

	def to_payload(self, teacher_name: Optional[str] = None) -> Dict[str, Any]:
		metrics = self.validate()
		payload: Dict[str, Any] = {
			"teacherId": self.teacher_id,
			"studentName": (self.student_name or "").strip() or ANONYMOUS_STUDENT,
			"comment": self.comment.strip(),
			"metrics": metrics.to_record(),
			"rating": compute_rating(metrics),
		}
		if teacher_name:
			payload["teacherName"] = teacher_name
		return payload
