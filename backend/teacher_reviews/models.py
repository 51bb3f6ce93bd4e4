from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ANONYMOUS_STUDENT = "Anonymous Student"
METRIC_NAMES = ("teaching", "knowledge", "engagement", "approachability", "responsiveness")


class ReviewStatus(str, Enum):
	PENDING = "pending"
	APPROVED = "approved"
	FLAGGED = "flagged"
	REMOVED = "removed"


class Sentiment(str, Enum):
	POSITIVE = "positive"
	NEUTRAL = "neutral"
	NEGATIVE = "negative"


class _WireModel(BaseModel):
	# Records are stored and sent with camelCase keys (teacherId, createdAt, ...)
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True, validate_default=True)

	def to_record(self) -> Dict[str, Any]:
		return self.model_dump(by_alias=True)


class Teacher(_WireModel):
	id: str
	name: str
	field: str
	experience: int = Field(ge=0)
	bio: str
	photo: str = ""


class TeacherIn(_WireModel):
	# Required fields are checked by the router so the 400 detail names them
	name: str = ""
	field: str = ""
	experience: Optional[int] = None
	bio: str = ""
	photo: Optional[str] = None


class ReviewMetrics(_WireModel):
	teaching: int = Field(ge=1, le=5)
	knowledge: int = Field(ge=1, le=5)
	engagement: int = Field(ge=1, le=5)
	approachability: int = Field(ge=1, le=5)
	responsiveness: int = Field(ge=1, le=5)


def compute_rating(metrics: ReviewMetrics) -> float:
	"""Overall rating: arithmetic mean of the five sub-ratings."""
	values = [getattr(metrics, name) for name in METRIC_NAMES]
	return sum(values) / len(values)


class Review(_WireModel):
	id: str
	teacher_id: str
	teacher_name: str
	student_name: str = ANONYMOUS_STUDENT
	comment: str = ""
	metrics: ReviewMetrics
	rating: float
	created_at: str
	status: ReviewStatus = ReviewStatus.PENDING
	sentiment: Sentiment = Sentiment.NEUTRAL


class ReviewIn(_WireModel):
	teacher_id: str
	# Ignored: the server copies the current teacher name
	teacher_name: Optional[str] = None
	student_name: Optional[str] = None
	comment: str = ""
	metrics: ReviewMetrics
	rating: Optional[float] = Field(default=None, ge=1, le=5)


class StatusUpdate(BaseModel):
	status: ReviewStatus


class LoginRequest(BaseModel):
	username: str
	password: str


class AdminUser(BaseModel):
	username: str
	role: str = "admin"


class LoginResponse(BaseModel):
	token: str
	user: AdminUser
