from __future__ import annotations
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from ..models import ANONYMOUS_STUDENT, Review, ReviewIn, ReviewStatus, StatusUpdate, compute_rating
from ..notifier import ChangeNotifier, EventKind, get_notifier
from ..sentiment import SentimentClassifier, get_sentiment_classifier
from ..store import REVIEWS, TEACHERS, VERSION_HEADER, RecordStore, find_index, get_store
from .auth import require_admin

router = APIRouter(prefix="/reviews", tags=["reviews"])

logger = logging.getLogger(__name__)


def now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


def _filter_status(reviews: list, status: Optional[ReviewStatus]) -> list:
	if status is None:
		return reviews
	return [r for r in reviews if r.get("status") == status.value]


@router.get("", response_model=List[Review])
async def list_reviews(
	response: Response,
	status: Optional[ReviewStatus] = None,
	store: RecordStore = Depends(get_store),
):
	with store.lock(REVIEWS):
		reviews = store.read_all(REVIEWS)
		response.headers[VERSION_HEADER] = str(store.version(REVIEWS))
	return _filter_status(reviews, status)


@router.get("/teacher/{teacher_id}", response_model=List[Review])
async def list_reviews_for_teacher(
	teacher_id: str,
	response: Response,
	status: Optional[ReviewStatus] = None,
	store: RecordStore = Depends(get_store),
):
	with store.lock(TEACHERS, REVIEWS):
		teachers = store.read_all(TEACHERS)
		response.headers[VERSION_HEADER] = str(store.version(REVIEWS))
		# Unknown teacher is usually a stale link in the UI: answer with nothing
		if find_index(teachers, teacher_id) == -1:
			return []
		reviews = store.read_all(REVIEWS)
	mine = [r for r in reviews if r.get("teacherId") == teacher_id]
	return _filter_status(mine, status)


@router.post("", status_code=201, response_model=Review)
async def create_review(
	req: ReviewIn,
	store: RecordStore = Depends(get_store),
	notifier: ChangeNotifier = Depends(get_notifier),
	classifier: SentimentClassifier = Depends(get_sentiment_classifier),
):
	with store.lock(TEACHERS, REVIEWS):
		teachers = store.read_all(TEACHERS)
		idx = find_index(teachers, req.teacher_id)
		if idx == -1:
			raise HTTPException(status_code=404, detail="Cannot add review for non-existent teacher")
		teacher = teachers[idx]
		try:
			review = Review(
				id=uuid.uuid4().hex,
				teacher_id=req.teacher_id,
				teacher_name=teacher.get("name", ""),
				student_name=(req.student_name or "").strip() or ANONYMOUS_STUDENT,
				comment=req.comment,
				metrics=req.metrics,
				rating=req.rating if req.rating is not None else compute_rating(req.metrics),
				created_at=now_iso(),
				status=ReviewStatus.PENDING,
				sentiment=classifier.classify(req.comment),
			).to_record()
			reviews = store.read_all(REVIEWS)
			reviews.append(review)
			version = store.write_all(REVIEWS, reviews)
		except Exception as e:
			logger.exception("Error creating review for teacher %s", req.teacher_id)
			raise HTTPException(status_code=500, detail=f"Error creating review: {e}")
	logger.info("Created review %s for teacher %s", review["id"], review["teacherId"])
	await notifier.broadcast(EventKind.REVIEW_CHANGED, version)
	return review


@router.patch("/{review_id}/status", response_model=Review)
async def update_review_status(
	review_id: str,
	req: StatusUpdate,
	store: RecordStore = Depends(get_store),
	notifier: ChangeNotifier = Depends(get_notifier),
	_admin=Depends(require_admin),
):
	with store.lock(TEACHERS, REVIEWS):
		reviews = store.read_all(REVIEWS)
		idx = find_index(reviews, review_id)
		if idx == -1:
			raise HTTPException(status_code=404, detail="Review not found")
		teachers = store.read_all(TEACHERS)
		if find_index(teachers, reviews[idx].get("teacherId", "")) == -1:
			raise HTTPException(status_code=400, detail="Cannot update review for deleted teacher")
		try:
			reviews[idx]["status"] = req.status.value
			version = store.write_all(REVIEWS, reviews)
		except Exception as e:
			logger.exception("Error updating status of review %s", review_id)
			raise HTTPException(status_code=500, detail=f"Error updating review status: {e}")
	logger.info("Review %s is now %s", review_id, req.status.value)
	await notifier.broadcast(EventKind.REVIEW_CHANGED, version)
	return reviews[idx]


@router.delete("/{review_id}")
async def delete_review(
	review_id: str,
	store: RecordStore = Depends(get_store),
	notifier: ChangeNotifier = Depends(get_notifier),
	_admin=Depends(require_admin),
):
	with store.lock(REVIEWS):
		reviews = store.read_all(REVIEWS)
		kept = [r for r in reviews if r.get("id") != review_id]
		if len(kept) == len(reviews):
			raise HTTPException(status_code=404, detail="Review not found")
		try:
			version = store.write_all(REVIEWS, kept)
		except Exception as e:
			logger.exception("Error deleting review %s", review_id)
			raise HTTPException(status_code=500, detail=f"Error deleting review: {e}")
	await notifier.broadcast(EventKind.REVIEW_CHANGED, version)
	return {"message": "Review deleted successfully"}
