from __future__ import annotations
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from ..models import Teacher, TeacherIn
from ..notifier import ChangeNotifier, EventKind, get_notifier
from ..settings import settings
from ..store import REVIEWS, TEACHERS, VERSION_HEADER, RecordStore, find_index, get_store
from .auth import require_admin

router = APIRouter(prefix="/teachers", tags=["teachers"])

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields. Please provide name, field, experience, and bio."


def _check_fields(req: TeacherIn, *, allow_zero_experience: bool) -> None:
	name = (req.name or "").strip()
	field = (req.field or "").strip()
	bio = (req.bio or "").strip()
	if not name or not field or not bio or req.experience is None:
		raise HTTPException(status_code=400, detail=MISSING_FIELDS)
	if req.experience < 0:
		raise HTTPException(status_code=400, detail="experience must be a non-negative integer")
	if req.experience == 0 and not allow_zero_experience:
		raise HTTPException(status_code=400, detail=MISSING_FIELDS)


def _check_photo(photo: str, *, allow_url: bool) -> None:
	if not photo.startswith("data:"):
		if allow_url:
			return
		raise HTTPException(status_code=400, detail="Invalid image format. Must be a valid data URL.")
	if not photo.startswith("data:image/"):
		raise HTTPException(status_code=400, detail="Invalid image format. Must be a valid image data URL.")
	if len(photo) > settings.max_photo_chars:
		size_kb = round(len(photo) / 1024)
		logger.info("Image too large (%dKB), rejecting", size_kb)
		raise HTTPException(
			status_code=400,
			detail={
				"message": f"Image is too large. Please use an image smaller than {settings.max_photo_chars // 1_000_000}MB.",
				"details": {"imageSize": f"{size_kb}KB"},
			},
		)


@router.get("", response_model=List[Teacher])
async def list_teachers(response: Response, store: RecordStore = Depends(get_store)):
	with store.lock(TEACHERS):
		teachers = store.read_all(TEACHERS)
		response.headers[VERSION_HEADER] = str(store.version(TEACHERS))
	return teachers


@router.get("/{teacher_id}", response_model=Teacher)
async def get_teacher(teacher_id: str, response: Response, store: RecordStore = Depends(get_store)):
	with store.lock(TEACHERS):
		teachers = store.read_all(TEACHERS)
		response.headers[VERSION_HEADER] = str(store.version(TEACHERS))
	idx = find_index(teachers, teacher_id)
	if idx == -1:
		raise HTTPException(status_code=404, detail="Teacher not found")
	return teachers[idx]


@router.post("", status_code=201, response_model=Teacher)
async def create_teacher(
	req: TeacherIn,
	store: RecordStore = Depends(get_store),
	notifier: ChangeNotifier = Depends(get_notifier),
	_admin=Depends(require_admin),
):
	_check_fields(req, allow_zero_experience=False)
	photo = req.photo or ""
	if photo:
		_check_photo(photo, allow_url=False)
	try:
		teacher = Teacher(
			id=uuid.uuid4().hex,
			name=req.name.strip(),
			field=req.field.strip(),
			experience=req.experience,
			bio=req.bio.strip(),
			photo=photo,
		).to_record()
		with store.lock(TEACHERS):
			teachers = store.read_all(TEACHERS)
			teachers.append(teacher)
			version = store.write_all(TEACHERS, teachers)
	except Exception as e:
		logger.exception("Error creating teacher")
		raise HTTPException(status_code=500, detail=f"Error creating teacher: {e}")
	logger.info("Created teacher %s (%s)", teacher["id"], teacher["name"])
	await notifier.broadcast(EventKind.TEACHER_CHANGED, version)
	return teacher


@router.put("/{teacher_id}", response_model=Teacher)
async def update_teacher(
	teacher_id: str,
	req: TeacherIn,
	store: RecordStore = Depends(get_store),
	notifier: ChangeNotifier = Depends(get_notifier),
	_admin=Depends(require_admin),
):
	_check_fields(req, allow_zero_experience=True)
	if req.photo:
		_check_photo(req.photo, allow_url=True)
	review_version: Optional[int] = None
	with store.lock(TEACHERS, REVIEWS):
		teachers = store.read_all(TEACHERS)
		idx = find_index(teachers, teacher_id)
		if idx == -1:
			raise HTTPException(status_code=404, detail="Teacher not found")
		old = teachers[idx]
		try:
			updated = Teacher(
				id=teacher_id,
				name=req.name.strip(),
				field=req.field.strip(),
				experience=req.experience,
				bio=req.bio.strip(),
				photo=req.photo or old.get("photo") or "",
			).to_record()
			teachers[idx] = updated
			teacher_version = store.write_all(TEACHERS, teachers)
			if old.get("name") != updated["name"]:
				review_version = _rename_in_reviews(store, teacher_id, updated["name"])
		except Exception as e:
			logger.exception("Error updating teacher %s", teacher_id)
			raise HTTPException(status_code=500, detail=f"Error updating teacher: {e}")
	if review_version is not None:
		await notifier.broadcast(EventKind.REVIEW_CHANGED, review_version)
	await notifier.broadcast(EventKind.TEACHER_CHANGED, teacher_version)
	return updated


def _rename_in_reviews(store: RecordStore, teacher_id: str, new_name: str) -> Optional[int]:
	"""Copy a teacher's new name onto its reviews; returns the reviews version if any changed."""
	reviews = store.read_all(REVIEWS)
	changed = 0
	for review in reviews:
		if review.get("teacherId") == teacher_id:
			review["teacherName"] = new_name
			changed += 1
	if not changed:
		return None
	logger.info("Renamed teacher %s on %d reviews", teacher_id, changed)
	return store.write_all(REVIEWS, reviews)


@router.delete("/{teacher_id}")
async def delete_teacher(
	teacher_id: str,
	store: RecordStore = Depends(get_store),
	notifier: ChangeNotifier = Depends(get_notifier),
	_admin=Depends(require_admin),
):
	review_version: Optional[int] = None
	with store.lock(TEACHERS, REVIEWS):
		teachers = store.read_all(TEACHERS)
		idx = find_index(teachers, teacher_id)
		if idx == -1:
			raise HTTPException(status_code=404, detail="Teacher not found")
		try:
			removed_teacher = teachers.pop(idx)
			teacher_version = store.write_all(TEACHERS, teachers)
			reviews = store.read_all(REVIEWS)
			kept = [r for r in reviews if r.get("teacherId") != teacher_id]
			reviews_removed = len(reviews) - len(kept)
			if reviews_removed:
				review_version = store.write_all(REVIEWS, kept)
		except Exception as e:
			logger.exception("Error deleting teacher %s", teacher_id)
			raise HTTPException(status_code=500, detail=f"Error deleting teacher: {e}")
	logger.info("Deleted teacher %s and %d reviews", teacher_id, reviews_removed)
	await notifier.broadcast(EventKind.TEACHER_CHANGED, teacher_version)
	# One review event for the whole cascade, and none when nothing was removed
	if review_version is not None:
		await notifier.broadcast(EventKind.REVIEW_CHANGED, review_version)
	return {
		"message": "Teacher and related reviews deleted successfully",
		"teacherDeleted": removed_teacher.get("name"),
		"reviewsRemoved": reviews_removed,
	}
