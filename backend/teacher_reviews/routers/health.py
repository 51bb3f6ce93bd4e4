from fastapi import APIRouter, Depends

from ..notifier import ChangeNotifier, get_notifier
from ..store import REVIEWS, TEACHERS, RecordStore, get_store

router = APIRouter(tags=["health"])


@router.get("/health")
def health(store: RecordStore = Depends(get_store), notifier: ChangeNotifier = Depends(get_notifier)):
	return {
		"status": "ok",
		"teachers": len(store.read_all(TEACHERS)),
		"reviews": len(store.read_all(REVIEWS)),
		"subscribers": notifier.subscriber_count,
	}
