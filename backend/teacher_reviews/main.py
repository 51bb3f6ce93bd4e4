import logging
import sys

from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .notifier import ChangeNotifier, get_notifier
from .settings import settings
from .store import get_store
from .routers import health
from .routers import auth
from .routers import teachers
from .routers import reviews

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)

app = FastAPI(title="Teacher Reviews API")

app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origins,
	allow_credentials=True,
	allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
	allow_headers=["*"],
	expose_headers=["X-Collection-Version"],
)

app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(teachers.router, prefix=settings.api_prefix)
app.include_router(reviews.router, prefix=settings.api_prefix)


@app.get("/info")
def root():
	return {"status": "ok", "api": settings.api_prefix, "admin_auth_required": settings.require_admin_auth}


@app.websocket("/ws")
async def change_events(websocket: WebSocket, notifier: ChangeNotifier = Depends(get_notifier)):
	try:
		await notifier.connect(websocket)
		# Inbound frames are ignored; reading keeps the disconnect observable
		while True:
			await websocket.receive_text()
	except WebSocketDisconnect:
		pass
	finally:
		notifier.disconnect(websocket)


def setup_logging(log_level: str = "INFO") -> None:
	logging.basicConfig(
		level=getattr(logging, log_level.upper(), logging.INFO),
		format=LOG_FORMAT,
		handlers=[logging.StreamHandler(sys.stdout)],
	)


@app.on_event("startup")
async def startup_event():
	setup_logging(settings.log_level)
	# Create the data directory and empty collection files up front
	store = get_store()
	logger.info("Teacher Reviews API ready (data_dir=%s, prefix=%s)", store.data_dir, settings.api_prefix)


def run() -> None:
	import uvicorn
	uvicorn.run("teacher_reviews.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
	run()
