from __future__ import annotations
import csv
import io
import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from .agent import SyncAgent
from .api import ApiError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".json")


class ImportFileError(ValueError):
	pass


def parse_teachers(filename: str, content: str) -> List[Dict[str, Any]]:
	"""Parse a CSV (header row + one teacher per line) or a JSON array of teachers."""
	ext = os.path.splitext(filename)[1].lower()
	if ext == ".json":
		try:
			data = json.loads(content)
		except ValueError as e:
			raise ImportFileError(f"Error parsing file: {e}") from e
		if not isinstance(data, list):
			raise ImportFileError("Error parsing file: expected a JSON array of teachers")
		return [row for row in data if isinstance(row, dict)]
	if ext == ".csv":
		rows: List[Dict[str, Any]] = []
		for raw in csv.DictReader(io.StringIO(content)):
			row: Dict[str, Any] = {}
			for key, value in raw.items():
				if key is None:
					continue
				key = key.strip()
				value = (value or "").strip()
				if key == "experience":
					try:
						row[key] = int(value)
					except ValueError:
						row[key] = 0
				else:
					row[key] = value
			rows.append(row)
		return rows
	raise ImportFileError("Please upload a valid CSV or JSON file")


def valid_teachers(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
	valid = []
	for row in rows:
		experience = row.get("experience")
		if row.get("name") and row.get("field") and row.get("bio") and isinstance(experience, int) and not isinstance(experience, bool):
			valid.append({k: row[k] for k in ("name", "field", "experience", "bio", "photo") if k in row})
	return valid


async def import_teachers(agent: SyncAgent, filename: str, content: str) -> Dict[str, Any]:
	"""Create every valid teacher in the file and log the outcome in the import history."""
	result: Dict[str, Any] = {
		"id": uuid.uuid4().hex,
		"timestamp": datetime.now(timezone.utc).isoformat(),
		"filename": os.path.basename(filename),
		"teachersCount": 0,
		"status": "processing",
	}
	try:
		teachers = valid_teachers(parse_teachers(filename, content))
	except ImportFileError as e:
		result.update(status="error", errorMessage=str(e))
		agent.cache.record_import(result)
		return result
	if not teachers:
		result.update(
			status="error",
			errorMessage="No valid teacher data found in the file. Each teacher must have name, field, experience, and bio.",
		)
		agent.cache.record_import(result)
		return result

	result["teachersCount"] = len(teachers)
	agent.cache.record_import(result)
	imported = 0
	try:
		for teacher in teachers:
			# One bad row does not stop the import
			try:
				await agent.create_teacher(teacher)
				imported += 1
			except ApiError as e:
				logger.error("Error importing teacher %s: %s", teacher.get("name"), e.message)
			except Exception:
				logger.exception("Error importing teacher %s", teacher.get("name"))
	finally:
		# The history entry never stays "processing"
		if imported:
			result.update(status="success")
		else:
			result.update(status="error", errorMessage="Failed to import teachers. Please try again.")
		result["importedCount"] = imported
		agent.cache.record_import(result)
	logger.info("Imported %d/%d teachers from %s", imported, len(teachers), result["filename"])
	return result


async def import_teachers_file(agent: SyncAgent, path: str) -> Dict[str, Any]:
	with open(path, "r", encoding="utf-8") as f:
		content = f.read()
	return await import_teachers(agent, path, content)
