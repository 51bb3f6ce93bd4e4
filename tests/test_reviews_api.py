"""Tests for the /api/reviews endpoints."""

import pytest

from teacher_reviews.store import REVIEWS, TEACHERS

METRIC_NAMES = ("teaching", "knowledge", "engagement", "approachability", "responsiveness")


def test_create_review_stamps_server_fields(client, store, events, create_teacher):
    teacher = create_teacher()
    events.clear()
    body = {
        "teacherId": teacher["id"],
        "teacherName": "Someone Else",
        "comment": "Great at explaining proofs.",
        "metrics": dict(zip(METRIC_NAMES, (3, 4, 5, 4, 5))),
        "rating": 4.2,
        "status": "approved",
    }
    response = client.post("/api/reviews", json=body)
    assert response.status_code == 201
    review = response.json()
    assert review["id"]
    assert review["createdAt"]
    assert review["status"] == "pending"
    assert review["sentiment"] == "neutral"
    assert review["teacherName"] == "Dr. A"
    assert review["studentName"] == "Anonymous Student"
    assert review["rating"] == 4.2
    assert store.read_all(REVIEWS) == [review]
    assert events == ["review_updated"]


def test_create_review_for_unknown_teacher_is_rejected(client, store, events):
    body = {"teacherId": "ghost", "comment": "hello there!", "metrics": dict.fromkeys(METRIC_NAMES, 3)}
    response = client.post("/api/reviews", json=body)
    assert response.status_code == 404
    assert response.json()["detail"] == "Cannot add review for non-existent teacher"
    assert store.read_all(REVIEWS) == []
    assert events == []


@pytest.mark.parametrize("bad", [0, 6, -1])
def test_create_review_rejects_out_of_range_metrics(client, create_teacher, bad):
    teacher = create_teacher()
    metrics = dict.fromkeys(METRIC_NAMES, 3)
    metrics["engagement"] = bad
    response = client.post("/api/reviews", json={"teacherId": teacher["id"], "metrics": metrics})
    assert response.status_code == 422


def test_rating_is_computed_when_missing(create_teacher, create_review):
    teacher = create_teacher()
    review = create_review(teacher["id"], metrics=(1, 2, 3, 4, 5))
    assert review["rating"] == 3.0


def test_list_reviews_for_unknown_teacher_is_empty(client):
    response = client.get("/api/reviews/teacher/ghost")
    assert response.status_code == 200
    assert response.json() == []


def test_list_reviews_filters_by_status(client, create_teacher, create_review):
    teacher = create_teacher()
    first = create_review(teacher["id"])
    create_review(teacher["id"])
    client.patch(f"/api/reviews/{first['id']}/status", json={"status": "flagged"})
    flagged = client.get("/api/reviews", params={"status": "flagged"}).json()
    assert [r["id"] for r in flagged] == [first["id"]]
    assert len(client.get("/api/reviews").json()) == 2
    assert client.get("/api/reviews", params={"status": "bogus"}).status_code == 422


@pytest.mark.parametrize("status", ["pending", "approved", "flagged", "removed"])
def test_any_status_transition_is_allowed(client, events, create_teacher, create_review, status):
    teacher = create_teacher()
    review = create_review(teacher["id"])
    client.patch(f"/api/reviews/{review['id']}/status", json={"status": "removed"})
    events.clear()
    response = client.patch(f"/api/reviews/{review['id']}/status", json={"status": status})
    assert response.status_code == 200
    assert response.json()["status"] == status
    assert events == ["review_updated"]


def test_status_update_for_orphaned_review_is_rejected(client, store, create_teacher, create_review):
    teacher = create_teacher()
    review = create_review(teacher["id"])
    # Leave the review behind without its teacher
    store.write_all(TEACHERS, [])
    response = client.patch(f"/api/reviews/{review['id']}/status", json={"status": "approved"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot update review for deleted teacher"
    assert store.read_all(REVIEWS)[0]["status"] == "pending"


def test_status_update_unknown_review(client):
    assert client.patch("/api/reviews/nope/status", json={"status": "approved"}).status_code == 404


def test_delete_review(client, store, events, create_teacher, create_review):
    teacher = create_teacher()
    review = create_review(teacher["id"])
    events.clear()
    response = client.delete(f"/api/reviews/{review['id']}")
    assert response.status_code == 200
    assert store.read_all(REVIEWS) == []
    assert events == ["review_updated"]
    assert client.delete(f"/api/reviews/{review['id']}").status_code == 404


def test_moderation_scenario(client, create_teacher, create_review):
    t1 = create_teacher(name="Dr. A", field="Math", experience=5, bio="x")
    review = create_review(t1["id"], metrics=(3, 4, 5, 4, 5))
    assert review["rating"] == 4.2
    assert review["status"] == "pending"

    approved = client.get(f"/api/reviews/teacher/{t1['id']}", params={"status": "approved"})
    assert approved.json() == []

    client.patch(f"/api/reviews/{review['id']}/status", json={"status": "approved"})
    approved = client.get(f"/api/reviews/teacher/{t1['id']}", params={"status": "approved"}).json()
    assert len(approved) == 1
    assert approved[0]["id"] == review["id"]
    assert approved[0]["rating"] == 4.2
