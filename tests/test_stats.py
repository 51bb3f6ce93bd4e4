"""Tests for dashboard figures, teacher summaries and list filters."""

import pytest

from teacher_reviews.client.stats import (
    dashboard_stats,
    filter_reviews,
    filter_teachers,
    teacher_fields,
    teacher_summary,
)
from teacher_reviews.models import METRIC_NAMES

TEACHERS = [
    {"id": "t1", "name": "Dr. A", "field": "Math", "bio": "Loves proofs"},
    {"id": "t2", "name": "Dr. B", "field": "Physics", "bio": "Optics and lasers"},
    {"id": "t3", "name": "Prof. C", "field": "Math", "bio": "Number theory"},
    {"id": "t4", "name": "Dr. D", "field": "Art", "bio": "Sculpture"},
]


def _review(review_id, teacher_id, values, status="approved", sentiment="neutral", comment="Good class"):
    metrics = dict(zip(METRIC_NAMES, values))
    return {
        "id": review_id,
        "teacherId": teacher_id,
        "teacherName": next(t["name"] for t in TEACHERS if t["id"] == teacher_id),
        "comment": comment,
        "metrics": metrics,
        "rating": sum(values) / len(values),
        "status": status,
        "sentiment": sentiment,
    }


REVIEWS = [
    _review("r1", "t1", (3, 4, 5, 4, 5)),
    _review("r2", "t1", (5, 5, 5, 5, 5), status="pending", sentiment="positive"),
    _review("r3", "t2", (2, 2, 2, 2, 2), status="flagged", sentiment="negative", comment="Hard to follow"),
    _review("r4", "t3", (4, 4, 4, 4, 4), status="pending"),
]


def test_dashboard_stats():
    history = [{"id": str(i)} for i in range(7)]
    stats = dashboard_stats(TEACHERS, REVIEWS, history)
    assert stats["totalTeachers"] == 4
    assert stats["totalReviews"] == 4
    assert stats["pendingReviews"] == 2
    assert stats["averageRating"] == pytest.approx((4.2 + 5 + 2 + 4) / 4)
    assert [i["id"] for i in stats["recentImports"]] == ["0", "1", "2", "3", "4"]
    assert stats["sentimentBreakdown"] == {"positive": 1, "neutral": 2, "negative": 1}

    top = stats["topRatedTeachers"]
    assert [t["id"] for t in top] == ["t1", "t3", "t2"]
    assert top[0]["rating"] == pytest.approx(4.6)
    assert top[0]["reviewsCount"] == 2


def test_dashboard_stats_without_reviews():
    stats = dashboard_stats(TEACHERS, [])
    assert stats["averageRating"] == 0
    assert stats["topRatedTeachers"] == []
    assert stats["recentImports"] == []


def test_teacher_summary_counts_approved_reviews_only():
    summary = teacher_summary("t1", REVIEWS)
    assert summary["reviewCount"] == 1
    assert summary["averageRating"] == pytest.approx(4.2)
    assert summary["metricAverages"] == {
        "teaching": 3, "knowledge": 4, "engagement": 5, "approachability": 4, "responsiveness": 5}

    everything = teacher_summary("t1", REVIEWS, status=None)
    assert everything["reviewCount"] == 2
    assert everything["metricAverages"]["teaching"] == 4


def test_teacher_summary_without_reviews():
    summary = teacher_summary("t4", REVIEWS)
    assert summary["reviewCount"] == 0
    assert summary["averageRating"] == 0
    assert set(summary["metricAverages"].values()) == {0}


def test_teacher_fields_keep_first_seen_order():
    assert teacher_fields(TEACHERS) == ["Math", "Physics", "Art"]


def test_filter_teachers():
    assert [t["id"] for t in filter_teachers(TEACHERS, "LASER")] == ["t2"]
    assert [t["id"] for t in filter_teachers(TEACHERS, field="Math")] == ["t1", "t3"]
    assert [t["id"] for t in filter_teachers(TEACHERS, "dr.", field="Math")] == ["t1"]
    assert filter_teachers(TEACHERS, "physics") == []
    by_field = filter_teachers(TEACHERS, "physics", search_in=("name", "field"))
    assert [t["id"] for t in by_field] == ["t2"]
    assert filter_teachers(TEACHERS) == TEACHERS


def test_filter_reviews():
    assert [r["id"] for r in filter_reviews(REVIEWS, "pending")] == ["r2", "r4"]
    assert [r["id"] for r in filter_reviews(REVIEWS, "all", "hard")] == ["r3"]
    assert [r["id"] for r in filter_reviews(REVIEWS, None, "prof. c")] == ["r4"]
    assert filter_reviews(REVIEWS, "removed") == []
