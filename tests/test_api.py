"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from smartcut.main import app
from smartcut.settings import settings

client = TestClient(app)

RAW_SEGMENTS = [
    {"start": 0, "end": 5, "groupId": "g1", "score": 40, "isBest": False, "text": "So this is..."},
    {"start": 3, "end": 9, "groupId": "g1", "score": 90, "isBest": True, "text": "So this is the new poster."},
]


def _ranges(data):
    return [(seg["range"]["start"], seg["range"]["end"]) for seg in data["segments"]]


@pytest.fixture
def session_id():
    response = client.post("/sessions", json={
        "clips": [
            {"id": "clip-a", "name": "clip-a.mp4", "duration": 9.0, "path": "/data/clip-a.mp4"},
            {"id": "clip-b", "name": "clip-b.mp4"},
        ]
    })
    assert response.status_code == 200
    return response.json()["id"]


@pytest.fixture
def loaded_session_id(session_id):
    response = client.post(f"/sessions/{session_id}/load", json={
        "analyses": {"clip-a": {"summary": "Poster intro", "segments": RAW_SEGMENTS}}
    })
    assert response.status_code == 200
    return session_id


class TestValidateEndpoint:
    """Tests for POST /segments/validate."""

    def test_overlap_and_best_take(self):
        response = client.post("/segments/validate", json={"segments": RAW_SEGMENTS, "clip_duration": 9})
        assert response.status_code == 200

        data = response.json()
        assert [(s["start"], s["end"]) for s in data["segments"]] == [(0.0, 3.0), (3.0, 9.0)]
        assert [s["is_best"] for s in data["segments"]] == [False, True]
        assert data["coverage"]["coverage_percent"] == 100.0
        assert data["coverage"]["best_count"] == 1

    def test_garbage_is_dropped(self):
        response = client.post("/segments/validate", json={
            "segments": ["nope", None, {"start": 3, "end": 3}, {"start": 1, "end": 1.05}],
            "clip_duration": 10,
        })
        assert response.status_code == 200
        assert response.json()["segments"] == []

    def test_rejects_non_positive_duration(self):
        response = client.post("/segments/validate", json={"segments": [], "clip_duration": 0})
        assert response.status_code == 400


class TestSessions:
    """Tests for session creation and loading."""

    def test_create_session(self, session_id):
        data = client.get(f"/sessions/{session_id}").json()
        assert [clip["id"] for clip in data["clips"]] == ["clip-a", "clip-b"]
        assert data["segments"] == []
        assert data["can_undo"] is False
        assert data["total_duration_label"] == "00:00.00"

    def test_unknown_session(self):
        response = client.get("/sessions/does-not-exist")
        assert response.status_code == 404

    def test_load_validates_batches(self, loaded_session_id):
        data = client.get(f"/sessions/{loaded_session_id}").json()
        assert _ranges(data) == [(0.0, 3.0), (3.0, 9.0)]
        assert [seg["is_best"] for seg in data["segments"]] == [False, True]
        assert data["segments"][0]["transcript"] == "So this is..."
        assert data["total_duration"] == 9.0
        assert data["total_duration_label"] == "00:09.00"
        assert data["can_undo"] is True

    def test_load_unknown_clip(self, session_id):
        response = client.post(f"/sessions/{session_id}/load", json={
            "analyses": {"clip-z": {"segments": RAW_SEGMENTS}}
        })
        assert response.status_code == 404

    def test_load_clip_without_duration(self, session_id):
        response = client.post(f"/sessions/{session_id}/load", json={
            "analyses": {"clip-b": {"segments": RAW_SEGMENTS}}
        })
        assert response.status_code == 400

    def test_add_clip_updates_duration(self, session_id):
        response = client.post(f"/sessions/{session_id}/clips", json={
            "id": "clip-b", "name": "clip-b.mp4", "duration": 12.5
        })
        clips = {clip["id"]: clip for clip in response.json()["clips"]}
        assert clips["clip-b"]["duration"] == 12.5


class TestEditing:
    """Tests for the editing endpoints."""

    def test_split_undo_redo(self, loaded_session_id):
        sid = loaded_session_id

        data = client.post(f"/sessions/{sid}/split", json={"time": 4.0}).json()
        assert data["changed"] is True
        assert _ranges(data) == [(0.0, 3.0), (3.0, 4.0), (4.0, 9.0)]
        assert data["selected_id"] == data["segments"][2]["id"]

        data = client.post(f"/sessions/{sid}/undo").json()
        assert _ranges(data) == [(0.0, 3.0), (3.0, 9.0)]
        assert data["can_redo"] is True
        assert data["selected_id"] is None

        data = client.post(f"/sessions/{sid}/redo").json()
        assert len(data["segments"]) == 3

    def test_rejected_split(self, loaded_session_id):
        data = client.post(f"/sessions/{loaded_session_id}/split", json={"time": 3.05}).json()
        assert data["changed"] is False
        assert len(data["segments"]) == 2

    def test_reorder_and_resolve(self, loaded_session_id):
        sid = loaded_session_id
        data = client.post(f"/sessions/{sid}/reorder", json={"from_index": 1, "to_index": 0}).json()
        assert _ranges(data) == [(3.0, 9.0), (0.0, 3.0)]

        resolved = client.get(f"/sessions/{sid}/resolve", params={"t": 7.5}).json()
        assert resolved["index"] == 1
        assert resolved["offset"] == pytest.approx(1.5)
        assert resolved["source_time"] == pytest.approx(1.5)

        past_end = client.get(f"/sessions/{sid}/resolve", params={"t": 9.0}).json()
        assert past_end["segment"] is None

    def test_resize(self, loaded_session_id):
        sid = loaded_session_id
        seg_id = client.get(f"/sessions/{sid}").json()["segments"][1]["id"]

        data = client.post(f"/sessions/{sid}/resize", json={"segment_id": seg_id, "start": 2.0, "end": 30.0}).json()
        assert data["changed"] is True
        assert _ranges(data)[1] == (2.0, 9.0)

    def test_delete_and_merge(self, loaded_session_id):
        sid = loaded_session_id
        first, second = [seg["id"] for seg in client.get(f"/sessions/{sid}").json()["segments"]]

        data = client.post(f"/sessions/{sid}/merge", json={"first_id": first, "second_id": second}).json()
        assert _ranges(data) == [(0.0, 9.0)]
        assert data["segments"][0]["score"] == 90.0

        data = client.post(f"/sessions/{sid}/delete", json={}).json()
        assert data["segments"] == []

    def test_word_editing(self, loaded_session_id):
        sid = loaded_session_id
        seg_id = client.get(f"/sessions/{sid}").json()["segments"][0]["id"]

        data = client.post(f"/sessions/{sid}/words/delete", json={"word_ids": [f"{seg_id}-word-0"]}).json()
        assert data["changed"] is True
        assert data["words"]["deleted"] == 1

        data = client.post(f"/sessions/{sid}/words/restore").json()
        assert data["words"]["deleted"] == 0

    def test_cut_list(self, loaded_session_id):
        response = client.get(f"/sessions/{loaded_session_id}/cut-list")
        assert response.status_code == 200
        data = response.json()
        assert [(c["start"], c["end"]) for c in data["cuts"]] == [(0.0, 3.0), (3.0, 9.0)]
        assert data["duration_s"] == 9.0

    def test_cut_list_empty(self, session_id):
        response = client.get(f"/sessions/{session_id}/cut-list")
        assert response.status_code == 400


class TestAnalyzeAndExport:
    """Error paths of the long-running endpoints."""

    def test_analyze_without_durations(self):
        sid = client.post("/sessions", json={"clips": [{"name": "raw.mp4"}]}).json()["id"]
        response = client.post(f"/sessions/{sid}/analyze", json={})
        assert response.status_code == 400

    def test_analyze_without_api_key(self, monkeypatch, session_id):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")
        response = client.post(f"/sessions/{session_id}/analyze", json={})
        assert response.status_code == 500
        assert "ANTHROPIC_API_KEY" in response.json()["detail"]

    def test_export_empty_timeline(self, session_id):
        response = client.post(f"/sessions/{session_id}/export", json={"output_path": "/tmp/out.mp4"})
        assert response.status_code == 400
        assert response.json()["detail"] == "No segments to export"
