"""
Integration Tests for HoopSense API
Frame upload -> shot detection -> coaching feedback, with scripted detectors
standing in for MediaPipe and YOLO.
"""

import cv2
import numpy as np
import pytest
from unittest.mock import patch

from fastapi.testclient import TestClient

from conftest import ScriptedBallDetector, ScriptedPoseDetector, build_points

import main
from main import app
from config.settings import Settings
from core.coaching_feedback import CoachingFeedback
from exceptions import ProcessingBusy


def encode_frame(fmt=".png") -> bytes:
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    ok, buf = cv2.imencode(fmt, frame)
    assert ok
    return buf.tobytes()


def frame_upload(data=None, content_type="image/png"):
    return {"file": ("frame.png", data if data is not None else encode_frame(), content_type)}


@pytest.fixture
def client():
    """Create test client"""
    return TestClient(app)


@pytest.fixture(autouse=True)
def fresh_tracking(monkeypatch):
    """Scripted detectors, rule-based coaching and a clean session per test"""
    main.processor.pose_detector = ScriptedPoseDetector()
    main.processor.ball_detector = ScriptedBallDetector()
    monkeypatch.setattr(main, "coach", CoachingFeedback(Settings(GOOGLE_API_KEY=None, LLM_PROVIDER="gemini")))
    main.processor.reset()
    main.session.reset()
    yield
    main.processor.reset()
    main.session.reset()


def play_shot(client):
    """Upload the frames of one made jump shot"""
    points = build_points(start=(0.3, 0.7), peak_y=0.2, end=(0.5, 0.28))
    main.processor.ball_detector = ScriptedBallDetector([(p.x, p.y) for p in points])
    responses = []
    for i in range(len(points)):
        response = client.post("/api/frames", files=frame_upload(), data={"timestamp": str(i / 30)})
        assert response.status_code == 200
        responses.append(response.json())
    return responses


class TestHealthEndpoints:
    """Test health check endpoints"""

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "HoopSense" in data["service"]

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_live_endpoint(self, client):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_health_ready_endpoint(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["feedback_provider"] == "rule-based"
        assert response.json()["environment"] == main.settings.ENVIRONMENT

    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        data = response.json()
        assert data["memory_mb"] > 0
        assert "pipeline" in data


class TestFrameEndpoint:
    """Test frame upload and processing"""

    def test_process_frame(self, client):
        main.processor.ball_detector = ScriptedBallDetector([(0.5, 0.4)])

        response = client.post("/api/frames", files=frame_upload(), data={"timestamp": "1.5"})

        assert response.status_code == 200
        data = response.json()
        assert data["pose"]["timestamp"] == 1.5
        assert data["ball"]["x"] == 0.5
        assert data["shot"] is None
        assert data["errors"] == []

    def test_jpeg_frame(self, client):
        response = client.post("/api/frames", files=frame_upload(encode_frame(".jpg"), "image/jpeg"))
        assert response.status_code == 200

    def test_invalid_content_type(self, client):
        response = client.post("/api/frames", files=frame_upload(b"hello", "text/plain"))
        assert response.status_code == 415
        assert response.json()["error"] == "INVALID_IMAGE_FORMAT"

    def test_undecodable_frame(self, client):
        response = client.post("/api/frames", files=frame_upload(b"definitely not a png"))
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_FRAME"

    def test_negative_timestamp(self, client):
        response = client.post("/api/frames", files=frame_upload(), data={"timestamp": "-1"})
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "timestamp"

    def test_missing_file(self, client):
        response = client.post("/api/frames")
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_detector_failure_reported(self, client):
        main.processor.pose_detector = ScriptedPoseDetector(fail=True)

        response = client.post("/api/frames", files=frame_upload())

        assert response.status_code == 200
        assert response.json()["errors"] == ["POSE_DETECTION_FAILED"]

    def test_busy_returns_conflict(self, client):
        with patch.object(main.processor, "process", side_effect=ProcessingBusy()):
            response = client.post("/api/frames", files=frame_upload())

        assert response.status_code == 409
        assert response.json()["error"] == "PROCESSING_BUSY"


class TestShotFlow:
    """Frames in, shot and coaching out"""

    def test_shot_detected_and_recorded(self, client):
        responses = play_shot(client)
        shots = [r["shot"] for r in responses if r["shot"]]

        assert len(shots) == 1
        assert shots[0]["shot_type"] == "Jump Shot"
        assert shots[0]["outcome"] == "made"

        data = client.get("/api/shots").json()
        assert data["total_shots"] == 1
        assert data["made_shots"] == 1
        assert data["accuracy"] == 1.0
        assert data["shot_types"] == {"Jump Shot": 1}

    def test_tracking_state(self, client):
        play_shot(client)

        data = client.get("/api/tracking/state").json()

        assert data["pose"] is not None
        assert data["last_shot"]["outcome"] == "made"
        assert data["shooting_form"]["overall_score"] == pytest.approx(1.0)
        assert data["ball_history_length"] == 12

    def test_tracking_metrics(self, client):
        play_shot(client)

        data = client.get("/api/tracking/metrics").json()

        assert data["processing_time_ms"] > 0
        assert "is_within_targets" in data

    def test_latest_shot_feedback(self, client):
        play_shot(client)

        response = client.post("/api/shots/latest/feedback")

        assert response.status_code == 200
        feedback = response.json()["feedback"]
        assert feedback["source"] == "rule-based"
        assert feedback["detailed_feedback"] == response.json()["shot"]["feedback"]

    def test_session_summary(self, client):
        play_shot(client)

        response = client.post("/api/shots/summary")

        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["statistics"]["total_shots"] == 1
        assert summary["statistics"]["accuracy"] == 100.0

    def test_reset_clears_session(self, client):
        play_shot(client)

        response = client.post("/api/tracking/reset")

        assert response.status_code == 200
        assert client.get("/api/shots").json()["total_shots"] == 0
        assert client.get("/api/tracking/state").json()["pose"] is None


class TestErrorHandling:
    """Test error handling and responses"""

    def test_feedback_without_shot(self, client):
        response = client.post("/api/shots/latest/feedback")
        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "SHOT_NOT_FOUND"
        assert "detail" in data
        assert data["path"] == "/api/shots/latest/feedback"

    def test_summary_without_shots(self, client):
        response = client.post("/api/shots/summary")
        assert response.status_code == 422
        assert response.json()["error"] == "INSUFFICIENT_DATA"

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json()["error"] == "HTTP_ERROR"

    def test_correlation_id_echoed(self, client):
        response = client.get("/api/shots", headers={"X-Correlation-ID": "abc12345"})
        assert response.headers["X-Correlation-ID"] == "abc12345"
        assert "X-Process-Time-Ms" in response.headers


class TestCORS:
    """Test CORS configuration"""

    def test_cors_preflight(self, client):
        response = client.options(
            "/api/frames",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST"
            }
        )
        assert response.status_code in [200, 204]
