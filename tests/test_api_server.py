from fastapi.testclient import TestClient
import pytest

from quizroom.core.quiz_manager import QuizManager
from quizroom.server.api_server import create_api_app

QUIZ_PAYLOAD = {
    "title": "JavaScript Fundamentals",
    "description": "Variables, functions and control structures.",
    "time_limit_minutes": 30,
    "questions": [
        {
            "text": "What is the correct way to declare a **variable**?",
            "type": "multiple-choice",
            "options": ["var x = 5;", "variable x = 5;", "v x = 5;", "declare x = 5;"],
            "correct_answer": 0,
            "points": 1,
        },
        {
            "text": "JavaScript is a compiled language.",
            "type": "true-false",
            "correct_answer": "1",
            "points": 1,
        },
    ],
}


@pytest.fixture
def client():
    return TestClient(create_api_app(QuizManager()))


@pytest.fixture
def quiz(client):
    response = client.post("/api/quiz", json=QUIZ_PAYLOAD)
    assert response.status_code == 201
    return response.json()["quiz"]


def join(client, quiz, name, ip):
    response = client.post(
        "/api/quiz/join",
        json={"room_code": quiz["room_code"], "participant_name": name},
        headers={"X-Forwarded-For": ip, "User-Agent": f"{name}-browser"},
    )
    assert response.status_code == 200
    return response.json()


class TestQuizEndpoints:
    def test_ping(self, client):
        assert client.get("/api/ping").json() == {"message": "pong"}

    def test_create_and_fetch(self, client, quiz):
        assert quiz["total_possible_points"] == 2
        assert quiz["questions"][1]["options"] == ["True", "False"]

        fetched = client.get(f"/api/quiz/{quiz['id']}").json()["quiz"]
        assert fetched["room_code"] == quiz["room_code"]
        assert [q["id"] for q in client.get("/api/quizzes").json()["quizzes"]] == [quiz["id"]]

    def test_create_requires_questions(self, client):
        response = client.post("/api/quiz", json={"title": "Empty", "questions": []})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_unknown_quiz(self, client):
        response = client.get("/api/quiz/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "QUIZ_NOT_FOUND", "message": "Quiz not found"}

    def test_active_listing_hides_questions(self, client, quiz):
        active = client.get("/api/quizzes/active").json()["quizzes"]
        assert active[0]["id"] == quiz["id"]
        assert "questions" not in active[0]

    def test_patch_and_status(self, client, quiz):
        patched = client.patch(f"/api/quiz/{quiz['id']}", json={"title": "JS 101", "max_attempts": 3})
        assert patched.json()["quiz"]["title"] == "JS 101"
        assert patched.json()["quiz"]["max_attempts"] == 3
        assert patched.json()["quiz"]["questions"][0]["id"] == quiz["questions"][0]["id"]

        status = client.patch(f"/api/quiz/{quiz['id']}/status", json={"is_active": False})
        assert status.json()["quiz"]["is_active"] is False

    def test_check_room_code(self, client, quiz):
        response = client.get(f"/api/quiz/check/{quiz['room_code'].lower()}")
        assert response.status_code == 200
        assert "questions" not in response.json()["quiz"]

    def test_delete(self, client, quiz):
        assert client.delete(f"/api/quiz/{quiz['id']}").json()["success"] is True
        assert client.get(f"/api/quiz/{quiz['id']}").status_code == 404


class TestStudentFlow:
    def test_join_start_answer_submit(self, client, quiz):
        joined = join(client, quiz, "Alex", "192.168.1.100")
        assert joined["attempt_number"] == 1

        started = client.get(f"/api/quiz/session/{joined['session_id']}/start").json()
        assert started["time_remaining"] == 1800
        assert "<strong>variable</strong>" in started["questions"][0]["question_html"]
        assert "correct_answer" not in started["questions"][0]

        first_question = quiz["questions"][0]["id"]
        answered = client.post(
            "/api/quiz/answer",
            json={
                "session_id": joined["session_id"],
                "participant_id": joined["participant_id"],
                "question_id": first_question,
                "value": "0",
            },
        ).json()
        assert answered["accepted"] is True
        assert answered["answers_count"] == 1

        submitted = client.post(
            "/api/quiz/submit",
            json={"session_id": joined["session_id"], "participant_id": joined["participant_id"]},
        ).json()
        result = submitted["result"]
        assert (result["score"], result["percentage"], result["grade"]) == (1, 50.0, "B")
        assert result["score_details"][0]["matched_by"] == "exact"
        assert result["score_details"][1]["answered"] is False

        participant = client.get(f"/api/quiz/participant/{joined['participant_id']}").json()["participant"]
        assert participant["submitted_at"] is not None

    def test_second_join_after_submission_is_rejected(self, client, quiz):
        joined = join(client, quiz, "Alex", "192.168.1.100")
        client.post("/api/quiz/submit", json={"session_id": joined["session_id"], "participant_id": joined["participant_id"]})

        response = client.post(
            "/api/quiz/join",
            json={"room_code": quiz["room_code"], "participant_name": "Alex"},
        )
        assert response.status_code == 429
        assert response.json()["error"] == "MAX_ATTEMPTS_REACHED"

    def test_answer_resolved_by_request_ip(self, client, quiz):
        alex = join(client, quiz, "Alex", "192.168.1.100")
        sarah = join(client, quiz, "Sarah", "192.168.1.101")

        client.post(
            "/api/quiz/answer",
            json={"session_id": sarah["session_id"], "question_id": quiz["questions"][0]["id"], "value": 2},
            headers={"X-Forwarded-For": "192.168.1.101", "User-Agent": "Sarah-browser"},
        )

        sarah_record = client.get(f"/api/quiz/participant/{sarah['participant_id']}").json()["participant"]
        alex_record = client.get(f"/api/quiz/participant/{alex['participant_id']}").json()["participant"]
        assert [a["value"] for a in sarah_record["answers"]] == [2]
        assert alex_record["answers"] == []

    def test_answer_without_session(self, client):
        response = client.post("/api/quiz/answer", json={"question_id": "q1", "value": 0})
        assert response.status_code == 400

    def test_answer_for_unknown_session(self, client):
        response = client.post("/api/quiz/answer", json={"session_id": "nope", "question_id": "q1", "value": 0})
        assert response.status_code == 404
        assert response.json()["error"] == "PARTICIPANT_NOT_FOUND"


class TestResultsEndpoints:
    def submit_class(self, client, quiz):
        q1, q2 = (q["id"] for q in quiz["questions"])
        for index, (name, first, second) in enumerate([("Alex", 0, 1), ("Sarah", 0, 0), ("Mike", 1, 0)]):
            joined = join(client, quiz, name, f"10.0.0.{index}")
            for question_id, value in ((q1, first), (q2, second)):
                client.post(
                    "/api/quiz/answer",
                    json={
                        "session_id": joined["session_id"],
                        "participant_id": joined["participant_id"],
                        "question_id": question_id,
                        "value": value,
                    },
                )

    def test_raw_results(self, client, quiz):
        self.submit_class(client, quiz)
        results = client.get(f"/api/quiz/{quiz['id']}/results").json()

        assert results["mode"] == "raw"
        assert [p["score"] for p in results["participants"]] == [2, 1, 0]
        assert results["average_score"] == 1.0
        assert results["average_percentage"] == 50.0
        assert results["grade_distribution"] == {"A": 1, "B": 1, "C": 0, "F": 1}
        assert all(p["submitted_at"] is not None for p in results["participants"])

    def test_force_recalculate(self, client, quiz):
        self.submit_class(client, quiz)
        first = client.post(f"/api/quiz/{quiz['id']}/results").json()
        second = client.post(f"/api/quiz/{quiz['id']}/results").json()

        assert first["mode"] == "forceRecalculate"
        assert [p["score"] for p in first["participants"]] == [p["score"] for p in second["participants"]]

    def test_best_view_query(self, client, quiz):
        self.submit_class(client, quiz)
        results = client.get(f"/api/quiz/{quiz['id']}/results", params={"view": "best"}).json()
        assert results["view"] == "best"
        assert len(results["attempts"]) == 3

    def test_empty_results(self, client, quiz):
        results = client.get(f"/api/quiz/{quiz['id']}/results").json()
        assert results["participants"] == []
        assert results["average_score"] == 0
