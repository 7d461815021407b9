"""HTTP-level tests: cookie sessions, the error envelope, role gates and the main student flows."""

from conftest import PASSWORD, answers, login, make_period, make_user, school_form
from practicum.config import settings

STUDENT = "65123456789"
OTHER = "65123456790"
TEACHER = "T12345678901"
ADMIN = "A12345678901"


def enrolled_student(db, student_id=STUDENT, year=1, started_days_ago=2):
    make_user(db, student_id, year=year, password=PASSWORD)
    return make_period(db, [student_id], started_days_ago=started_days_ago, year_level=year)


class TestAuthFlow:
    """Registration, login cookie, session info and logout."""

    def test_register_login_me_logout(self, client, db):
        response = client.post("/api/auth/register", json={"studentId": "66123456789", "password": PASSWORD})
        assert response.status_code == 201
        assert response.json()["success"] is True

        response = login(client, "66123456789")
        assert response.json()["role"] == "student"
        assert response.json()["redirectTo"] == "/dashboard"
        cookie_header = response.headers["set-cookie"]
        assert settings.SESSION_COOKIE_NAME in cookie_header
        assert "httponly" in cookie_header.lower()

        me = client.get("/api/auth/me").json()
        assert me["user"]["id"] == "66123456789"
        assert me["user"]["rememberMe"] is False

        client.post("/api/auth/logout")
        assert client.get("/api/auth/me").status_code == 401

    def test_staff_redirect(self, client, db):
        make_user(db, TEACHER, role="teacher", password=PASSWORD)
        assert login(client, TEACHER).json()["redirectTo"] == "/admin"

    def test_bad_credentials(self, client, db):
        make_user(db, STUDENT, password=PASSWORD)
        response = client.post("/api/auth/login", json={"studentId": STUDENT, "password": "wrong"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid username or password"}

    def test_forgot_password_dev_link(self, client, db):
        make_user(db, STUDENT, password=PASSWORD, email="anan@nsru.ac.th")
        body = client.post("/api/auth/forgot-password", json={"email": "anan@nsru.ac.th"}).json()
        token = body["_devResetLink"].rsplit("/", 1)[1]
        assert client.get(f"/api/auth/reset-password/{token}").json()["email"] == "anan@nsru.ac.th"

        response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "fresh-pass"})
        assert response.status_code == 200
        login(client, STUDENT, password="fresh-pass")

        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@nsru.ac.th"}).json()
        assert unknown["success"] is True
        assert "_devResetLink" not in unknown


class TestErrorEnvelope:
    def test_not_logged_in(self, client, db):
        response = client.get("/api/student/dashboard")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_unknown_route(self, client, db):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_request_validation_is_400(self, client, db):
        response = client.post("/api/auth/login", json={"studentId": STUDENT, "password": "x", "rememberMe": "perhaps"})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid rememberMe")


class TestRoleGates:
    def test_student_cannot_read_reports(self, client, db):
        make_user(db, STUDENT, password=PASSWORD)
        login(client, STUDENT)
        response = client.get("/api/reports/evaluation-summary")
        assert response.status_code == 403
        assert response.json()["success"] is False
        assert client.get("/api/students").status_code == 403

    def test_teacher_reads_reports_but_not_system(self, client, db):
        make_user(db, TEACHER, role="teacher", password=PASSWORD)
        login(client, TEACHER)
        assert client.get("/api/reports/evaluation-summary").status_code == 200
        assert client.get("/api/system/status").status_code == 200
        assert client.post("/api/system/status", json={"status": "offline"}).status_code == 403

    def test_staff_cannot_use_student_forms(self, client, db):
        make_user(db, ADMIN, role="admin", password=PASSWORD)
        login(client, ADMIN)
        assert client.get("/api/school-info/check-eligibility").status_code == 403

    def test_bad_evaluation_num(self, client, db):
        make_user(db, ADMIN, role="admin", password=PASSWORD)
        login(client, ADMIN)
        response = client.get("/api/reports/evaluation-summary", params={"evaluationNum": "12"})
        assert response.status_code == 400


class TestStudentFlow:
    """School, mentor and evaluation submissions through the API."""

    def test_school_then_mentor(self, client, db):
        period = enrolled_student(db)
        login(client, STUDENT)

        eligibility = client.get("/api/mentor-info/check-eligibility").json()
        assert eligibility["eligible"] is False
        assert eligibility["needSchoolInfo"] is True

        response = client.post("/api/school-info/save", json=school_form())
        assert response.json()["isNewSchool"] is True
        mine = client.get("/api/school-info/my-submission").json()
        assert mine["observationId"] == period.id
        assert mine["data"]["name"] == "Ban Nong School"

        response = client.post("/api/mentor-info/save", json={"firstName": "Suda", "lastName": "Rakdee"})
        assert response.status_code == 200
        assert client.get("/api/mentor-info/my-submission").json()["data"]["firstName"] == "Suda"

    def test_mentor_before_school_is_rejected(self, client, db):
        enrolled_student(db)
        login(client, STUDENT)
        response = client.post("/api/mentor-info/save", json={"firstName": "Suda", "lastName": "Rakdee"})
        assert response.status_code == 403
        body = response.json()
        assert body["eligible"] is False
        assert body["needSchoolInfo"] is True

    def test_mentor_occupied_flag(self, client, db):
        make_user(db, STUDENT, year=1, password=PASSWORD)
        make_user(db, OTHER, year=1, password=PASSWORD)
        make_period(db, [STUDENT, OTHER], started_days_ago=2)

        login(client, STUDENT)
        client.post("/api/school-info/save", json=school_form())
        client.post("/api/mentor-info/save", json={"firstName": "Suda", "lastName": "Rakdee"})
        client.post("/api/auth/logout")

        login(client, OTHER)
        client.post("/api/school-info/save", json=school_form())
        response = client.post("/api/mentor-info/save", json={"firstName": "Suda", "lastName": "Rakdee"})
        assert response.status_code == 400
        assert response.json()["mentorOccupied"] is True

    def test_evaluation_written_once(self, client, db):
        period = enrolled_student(db)
        login(client, STUDENT)
        payload = {"observationId": period.id, "week": 1, "evaluationNum": 1, "answers": answers(4)}
        assert client.post("/api/evaluation/save-week", json=payload).status_code == 200

        response = client.post("/api/evaluation/save-week", json=dict(payload, answers=answers(1)))
        assert response.status_code == 400
        assert response.json()["alreadySubmitted"] is True

        data = client.get("/api/evaluation/my-data", params={"observationId": period.id}).json()["data"]
        assert data["evaluations"]["1"]["answers"]["q1"] == 4

        summary = client.get("/api/student/evaluation-summary").json()
        assert summary["hasData"] is True
        assert summary["summary"]["averageScore"] == 4.0

    def test_lesson_plan_upload(self, client, db, storage):
        period = enrolled_student(db, year=2)
        login(client, STUDENT)
        files = {"lessonPlanFile": ("plan.pdf", b"%PDF-1.7", "application/pdf")}
        response = client.post("/api/evaluation/submit-lesson-plan", files=files, data={"observationId": period.id})
        assert response.status_code == 200, response.text
        stored = response.json()["data"]["storagePath"]
        assert storage.exists(stored)

        again = client.post("/api/evaluation/submit-lesson-plan", files=files, data={"observationId": period.id})
        assert again.status_code == 400
        assert again.json()["alreadySubmitted"] is True

        dashboard = client.get("/api/student/dashboard").json()["data"]
        assert dashboard["canUploadLessonPlan"] is True
        assert dashboard["lessonPlans"][0]["fileName"] == "plan.pdf"
        assert dashboard["activeObservation"]["id"] == period.id


class TestSystemApi:
    def test_csv_export(self, client, db):
        make_user(db, ADMIN, role="admin", password=PASSWORD)
        make_user(db, STUDENT, year=1, first_name="Anan")
        login(client, ADMIN)
        year = client.get("/api/system/academic-years").json()["current"]["academicYear"]

        response = client.get(f"/api/system/academic-years/{year}/export", params={"format": "csv"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert f'academic-year-{year}.csv' in response.headers["content-disposition"]
        assert STUDENT in response.text

        assert client.get(f"/api/system/academic-years/{year}/export", params={"format": "xml"}).status_code == 400

    def test_reset_requires_confirmation(self, client, db):
        make_user(db, ADMIN, role="admin", password=PASSWORD)
        login(client, ADMIN)
        response = client.post("/api/system/reset-database", json={"verificationCode": "ABC123", "confirmed": False})
        assert response.status_code == 400
