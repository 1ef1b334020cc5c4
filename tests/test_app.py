import unittest

from werkzeug.security import generate_password_hash

from app import create_app
from models import User, db


class TrainingAppTestCase(unittest.TestCase):
    def setUp(self):
        test_cfg = {"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"}
        self.app = create_app(test_cfg)
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

        from routes.auth_routes import _LOGIN_ATTEMPTS

        _LOGIN_ATTEMPTS.clear()
        db.session.add(
            User(
                username="test_user",
                email="test@test.com",
                full_name="Test User",
                company_name="Test Corp",
                password_hash=generate_password_hash("password123"),
            )
        )
        db.session.commit()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def _login(self, username="test_user", password="password123"):
        return self.client.post(
            "/login", data={"username": username, "password": password}, follow_redirects=True
        )

    def test_home_page(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        body = response.get_data(as_text=True)
        self.assertIn("Anti-Corruption Training", body)
        self.assertIn("Start!", body)

    def test_register_logs_user_in(self):
        response = self.client.post(
            "/register",
            data={
                "username": "newbie",
                "email": "NewBie@Test.com",
                "full_name": "New Bie",
                "company_name": "Fresh Ltd",
                "password": "password123",
                "confirm_password": "password123",
            },
            follow_redirects=True,
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn(b"Registration successful", response.data)
        self.assertIn(b"Logout", response.data)
        user = User.query.filter_by(username="newbie").first()
        self.assertIsNotNone(user)
        self.assertEqual(user.email, "newbie@test.com")
        self.assertEqual(user.company_name, "Fresh Ltd")

    def test_register_duplicate_username(self):
        response = self.client.post(
            "/register",
            data={
                "username": "test_user",
                "email": "other@test.com",
                "password": "password123",
                "confirm_password": "password123",
            },
        )
        self.assertIn(b"Username already exists", response.data)

    def test_register_password_mismatch_keeps_prefill(self):
        response = self.client.post(
            "/register",
            data={
                "username": "mismatch",
                "email": "mismatch@test.com",
                "full_name": "Miss Match",
                "password": "password123",
                "confirm_password": "password124",
            },
        )
        self.assertIn(b"Passwords do not match", response.data)
        self.assertIn(b"Miss Match", response.data)

    def test_register_short_password(self):
        response = self.client.post(
            "/register",
            data={
                "username": "shorty",
                "email": "shorty@test.com",
                "password": "short",
                "confirm_password": "short",
            },
        )
        self.assertIn(b"at least 8 characters", response.data)

    def test_login_logout(self):
        response = self._login()
        self.assertIn(b"Logout", response.data)

        response = self.client.get("/logout", follow_redirects=True)
        self.assertIn(b"Login", response.data)
        self.assertNotIn(b"Logout", response.data)

    def test_login_wrong_password(self):
        response = self._login(password="wrong-password")
        self.assertIn(b"Invalid username or password", response.data)

    def test_login_rejects_open_redirect(self):
        response = self.client.post(
            "/login?next=//evil.example.com",
            data={"username": "test_user", "password": "password123"},
        )
        self.assertEqual(response.status_code, 302)
        self.assertNotIn("evil.example.com", response.headers["Location"])

    def test_login_follows_local_next(self):
        response = self.client.post(
            "/login?next=/certificate",
            data={"username": "test_user", "password": "password123"},
        )
        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers["Location"].endswith("/certificate"))

    def test_login_rate_limited(self):
        for _ in range(5):
            self._login(password="wrong-password")
        response = self._login()
        self.assertIn(b"Too many login attempts", response.data)

    def test_logout_clears_quiz(self):
        self._login()
        self.client.get("/quiz")
        with self.client.session_transaction() as sess:
            self.assertIn("quiz", sess)
        self.client.get("/logout")
        with self.client.session_transaction() as sess:
            self.assertNotIn("quiz", sess)

    def test_healthz(self):
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "ok")

    def test_404_page(self):
        response = self.client.get("/no-such-page")
        self.assertEqual(response.status_code, 404)

    def test_security_headers(self):
        response = self.client.get("/")
        self.assertEqual(response.headers.get("X-Content-Type-Options"), "nosniff")
        self.assertIn("Content-Security-Policy", response.headers)


if __name__ == "__main__":
    unittest.main()
