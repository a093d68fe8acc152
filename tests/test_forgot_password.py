from unittest.mock import patch

from app.platform.services.email import EmailDeliveryError


class TestForgotPassword:
    """Test cases for forgot password functionality"""

    def test_forgot_password_sends_reset_link(self, client, register_user, mailer):
        register_user()
        mailer.send.reset_mock()

        with patch(
            "app.features.auth.services.auth_service.generate_reset_token",
            return_value="ab" * 32,
        ):
            response = client.post("/auth/forgot-password", json={"identifier": "alice"})

        assert response.status_code == 200
        assert response.json()["ok"] is True
        mailer.send.assert_called_once()
        to_email, subject, html, text = mailer.send.call_args.args
        assert to_email == "alice@x.com"
        assert "spike://reset-password?token=" + "ab" * 32 in text

    def test_forgot_password_existing_and_missing_are_identical(self, client, register_user):
        register_user()

        existing = client.post("/auth/forgot-password", json={"identifier": "alice@x.com"})
        missing = client.post("/auth/forgot-password", json={"identifier": "nobody@x.com"})

        assert existing.status_code == missing.status_code == 200
        assert existing.content == missing.content

    def test_forgot_password_email_failure_is_hidden(self, client, register_user, mailer):
        register_user()
        mailer.send.side_effect = EmailDeliveryError("smtp down")

        failed = client.post("/auth/forgot-password", json={"identifier": "alice"})
        missing = client.post("/auth/forgot-password", json={"identifier": "nobody"})

        assert failed.status_code == 200
        assert failed.content == missing.content

    def test_forgot_password_accepts_email_field(self, client, register_user, mailer):
        """The mobile client posts the identifier as "email"."""
        register_user()
        mailer.send.reset_mock()

        response = client.post("/auth/forgot-password", json={"email": "alice@x.com"})

        assert response.status_code == 200
        mailer.send.assert_called_once()

    def test_forgot_password_missing_identifier(self, client):
        response = client.post("/auth/forgot-password", json={})

        assert response.status_code == 400
        assert response.json()["ok"] is False
