from unittest.mock import patch


class TestResendVerification:
    """Test suite for POST /auth/resend-verification endpoint"""

    def test_resend_verification_success(self, client, register_user, mailer):
        register_user(code="111111")
        mailer.send.reset_mock()

        with patch(
            "app.features.auth.services.auth_service.generate_verification_code",
            return_value="222222",
        ):
            response = client.post("/auth/resend-verification", json={"email": "alice@x.com"})

        assert response.status_code == 200
        assert response.json()["ok"] is True
        mailer.send.assert_called_once()
        assert "222222" in mailer.send.call_args.args[3]

        old = client.post("/auth/verify-email", json={"email": "alice@x.com", "code": "111111"})
        new = client.post("/auth/verify-email", json={"email": "alice@x.com", "code": "222222"})
        assert old.status_code == 400
        assert new.status_code == 200

    def test_resend_verification_does_not_reveal_accounts(self, client, register_user, mailer):
        register_user()
        mailer.send.reset_mock()

        unknown = client.post("/auth/resend-verification", json={"email": "nobody@x.com"})

        assert unknown.status_code == 200
        mailer.send.assert_not_called()

        known = client.post("/auth/resend-verification", json={"email": "alice@x.com"})
        assert known.content == unknown.content

    def test_resend_verification_missing_email(self, client):
        response = client.post("/auth/resend-verification", json={})

        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_resend_verification_blank_email(self, client):
        response = client.post("/auth/resend-verification", json={"email": "  "})

        assert response.status_code == 400
