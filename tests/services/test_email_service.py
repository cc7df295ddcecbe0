from unittest.mock import MagicMock, patch

import requests

from gamehub.core.config import settings
from gamehub.services import email_service


class TestSendEmail:

    def test_without_api_key_only_logs(self):
        with patch.object(settings, "BREVO_API_KEY", None), patch("gamehub.services.email_service.requests.post") as post:
            sent = email_service.send_email("verify_email", "a@example.com", {"code": "123456"})

        assert sent is True
        post.assert_not_called()

    def test_posts_rendered_template(self):
        response = MagicMock(status_code=201, text="")
        with patch.object(settings, "BREVO_API_KEY", "key-1"), \
                patch("gamehub.services.email_service.requests.post", return_value=response) as post:
            sent = email_service.send_email("verify_email", "a@example.com", {"code": "123456"})

        assert sent is True
        args, kwargs = post.call_args
        assert args[0] == email_service.BREVO_SEND_URL
        assert kwargs["headers"]["api-key"] == "key-1"
        assert kwargs["json"]["to"] == [{"email": "a@example.com"}]
        assert "123456" in kwargs["json"]["htmlContent"]
        assert kwargs["json"]["subject"] == f"Verify your {settings.EMAIL_FROM_NAME} account"

    def test_api_error_returns_false(self):
        response = MagicMock(status_code=400, text="invalid sender")
        with patch.object(settings, "BREVO_API_KEY", "key-1"), \
                patch("gamehub.services.email_service.requests.post", return_value=response):
            assert email_service.send_email("reset_password", "a@example.com", {"reset_url": "http://x/r/t"}) is False

    def test_network_error_returns_false(self):
        with patch.object(settings, "BREVO_API_KEY", "key-1"), \
                patch("gamehub.services.email_service.requests.post", side_effect=requests.ConnectionError("down")):
            assert email_service.send_email("resend_code", "a@example.com", {"code": "654321"}) is False
