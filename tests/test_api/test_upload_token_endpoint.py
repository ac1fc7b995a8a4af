"""Tests for the upload credential endpoint."""

import pytest
from unittest.mock import patch

from api.imagekit.upload_token import _issue_credential, handler
from src.services.upload_token import sign_upload_token
from src.utils.errors import UploadCredentialError
from tests.utils.helpers import invoke_handler


@pytest.mark.unit
def test_issue_credential_wraps_in_envelope():
    status, body = _issue_credential()

    assert status == 200
    data = body["data"]
    assert set(data) == {"token", "signature", "expire", "publicKey", "urlEndpoint"}
    assert data["signature"] == sign_upload_token("private_test_key", data["token"], data["expire"])


@pytest.mark.unit
def test_post_returns_credential():
    send_response, body = invoke_handler(handler, "POST", "/api/imagekit/upload_token")

    assert send_response.call_args[0][0] == 200
    assert body["data"]["publicKey"] == "public_test_key"


@pytest.mark.unit
def test_get_not_allowed():
    send_response, body = invoke_handler(handler, "GET", "/api/imagekit/upload_token")

    assert send_response.call_args[0][0] == 405
    assert body == {"error": "Method not allowed"}


@pytest.mark.unit
def test_missing_configuration_is_server_error():
    with patch('src.services.upload_token.generate_upload_credential') as mock_generate:
        mock_generate.side_effect = UploadCredentialError("IMAGEKIT_PRIVATE_KEY must be set")

        status, body = _issue_credential()

    assert status == 500
    assert body == {"error": "IMAGEKIT_PRIVATE_KEY must be set"}
