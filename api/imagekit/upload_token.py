"""Upload credential endpoint for Vercel (POST /api/imagekit/upload_token)."""

from http.server import BaseHTTPRequestHandler
import json
import logging

_logger = logging.getLogger(__name__)


def _issue_credential() -> tuple[int, dict]:
    """Build the response status and body."""
    try:
        from src.services.upload_token import generate_upload_credential
        from src.utils.errors import UploadCredentialError
        from src.utils.logging_config import LoggingConfig
    except Exception as e:
        _logger.error(f"Failed to load services: {e}")
        return 500, {"error": "Upload service unavailable"}

    LoggingConfig.setup_logging()

    try:
        credential = generate_upload_credential()
    except UploadCredentialError as e:
        _logger.error(f"Upload credential not issued: {e}")
        return 500, {"error": str(e)}

    return 200, {"data": credential.to_json_dict()}


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler issuing signed upload credentials."""

    def _respond(self, status: int, body: dict) -> None:
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Cache-Control', 'no-store')
        self.end_headers()
        self.wfile.write(json.dumps(body).encode('utf-8'))

    def do_POST(self):
        """Handle POST request."""
        status, body = _issue_credential()
        self._respond(status, body)

    def do_GET(self):
        """Credentials are only issued over POST."""
        self._respond(405, {"error": "Method not allowed"})
