"""Health check endpoint."""

from http.server import BaseHTTPRequestHandler
import json
import os

SERVICE_NAME = "choice-properties-sync"


def _configured(*names: str) -> bool:
    return all(os.environ.get(name) for name in names)


def health_report() -> dict:
    """Service status plus which collaborators are configured."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "checks": {
            "identity_provider": _configured("SUPABASE_URL", "SUPABASE_ANON_KEY"),
            "image_uploads": _configured(
                "IMAGEKIT_PUBLIC_KEY", "IMAGEKIT_PRIVATE_KEY", "IMAGEKIT_URL_ENDPOINT"
            ),
        },
    }


class handler(BaseHTTPRequestHandler):
    """Health check handler for Vercel serverless function."""

    def do_GET(self):
        """Handle GET request."""
        self.send_response(200)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        self.wfile.write(json.dumps(health_report()).encode('utf-8'))

    def do_POST(self):
        """Handle POST request (same as GET for health check)."""
        self.do_GET()
