"""Security headers middleware."""
from flask import Flask, request


def apply_security_headers(app: Flask):
    """Apply OWASP-aligned headers for a JSON-only API."""

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'no-referrer'
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
        # Auth responses may carry tokens
        if request.path.startswith('/api/auth/'):
            response.headers['Cache-Control'] = 'no-store'
        return response
