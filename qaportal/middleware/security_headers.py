"""
Response hardening for the JSON API and the /uploads file route.

Usage:
    from qaportal.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

# Nothing the API serves runs script; uploads are only ever embedded as images/video
API_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; img-src 'self'; media-src 'self'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def init_security_headers(app):
    """Attach API_HEADERS to every response unless a view already set them."""

    @app.after_request
    def _harden_response(response):
        for name, value in API_HEADERS.items():
            response.headers.setdefault(name, value)
        if response.mimetype == "application/json":
            response.headers.setdefault("Cache-Control", "no-store")
        response.headers.pop("Server", None)
        return response
