"""
VoiceBrief Backend: Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters):
    Request → [CORS] → [General Rate Gate] → [Request ID] → [Logging] → [GZip] → Route
                                                               (route gates run as dependencies)

    1. CORS outermost: answers preflights itself and decorates every
       response, 429s included, with Access-Control-Allow-Origin
    2. General rate gate: denied requests do no further work
    3. Request ID: correlation ID for logs and the X-Request-ID header
    4. Logging: method, path, status, duration with the request ID
"""
