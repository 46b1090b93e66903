"""
VoiceBrief Backend: API Routes Package
======================================

Route Inventory:
    - transcribe.py:  POST /api/transcribe   (audio → transcript)
    - summarize.py:   POST /api/summarize    (transcript → bullets + next step)
    - email.py:       POST /api/send-email   (summary → inbox, now or later)
    - health.py:      GET  /api/health       (configuration + relay status)

Routes stay thin: extract the request data, call VoiceService, return the
response model. Errors propagate to the global handlers in main.py.
"""
