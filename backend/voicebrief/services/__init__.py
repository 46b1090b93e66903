"""
VoiceBrief Backend: Services Layer
==================================

What:  Business logic between the routes (HTTP) and the outside world
       (speech/summary provider, SMTP relay, local disk).

Service Inventory:
    - provider_base:   TranscriptionProvider / SummarizationProvider interfaces
    - gemini_service:  Gemini adapter for both, with provider error translation
    - retry:           BackoffRetrier (rate-limit-only exponential backoff)
    - rate_gate:       RateGate + CounterStore (per-client fixed-window quotas)
    - file_service:    Audio upload validation, temp storage and cleanup
    - email_template:  Subject / HTML / plain-text rendering of a summary
    - email_service:   Address validation, SMTP send and relay verification
    - scheduler:       DeliveryScheduler for delayed sends
    - voice_service:   Orchestrates transcribe → summarize → deliver
"""
