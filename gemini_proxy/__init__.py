"""Gemini proxy.

Translates provider-agnostic completion requests into Google Gemini
generateContent calls and back:
  - Agnostic and vendor schemas (pydantic)
  - Request / Response translators
  - Retrying transport (bounded exponential backoff, no jitter)
  - Completion service (error taxonomy, static model catalog)
  - Request dispatcher (tagged JSON envelopes)
"""
