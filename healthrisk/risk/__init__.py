"""
Risk scoring boundary for the healthrisk package.

Design intent:
- Turn raw questionnaire input into a bounded, explainable risk result.
- Keep every score traceable to the rules that produced it.
- Avoid autonomous diagnosis; results feed a readiness-gated disclosure flow.
"""
