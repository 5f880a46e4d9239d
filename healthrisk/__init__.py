"""
healthrisk package.

Design intent:
- Score questionnaire input with one rule-table engine shared by every risk module.
- Gate disclosure of a result on the requester's emotional readiness.
- Keep domain modules (risk/modules/readiness/disclosure/persistence) free of HTTP concerns.
"""
