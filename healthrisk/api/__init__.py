"""
API orchestration boundary for the healthrisk service.

Design intent:
- Expose thin, typed endpoints for assessment, readiness and disclosure flows.
- Keep request validation explicit and failure modes predictable.
- Orchestrate modules without embedding domain logic in routers.
"""
