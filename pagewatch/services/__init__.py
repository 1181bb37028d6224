"""
Services for the page-watch pipeline.

- orchestrator: per-tick and manual crawl pipeline
- retention: plan-based history cleanup
- quota_manager: per-tenant daily limits
- lease: per-target claims with expiry
- abuse_checks: guardrails fed from the database
"""
