"""
Deployment orchestration.

Drives each registered module through its lifecycle:
PENDING → RESOLVING → DEPLOYING → RECORDED | FAILED | SKIPPED.
"""
