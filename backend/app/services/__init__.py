"""Services Layer — orchestration between the vendor client and pure normalization.

Invariants:
    - Services never touch HTTP request/response objects (routes do)
"""
