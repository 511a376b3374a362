"""
EthicsGate: multi-tenant ethics-review workflow core.

Researchers draft and submit proposals, reviewers annotate and decide on
them, and administrators manage organization membership. This package holds
the access-control evaluator, the proposal lifecycle manager, storage and
identity collaborators, plus a CLI and an optional HTTP API on top.
"""

__all__ = ["config"]
