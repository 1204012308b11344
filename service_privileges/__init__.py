"""
Privileges Service package for the 254Carbon Access Layer.

This package keeps the roles, permissions and rules held by an
authorization store in line with declared privilege trees. It provides:

- app.main: API surface for apply/teardown passes, store inspection and health.
- app.migration: Migration entry point with failure policy and teardown guard.
- app.loader: YAML privilege migration documents.
- app.rbac: Flag resolution, rule and item reconciliation, tree walks.

Guidelines:
- Passes are synchronous and serialised; there is no rollback.
- Every store call failure terminates the pass.
"""
