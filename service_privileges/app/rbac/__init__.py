"""
Privilege tree reconciliation package.

Brings an authorization store in line with a declared tree of roles and
permissions.

Modules of interest:
- models: Item types, ensure states, resolved flags, trace and API models.
- flags: Default-flag merging and deprecated-flag mapping.
- items: Role/Permission records and rule classes.
- store: Store contract and the in-memory store.
- rules: Rule reconciliation.
- reconciler: Per-item ensure handling and parent linking.
- walker: Apply and teardown walks over the tree.

The engine is synchronous and never retries; a failed walk leaves the
store as the last successful operation left it.
"""
