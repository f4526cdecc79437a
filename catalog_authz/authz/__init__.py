"""Authorization decisions (actions, scope hierarchy, trusted principals, engine).

Import from the submodules directly, e.g. `from catalog_authz.authz.engine import AuthzEngine`.
"""
