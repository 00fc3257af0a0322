"""Transaction reconciliation: merging re-imported bank statements.

Submodules, leaves first: ``fingerprint`` (identity), ``annotations``
(user-state snapshot), ``window`` (owned date range), ``locks`` (window
exclusivity), ``engine`` (replace-window merge) and ``sweeper`` (duplicate
cleanup).
"""
