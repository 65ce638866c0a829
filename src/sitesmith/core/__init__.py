"""Build engine: patterns, routes, rules, snapshots, tags, URL rewriting and feeds."""
