"""
hostdb release manifest CLI.

Commands:
- reconcile: Sweep releases.json against the GitHub releases
- update: Record one freshly published release, then sweep
"""
