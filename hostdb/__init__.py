"""
hostdb release manifest maintenance.

This package keeps the committed ``releases.json`` manifest consistent with
the GitHub Releases of the hostdb repository. Per-database release workflows
call the single-release updater after publishing; maintainers run the full
reconciliation sweep on demand.

Key modules:
- github_client: GitHub REST client for releases and checksum files
- tags: release tag parsing and composition
- platforms: asset filename to platform classification
- checksums: checksums.txt parsing
- manifest: releases.json models, loading and writing
- canonical: deterministic ordering and serialization
- reconciler: manifest vs. remote release set reconciliation
- updater: single-release upsert path used by CI
- publisher: manifest writing and git commit/push with retry-on-conflict
- sync: file-level reconcile and update operations
- config: YAML and environment configuration
- catalog: database keys from databases.json
"""

import os

__version__ = os.environ.get("HOSTDB_RELEASES_VERSION", "1.0.0")
