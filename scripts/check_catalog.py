"""Validate a challenge catalog and print a per-track summary.

Usage: python scripts/check_catalog.py [path/to/catalog.json]
"""

import sys
from collections import Counter

from mixcraft.brain.catalog import ChallengeCatalog

catalog = ChallengeCatalog.load(sys.argv[1] if len(sys.argv) > 1 else None)

print("Total challenges:", len(catalog))
tracks = Counter(c.track.value if c.track else "unrouted" for c in catalog)
for track, count in sorted(tracks.items()):
    print(f"  {track}: {count}")

for module in catalog.modules():
    challenges = catalog.by_module(module)
    print(f"  - {module}")
    for c in challenges:
        print(f"    {c.id} [{c.target.domain}] d{c.difficulty} skills:{c.skills}")

problems = catalog.validate()
for problem in problems:
    print("PROBLEM:", problem)
sys.exit(1 if problems else 0)
