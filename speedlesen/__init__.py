"""
Reading-speed tracker for small groups.

The package stores weekly measurements per group, keeps group rosters in
sync with them, scores progress and moves the whole dataset in and out as
JSON (current and legacy shapes), CSV and checksummed backups.
"""
