"""
Beatfolio

A self-hosted showcase for a beatmaker's catalog: beats with BPM, key and
cover art stored in a local folder or S3-compatible bucket (Cloudflare R2,
Backblaze B2, AWS S3), public like/dislike counters, comments and an artist
profile, served by a Flask API.

Repository Structure:
- shared/: Models, configuration, SQLite counter store and the HTTP API
- player/: Visitor-side client: reaction ledger, sync client, catalog CLI
- studio/: Artist-side tooling: storage providers, audio analysis, publishing CLI
- tests/: Unit and integration tests
"""
