"""GitHub webhook automation for task boards.

This package links repository activity to board tasks:
- Authenticates webhook deliveries with the shared HMAC secret
- Drops repeated deliveries within a retention window
- Extracts task keys (e.g. PROJ-12) from commit messages and pull requests
- Comments on referenced tasks and completes them on closing keywords or merges
"""
