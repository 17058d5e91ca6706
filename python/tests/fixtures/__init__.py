"""
Pytest fixtures for wpsync tests.

Fixtures are organized by test category:
- sync.py: Plugin trees, runtime layout, fake compiler, engine factory
- watcher.py: RootWatcher fixtures
"""
