"""
Pytest fixtures for TreeMirror tests.

Fixtures are organized by test category:
- store.py: In-memory store trees and mirror instances
- watcher.py: Change callbacks and watched mirrors
"""
