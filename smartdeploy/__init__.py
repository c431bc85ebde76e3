"""
smartdeploy - change-driven deployment orchestrator.

Decides from a repository's recent change set which maintenance commands
(dependency install, asset build, cache refresh, migration, restart) a
remote host needs, and runs only those over a single SSH session.
"""

__version__ = "0.1.0"
