"""
Deployment pipeline for sitedeploy.

Modules:
    layout: Project directory layout (legacy and modern)
    manifest: Make file parsing and temporary patching
    symlinks: Profile symlinks inside the built web root
    fetch: First-time clones and repository updates
    hooks: Deploy hooks from the application config
    settings: Run settings and the local settings file
    datasync: Database download, import and sanitization
    search: Elasticsearch index creation
    builds: Old build retirement and post-build reports
    orchestrator: Ordered deployment sequence
"""

from sitedeploy.deploy.orchestrator import DeployOrchestrator
from sitedeploy.deploy.settings import BuildSettings

__all__ = [
    "DeployOrchestrator",
    "BuildSettings",
]
