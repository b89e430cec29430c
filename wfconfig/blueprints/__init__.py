"""
HTTP blueprints.

    health_bp           /api/v1/health/*            readiness and liveness probes
    workflow_config_bp  /api/v1/workflow-config/*   catalogue, instances, configuration, tree
"""
