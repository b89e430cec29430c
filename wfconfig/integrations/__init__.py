"""wfconfig.integrations — External service gateway modules.

All outbound HTTP calls to a remote configuration service go through a
gateway in this package, never via bare `requests` calls in services or
blueprints.

Current gateways:
  config_api_gateway.ConfigApiGateway — remote workflow configuration REST API
"""
