"""Plugin registration metadata for the bot-testing framework."""

from typing import Any, Dict, List

from agentforce_connector.connector import AgentforceConnector
from agentforce_connector.connectors import DEFAULT_API_VERSION, DEFAULT_TIMEOUT_MS, Capabilities

PLUGIN_VERSION = 1
PLUGIN_CLASS = AgentforceConnector


def _capability(name: str, label: str, type_: str, required: bool, description: str) -> Dict[str, Any]:
    return {
        "name": name,
        "label": label,
        "type": type_,
        "required": required,
        "description": description,
    }


CAPABILITIES: List[Dict[str, Any]] = [
    _capability(
        Capabilities.AGENTFORCE_INSTANCE_URL, "Salesforce Instance URL", "url", True,
        "Salesforce organization URL (e.g., https://myorg.my.salesforce.com)",
    ),
    _capability(
        Capabilities.AGENTFORCE_AGENT_ID, "Agent ID", "string", True,
        "Agentforce Agent ID (18-character ID starting with 0Xx)",
    ),
    _capability(
        Capabilities.AGENTFORCE_CLIENT_ID, "Client ID (Consumer Key)", "string", False,
        "Connected App Consumer Key (client credentials flow)",
    ),
    _capability(
        Capabilities.AGENTFORCE_CLIENT_SECRET, "Client Secret (Consumer Secret)", "secret", False,
        "Connected App Consumer Secret (client credentials flow)",
    ),
    _capability(
        Capabilities.AGENTFORCE_USERNAME, "Username", "string", False,
        "Salesforce username (username/password flow)",
    ),
    _capability(
        Capabilities.AGENTFORCE_PASSWORD, "Password", "secret", False,
        "Password for the user (username/password flow)",
    ),
    _capability(
        Capabilities.AGENTFORCE_SECURITY_TOKEN, "Security Token", "secret", False,
        "Appended to the password when the caller IP is not allow-listed",
    ),
    _capability(
        Capabilities.AGENTFORCE_API_VERSION, "API Version", "string", False,
        f"Salesforce API version (default: {DEFAULT_API_VERSION})",
    ),
    _capability(
        Capabilities.AGENTFORCE_TIMEOUT, "Request Timeout (ms)", "int", False,
        f"Timeout for API requests in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    ),
    _capability(
        Capabilities.AGENTFORCE_API_HOST, "Agent API Host", "url", False,
        "Host serving the Agent API (default: the instance URL)",
    ),
    _capability(
        Capabilities.AGENTFORCE_ENDPOINT_PROFILE, "Endpoint Profile", "choice", False,
        "Agent API URL layout: agent-api (default) or services-data",
    ),
    _capability(
        Capabilities.AGENTFORCE_SIMULATION_MODE, "Simulation Mode", "boolean", False,
        "Answer with a local rule-based agent (orgs without Agentforce)",
    ),
]

PLUGIN_DESC: Dict[str, Any] = {
    "name": "Salesforce Agentforce Connector",
    "provider": "Salesforce",
    "avatar": None,
    "capabilities": CAPABILITIES,
    "features": {
        "conversationFlowTesting": True,
        "e2eTesting": True,
        "intentResolution": True,
        "intentConfidenceScore": True,
        "alternateIntents": False,
        "entityResolution": True,
        "entityConfidenceScore": True,
        "testCaseGeneration": True,
        "testCaseExport": False,
        "securityTesting": False,
        "audioInput": False,
        "sendAttachments": True,
        "supportedFileExtensions": [".jpg", ".png", ".pdf", ".doc", ".docx"],
        "mediaDownload": False,
    },
}
