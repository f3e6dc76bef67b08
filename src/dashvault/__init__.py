"""DashVault: resilient data access for project-tracking dashboards."""

from dashvault.shared.constants import CLIDefaults

__version__ = CLIDefaults.VERSION
