"""
Bug Classification Constants

Environment categories and the field names bugs are classified from.
"""


class Environment:
    """Environment buckets a bug can be classified into."""

    DEPLOY = "Deploy"
    PROD = "Prod"
    SIT = "SIT"
    UAT = "UAT"
    OTHER = "Other"
    UNCLASSIFIED = "Unclassified"

    # Fixed keys always present in a classification payload
    REPORTED: tuple[str, ...] = (DEPLOY, PROD, SIT, UAT, OTHER)


class BugFields:
    """Work item fields consulted when classifying bugs."""

    BUG_TYPE_FIELDS: tuple[str, ...] = (
        "Bug types",
        "Bug Types",
        "Custom.BugType",
        "Custom.BugTypes",
        "Microsoft.VSTS.Common.BugType",
    )
    SEVERITY = "Microsoft.VSTS.Common.Severity"
    CREATED_DATE = "System.CreatedDate"
    WORK_ITEM_TYPE_BUG = "Bug"


class IterationRef:
    """Logical iteration references resolved to concrete paths."""

    CURRENT = "current"
    LATEST = "latest"

    LOGICAL: frozenset[str] = frozenset({CURRENT, LATEST})

    TEAM_SUFFIX = " Team"
    SEGMENT_SEPARATOR = " - "
    PRODUCT_PREFIX = "Product - "


class Severity:
    """Severity filter values and the field labels they select."""

    LABELS: dict[str, str] = {
        "1": "1 - Critical",
        "2": "2 - High",
        "3": "3 - Medium",
        "4": "4 - Low",
    }


class ClassificationInsight:
    """Thresholds and texts of the classification insights."""

    HEALTHY_RATE = 80.0
    TOP_SOURCES = 5
    IMPROVE_RECOMMENDATION = "Improve bug classification rate by training team on custom field usage"
    HEALTHY_RECOMMENDATION = "Bug classification is healthy"
