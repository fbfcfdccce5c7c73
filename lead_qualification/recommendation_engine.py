"""
Service recommendations from identified business needs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .state import Priority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recommendation:
    """A service proposed for the lead."""
    service: str
    reason: str
    priority: Priority = Priority.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {"service": self.service, "reason": self.reason, "priority": self.priority.value}


# need tag -> (service, reason, default priority)
SERVICE_CATALOG: Dict[str, Tuple[str, str, Priority]] = {
    "website_redesign": ("Web Development Package", "Complete website redesign", Priority.HIGH),
    "website_development": ("Web Development Package", "Custom website development", Priority.HIGH),
    "seo": ("Digital Marketing Package", "SEO optimization", Priority.MEDIUM),
    "digital_marketing": ("Digital Marketing Package", "Digital marketing strategy", Priority.MEDIUM),
    "marketing_automation": ("Digital Marketing Package", "Marketing automation", Priority.MEDIUM),
    "process_automation": ("Process Automation Solutions", "Workflow automation", Priority.MEDIUM),
    "automation": ("Process Automation Solutions", "Workflow automation", Priority.MEDIUM),
    "fundraising": ("Nonprofit Fundraising Platform", "Online donations and donor management", Priority.MEDIUM),
    "volunteer_management": ("Nonprofit Volunteer Management System", "Volunteer coordination and scheduling", Priority.MEDIUM),
    "crm": ("CRM Implementation", "Customer relationship tracking", Priority.MEDIUM),
    "data_analytics": ("Data Analytics & Business Intelligence", "Reporting and dashboards", Priority.MEDIUM),
    "ai_integration": ("AI/ML Integration", "Intelligent automation and chatbots", Priority.MEDIUM),
    "cloud_infrastructure": ("Cloud Solutions", "Cloud migration and hosting", Priority.MEDIUM),
    "compliance_security": ("Security & Compliance Audit", "Regulatory compliance and security review", Priority.HIGH),
    "business_consulting": ("Business Strategy Consulting", "Strategic guidance", Priority.HIGH),
    "software_development": ("Custom Software Development", "Tailored applications and portals", Priority.MEDIUM),
}


def generate_recommendations(
    needs: Iterable[str],
    organization_type: Optional[str] = None,
) -> List[Recommendation]:
    """
    Map business needs to service recommendations.

    Args:
        needs: Need tags in the order they were identified
        organization_type: Collected organization type, if any

    Returns:
        Recommendations deduplicated by service, in first-seen order.
        Fundraising is raised to high priority for nonprofits.
    """
    is_nonprofit = organization_type == "nonprofit"
    seen = set()
    recommendations: List[Recommendation] = []

    for need in needs or ():
        entry = SERVICE_CATALOG.get(need)
        if entry is None:
            logger.debug(f"No service mapped for need '{need}'")
            continue

        service, reason, priority = entry
        if service in seen:
            continue
        seen.add(service)

        if is_nonprofit and "fundraising" in need:
            priority = Priority.HIGH

        recommendations.append(Recommendation(service=service, reason=reason, priority=priority))

    return recommendations
