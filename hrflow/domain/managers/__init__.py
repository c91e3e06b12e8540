"""Domain managers: one per business area."""

from hrflow.domain.managers.base import DomainManager, ManagerSettings
from hrflow.domain.managers.contract import ContractManager
from hrflow.domain.managers.document import DocumentManager
from hrflow.domain.managers.employee import EmployeeManager
from hrflow.domain.managers.lookup import LookupManager
from hrflow.domain.managers.messaging import MessagingManager
from hrflow.domain.managers.pto import PTOManager
from hrflow.domain.managers.recruiting import RecruitingManager
from hrflow.domain.managers.review import ReviewManager
from hrflow.domain.managers.territory import TerritoryManager
from hrflow.domain.managers.tools import ToolsManager

__all__ = [
    "DomainManager",
    "ManagerSettings",
    "ContractManager",
    "DocumentManager",
    "EmployeeManager",
    "LookupManager",
    "MessagingManager",
    "PTOManager",
    "RecruitingManager",
    "ReviewManager",
    "TerritoryManager",
    "ToolsManager",
]
