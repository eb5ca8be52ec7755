"""Database models package."""
from models.database import Base, get_session, close_db, get_pool_status, get_engine
from models.user import User
from models.inquiry import Inquiry
from models.lead import Lead
from models.proposal import Proposal, ProposalStatus
from models.contract import Contract, ContractStatus
from models.client import Client
from models.ticket import ClientTicket, TicketPriority, TicketStatus
from models.calendar_event import CalendarEvent, EventStatus
from models.activity_log import ActivityLog
from models.user_file import FileEntityType, UserFile

__all__ = [
    "Base",
    "get_session",
    "close_db",
    "get_pool_status",
    "get_engine",
    "User",
    "Inquiry",
    "Lead",
    "Proposal",
    "ProposalStatus",
    "Contract",
    "ContractStatus",
    "Client",
    "ClientTicket",
    "TicketPriority",
    "TicketStatus",
    "CalendarEvent",
    "EventStatus",
    "ActivityLog",
    "FileEntityType",
    "UserFile",
]
