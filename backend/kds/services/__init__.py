from .ticket_router import TicketRouter
from .overview_service import KDSOverviewService

__all__ = ['TicketRouter', 'KDSOverviewService']
