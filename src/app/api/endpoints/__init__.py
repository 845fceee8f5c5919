from .healthcheck import router as healthcheck_router
from .hold import router as hold_router
from .reservation import router as reservation_router
from .reservation_request import router as reservation_request_router
from .slot import router as slot_router
from .table_set import router as table_set_router

__all__ = [
    'healthcheck_router',
    'hold_router',
    'reservation_request_router',
    'reservation_router',
    'table_set_router',
    'slot_router',
]

routers = [
    hold_router,
    reservation_request_router,
    reservation_router,
    table_set_router,
    slot_router,
    healthcheck_router,
]
