from aiogram import Router

from .menu import router as menu_router
from .reminders import router as reminders_router
from .renewal_edit import router as renewal_edit_router
from .renewals import router as renewals_router

router = Router()
router.include_router(menu_router)
router.include_router(renewals_router)
router.include_router(renewal_edit_router)
router.include_router(reminders_router)
