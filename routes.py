# routes.py
from fastapi import FastAPI
from controller.case_controller import case_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(case_router)
