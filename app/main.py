import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from app import config
from app.db import Base, create_db_engine, create_session_factory
from app.errors import LoyaltyError

from app.models.account import Account
from app.models.program import Program, RewardTier
from app.models.enrollment import Enrollment
from app.models.enrollment_request import EnrollmentRequest
from app.models.point_account import PointAccount
from app.models.ledger_entry import LedgerEntry
from app.models.promo_code import PromoCode
from app.models.notification import Notification

from app.routes.programs import router as programs_router
from app.routes.enrollments import router as enrollments_router
from app.routes.ledger import router as ledger_router
from app.routes.redemptions import router as redemptions_router
from app.routes.promo_codes import router as promo_codes_router
from app.routes.staff import router as staff_router
from app.routes.internal import router as internal_router


logger = logging.getLogger(__name__)


def create_app(engine: Engine | None = None) -> FastAPI:
    logging.basicConfig(level=config.LOG_LEVEL)

    app = FastAPI(title="Loyalty Ledger")

    app.state.engine = engine or create_db_engine()
    app.state.session_factory = create_session_factory(app.state.engine)

    # ─── CORS ─────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LoyaltyError)
    def handle_loyalty_error(request: Request, exc: LoyaltyError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.on_event("startup")
    def startup():
        Base.metadata.create_all(bind=app.state.engine)
        logger.info("loyalty ledger started")

    app.include_router(programs_router)
    app.include_router(enrollments_router)
    app.include_router(ledger_router)
    app.include_router(redemptions_router)
    app.include_router(promo_codes_router)
    app.include_router(staff_router)
    app.include_router(internal_router)

    @app.get("/")
    def read_root():
        return {"message": "Loyalty Ledger is running"}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:create_app", factory=True, host="127.0.0.1", port=8001, reload=True)
