from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from ledger_engine import ApiConfig
from storage.database import get_engine, verify_required_tables
from trading_api.router import router as ledger_router
from trading_api.schemas import HealthResponse


def create_app(config: ApiConfig = None) -> FastAPI:
    config = config or ApiConfig.from_env()

    app = FastAPI(
        title="Trading Simulator Ledger API",
        description="Virtual balances, trades, subscriptions, wallets and copy trading.",
        version="1.0.0",
    )

    # CORS (Allow local frontend development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ledger_router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Ledger API is running"}

    @app.get("/healthcheck", response_model=HealthResponse)
    def healthcheck():
        try:
            missing = verify_required_tables(get_engine())
        except SQLAlchemyError as e:
            return HealthResponse(status="degraded", database=f"unreachable: {e.__class__.__name__}")
        return HealthResponse(
            status="ok" if not missing else "degraded",
            database="connected",
            missing_tables=missing,
        )

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
