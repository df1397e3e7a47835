from fastapi import FastAPI
from app.convert import router as convert_router
from app.logging_setup import configure_logging, logging_middleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="geotext", description="WKT / PROJ string conversion and CRS registry lookups")
    app.middleware("http")(logging_middleware)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(convert_router)
    return app

app = create_app()
