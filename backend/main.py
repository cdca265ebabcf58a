"""
Main FastAPI Application - MarketPulse Quant

Exposes the quant analysis core (indicators, technical signals, fundamentals,
bandarmology, blended signal/prediction and backtests) over JSON.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

import config
from routes import analysis_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

# Create FastAPI app
app = FastAPI(
    title=config.API_TITLE,
    description="Quantitative analysis core for IDX equities: technical, fundamental and broker flow signals",
    version=config.API_VERSION
)

# CORS middleware for Next.js frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip compression for large JSON responses (indicator snapshots, trade logs)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.get("/")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "online",
        "message": "MarketPulse Quant API is running",
        "version": config.API_VERSION,
        "features": {
            "technical": "Indicator snapshot and technical signals",
            "fundamental": "Financial ratio scoring",
            "bandarmology": "Broker flow accumulation/distribution",
            "quant": "Composite trading signal and price forecast",
            "backtest": "Bar-by-bar strategy simulation"
        }
    }


# Register all routers
app.include_router(analysis_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
