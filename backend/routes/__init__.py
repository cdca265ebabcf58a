"""
Backend Routes Module

Exports the FastAPI routers of the quant analysis service:

- analysis_router: technical, fundamental, bandarmology, blended quant
  signal and backtest endpoints

Usage:
    from routes import analysis_router

    app.include_router(analysis_router)
"""
from .analysis import router as analysis_router

__all__ = [
    "analysis_router",
]
