"""Quant analysis routes: technical, fundamental, bandarmology, blended signal and backtest."""
import logging
from typing import List, Optional, Union

import numpy as np
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import config
from modules.analysis_cache import analysis_cache, build_cache_key
from modules.backtest_engine import create_simple_strategy, run_backtest
from modules.bandarmology_analyzer import BandarmologyAnalyzer
from modules.fundamental_analyzer import analyze_fundamentals
from modules.quant_analysis import generate_quant_signal, predict_price_movement
from modules.technical_analyst import calculate_technical_summary

router = APIRouter(prefix="/api/analysis", tags=["analysis"])

logger = logging.getLogger(__name__)

NumericInput = Optional[Union[float, str]]


class BarModel(BaseModel):
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0


class BrokerFlowModel(BaseModel):
    broker_code: str = Field(..., min_length=1, max_length=10)
    broker_name: Optional[str] = None
    broker_type: Optional[str] = None
    buy_value: NumericInput = None
    sell_value: NumericInput = None
    net_value: NumericInput = None
    buy_volume: NumericInput = None
    sell_volume: NumericInput = None
    net_volume: NumericInput = None
    buy_avg_price: Optional[float] = None
    sell_avg_price: Optional[float] = None


class FundamentalMetricsModel(BaseModel):
    per: Optional[float] = None
    pbv: Optional[float] = None
    roe: Optional[float] = None
    roa: Optional[float] = None
    eps: Optional[float] = None
    dps: Optional[float] = None
    dividend_yield: Optional[float] = None
    debt_to_equity: Optional[float] = None
    current_ratio: Optional[float] = None
    gross_margin: Optional[float] = None
    net_margin: Optional[float] = None
    revenue_growth: Optional[float] = None
    earnings_growth: Optional[float] = None
    market_cap: Optional[float] = None


class SeriesRequest(BaseModel):
    bars: List[BarModel]


class BrokerSummaryRequest(BaseModel):
    brokers: List[BrokerFlowModel]


class QuantRequest(BaseModel):
    bars: List[BarModel] = Field(..., min_length=1)
    brokers: Optional[List[BrokerFlowModel]] = None
    fundamentals: Optional[FundamentalMetricsModel] = None


class BacktestRequest(BaseModel):
    bars: List[BarModel]
    lookback_period: int = Field(default=config.BACKTEST_LOOKBACK, ge=1)
    start_capital: float = Field(default=config.BACKTEST_START_CAPITAL, gt=0)
    buy_threshold: float = 60
    sell_threshold: float = 40
    lot_size: int = Field(default=1, ge=1)


def sanitize_data(data):
    """Recursively sanitize data to replace NaN/Inf values with None for JSON compliance."""
    if isinstance(data, dict):
        return {k: sanitize_data(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [sanitize_data(item) for item in data]
    elif isinstance(data, (float, np.floating)):
        if np.isnan(data) or np.isinf(data):
            return None
        return float(data)
    return data


def _bars(bars: List[BarModel]) -> List[dict]:
    return [bar.model_dump() for bar in bars]


def _brokers(brokers: Optional[List[BrokerFlowModel]]) -> List[dict]:
    return [broker.model_dump() for broker in brokers or []]


@router.post("/technical")
def post_technical_analysis(payload: SeriesRequest):
    """Indicator snapshot, per-indicator signals and the overall technical verdict."""
    try:
        summary = calculate_technical_summary(_bars(payload.bars))
        return sanitize_data(summary)
    except Exception as e:
        logger.error(f"Technical analysis failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/fundamental")
def post_fundamental_analysis(payload: FundamentalMetricsModel):
    """Score the supplied financial ratios."""
    try:
        summary = analyze_fundamentals(payload.model_dump(exclude_none=True))
        return sanitize_data(summary)
    except Exception as e:
        logger.error(f"Fundamental analysis failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/bandarmology")
def post_bandarmology_analysis(payload: BrokerSummaryRequest):
    """Accumulation/distribution read of one broker summary."""
    try:
        summary = BandarmologyAnalyzer().analyze_broker_summary(_brokers(payload.brokers))
        return sanitize_data(summary)
    except Exception as e:
        logger.error(f"Bandarmology analysis failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/quant")
def post_quant_analysis(payload: QuantRequest):
    """
    Full pipeline: technical + fundamental + bandarmology blended into a
    trading signal and a price-direction forecast.

    Identical requests within the cache TTL are served from memory.
    """
    try:
        cache_key = build_cache_key("quant", payload.model_dump())
        cached = analysis_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Quant analysis cache hit: {cache_key}")
            return cached

        bars = _bars(payload.bars)
        technical = calculate_technical_summary(bars)
        fundamental = (
            analyze_fundamentals(payload.fundamentals.model_dump(exclude_none=True))
            if payload.fundamentals is not None else None
        )
        bandarmology = (
            BandarmologyAnalyzer().analyze_broker_summary(_brokers(payload.brokers))
            if payload.brokers else None
        )

        quant = generate_quant_signal(bars, technical, fundamental, bandarmology)
        prediction = predict_price_movement(bars, technical, fundamental, bandarmology)

        logger.info(
            f"Quant analysis: {len(bars)} bars -> {quant['signal']['action']} "
            f"(composite {quant['composite_score']:.1f}), forecast {prediction['direction']}"
        )

        result = sanitize_data({
            "quant": quant,
            "prediction": prediction,
            "technical": technical,
            "fundamental": fundamental,
            "bandarmology": bandarmology,
        })
        analysis_cache.set(cache_key, result)
        return result
    except Exception as e:
        logger.error(f"Quant analysis failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/backtest")
def post_backtest(payload: BacktestRequest):
    """Replay the simple technical strategy over the supplied bars."""
    try:
        strategy = create_simple_strategy(payload.buy_threshold, payload.sell_threshold)
        result = run_backtest(
            _bars(payload.bars),
            strategy,
            lookback_period=payload.lookback_period,
            start_capital=payload.start_capital,
            lot_size=payload.lot_size,
        )
        logger.info(
            f"Backtest: {result['total_trades']} trades, return {result['total_return']:.2f}%"
        )
        return sanitize_data(result)
    except Exception as e:
        logger.error(f"Backtest failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})
