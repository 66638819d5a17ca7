"""Built-in indicator catalog computed with pandas.

Every function receives the bar DataFrame and resolved parameters and
returns a series aligned 1:1 with the bars. Pattern and setup
indicators return 1.0 where detected and 0.0 elsewhere.
"""

import numpy as np
import pandas as pd

from screener.indicators.base import (
    EPS,
    Params,
    cross_flags,
    ema,
    pct_change_over,
    sma,
    true_range,
    wilder,
    wma,
)
from screener.indicators.registry import register

TRADING_DAYS_52W = 252


def _pct_from(values: pd.Series, ref: pd.Series) -> pd.Series:
    return (values - ref) / ref.where(ref != 0) * 100


# ---------------------------------------------------------------------------
# Price
# ---------------------------------------------------------------------------


@register("close", "Close", "price")
def close(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["close"]


@register("open", "Open", "price")
def open_(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["open"]


@register("high", "High", "price")
def high(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["high"]


@register("low", "Low", "price")
def low(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["low"]


@register("prev_close", "Previous Close", "price")
def prev_close(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["close"].shift(1)


@register("high_52w", "52-Week High", "price")
def high_52w(df: pd.DataFrame, p: Params) -> pd.Series:
    """Highest high of the prior 252 bars, excluding the current bar."""
    return df["high"].shift(1).rolling(window=TRADING_DAYS_52W, min_periods=1).max()


@register("low_52w", "52-Week Low", "price")
def low_52w(df: pd.DataFrame, p: Params) -> pd.Series:
    """Lowest low of the prior 252 bars, excluding the current bar."""
    return df["low"].shift(1).rolling(window=TRADING_DAYS_52W, min_periods=1).min()


@register("change_1d_pct", "1D Change %", "price")
def change_1d_pct(df: pd.DataFrame, p: Params) -> pd.Series:
    return pct_change_over(df["close"], 1)


@register("change_1w_pct", "1W Change %", "price")
def change_1w_pct(df: pd.DataFrame, p: Params) -> pd.Series:
    return pct_change_over(df["close"], 5)


@register("change_1m_pct", "1M Change %", "price")
def change_1m_pct(df: pd.DataFrame, p: Params) -> pd.Series:
    return pct_change_over(df["close"], 22)


@register("pct_from_sma", "% from SMA", "price", {"period": 200})
def pct_from_sma(df: pd.DataFrame, p: Params) -> pd.Series:
    return _pct_from(df["close"], sma(df["close"], p["period"]))


@register("pct_from_ema", "% from EMA", "price", {"period": 200})
def pct_from_ema(df: pd.DataFrame, p: Params) -> pd.Series:
    return _pct_from(df["close"], ema(df["close"], p["period"]))


@register("pct_from_52w_high", "% from 52W High", "price")
def pct_from_52w_high(df: pd.DataFrame, p: Params) -> pd.Series:
    return _pct_from(df["close"], high_52w(df, p))


@register("pct_from_52w_low", "% from 52W Low", "price")
def pct_from_52w_low(df: pd.DataFrame, p: Params) -> pd.Series:
    return _pct_from(df["close"], low_52w(df, p))


# ---------------------------------------------------------------------------
# Moving averages
# ---------------------------------------------------------------------------


@register("sma", "SMA", "moving_averages", {"period": 20})
def sma_(df: pd.DataFrame, p: Params) -> pd.Series:
    return sma(df["close"], p["period"])


@register("ema", "EMA", "moving_averages", {"period": 20})
def ema_(df: pd.DataFrame, p: Params) -> pd.Series:
    return ema(df["close"], p["period"])


@register("wma", "WMA", "moving_averages", {"period": 20})
def wma_(df: pd.DataFrame, p: Params) -> pd.Series:
    return wma(df["close"], p["period"])


# ---------------------------------------------------------------------------
# Oscillators
# ---------------------------------------------------------------------------


@register("rsi", "RSI", "oscillators", {"period": 14})
def rsi(df: pd.DataFrame, p: Params) -> pd.Series:
    """Wilder RSI; 100 when the average loss is zero."""
    delta = df["close"].diff()
    gain = delta.clip(lower=0).where(delta.notna())
    loss = (-delta).clip(lower=0).where(delta.notna())
    avg_gain = wilder(gain, p["period"])
    avg_loss = wilder(loss, p["period"])
    rs = avg_gain / avg_loss.where(avg_loss != 0)
    out = 100 - 100 / (1 + rs)
    return out.where(~((avg_loss == 0) & avg_gain.notna()), 100.0)


@register("roc", "Rate of Change", "oscillators", {"period": 12})
def roc(df: pd.DataFrame, p: Params) -> pd.Series:
    return pct_change_over(df["close"], p["period"])


def _stochastic_k(df: pd.DataFrame, k_period: int, smooth: int) -> pd.Series:
    hh = df["high"].rolling(window=k_period, min_periods=k_period).max()
    ll = df["low"].rolling(window=k_period, min_periods=k_period).min()
    span = hh - ll
    raw = ((df["close"] - ll) / span.where(span != 0) * 100).where(span != 0, 50.0)
    raw = raw.where(hh.notna())
    if smooth > 1:
        return sma(raw, smooth)
    return raw


@register("stoch_k", "Stochastic %K", "oscillators", {"k_period": 14, "d_period": 3, "smooth": 3})
def stoch_k(df: pd.DataFrame, p: Params) -> pd.Series:
    return _stochastic_k(df, p["k_period"], p["smooth"])


@register("stoch_d", "Stochastic %D", "oscillators", {"k_period": 14, "d_period": 3, "smooth": 3})
def stoch_d(df: pd.DataFrame, p: Params) -> pd.Series:
    return sma(_stochastic_k(df, p["k_period"], p["smooth"]), p["d_period"])


@register("williams_r", "Williams %R", "oscillators", {"period": 14})
def williams_r(df: pd.DataFrame, p: Params) -> pd.Series:
    period = p["period"]
    hh = df["high"].rolling(window=period, min_periods=period).max()
    ll = df["low"].rolling(window=period, min_periods=period).min()
    span = hh - ll
    return ((hh - df["close"]) / span.where(span != 0) * -100).where(span != 0, -50.0).where(hh.notna())


@register("cci", "CCI", "oscillators", {"period": 20})
def cci(df: pd.DataFrame, p: Params) -> pd.Series:
    period = p["period"]
    tp = (df["high"] + df["low"] + df["close"]) / 3
    tp_sma = sma(tp, period)
    mean_dev = tp.rolling(window=period, min_periods=period).apply(
        lambda w: float(np.mean(np.abs(w - w.mean()))), raw=True
    )
    out = (tp - tp_sma) / (0.015 * mean_dev.where(mean_dev != 0))
    return out.where(mean_dev != 0, 0.0).where(tp_sma.notna())


# ---------------------------------------------------------------------------
# MACD
# ---------------------------------------------------------------------------

_MACD_DEFAULTS = {"fast": 12, "slow": 26, "signal": 9}


def _macd(df: pd.DataFrame, p: Params) -> tuple[pd.Series, pd.Series]:
    line = ema(df["close"], p["fast"]) - ema(df["close"], p["slow"])
    return line, ema(line, p["signal"])


@register("macd_line", "MACD Line", "macd", _MACD_DEFAULTS)
def macd_line(df: pd.DataFrame, p: Params) -> pd.Series:
    return _macd(df, p)[0]


@register("macd_signal", "MACD Signal", "macd", _MACD_DEFAULTS)
def macd_signal(df: pd.DataFrame, p: Params) -> pd.Series:
    return _macd(df, p)[1]


@register("macd_histogram", "MACD Histogram", "macd", _MACD_DEFAULTS)
def macd_histogram(df: pd.DataFrame, p: Params) -> pd.Series:
    line, signal = _macd(df, p)
    return line - signal


# ---------------------------------------------------------------------------
# Volatility
# ---------------------------------------------------------------------------

_BB_DEFAULTS = {"period": 20, "stddev": 2.0}


def _bollinger(df: pd.DataFrame, p: Params) -> tuple[pd.Series, pd.Series, pd.Series]:
    period = p["period"]
    middle = sma(df["close"], period)
    sd = df["close"].rolling(window=period, min_periods=period).std(ddof=0)
    return middle + p["stddev"] * sd, middle, middle - p["stddev"] * sd


@register("bb_upper", "Bollinger Upper", "volatility", _BB_DEFAULTS)
def bb_upper(df: pd.DataFrame, p: Params) -> pd.Series:
    return _bollinger(df, p)[0]


@register("bb_middle", "Bollinger Middle", "volatility", {"period": 20})
def bb_middle(df: pd.DataFrame, p: Params) -> pd.Series:
    return sma(df["close"], p["period"])


@register("bb_lower", "Bollinger Lower", "volatility", _BB_DEFAULTS)
def bb_lower(df: pd.DataFrame, p: Params) -> pd.Series:
    return _bollinger(df, p)[2]


@register("bb_bandwidth", "Bollinger Bandwidth", "volatility", _BB_DEFAULTS)
def bb_bandwidth(df: pd.DataFrame, p: Params) -> pd.Series:
    upper, middle, lower = _bollinger(df, p)
    return (upper - lower) / middle.where(middle != 0) * 100


@register("atr", "ATR", "volatility", {"period": 14})
def atr(df: pd.DataFrame, p: Params) -> pd.Series:
    return wilder(true_range(df), p["period"])


@register("atr_pct", "ATR %", "volatility", {"period": 14})
def atr_pct(df: pd.DataFrame, p: Params) -> pd.Series:
    return atr(df, p) / df["close"].where(df["close"] != 0) * 100


@register("donchian_upper", "Donchian Upper", "volatility", {"period": 20})
def donchian_upper(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["high"].rolling(window=p["period"], min_periods=p["period"]).max()


@register("donchian_lower", "Donchian Lower", "volatility", {"period": 20})
def donchian_lower(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["low"].rolling(window=p["period"], min_periods=p["period"]).min()


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------


@register("volume", "Volume", "volume")
def volume(df: pd.DataFrame, p: Params) -> pd.Series:
    return df["volume"]


@register("volume_sma", "Volume SMA", "volume", {"period": 20})
def volume_sma(df: pd.DataFrame, p: Params) -> pd.Series:
    return sma(df["volume"], p["period"])


@register("volume_ema", "Volume EMA", "volume", {"period": 20})
def volume_ema(df: pd.DataFrame, p: Params) -> pd.Series:
    return ema(df["volume"], p["period"])


@register("relative_volume", "Relative Volume", "volume", {"period": 20})
def relative_volume(df: pd.DataFrame, p: Params) -> pd.Series:
    avg = sma(df["volume"], p["period"])
    return df["volume"] / avg.where(avg != 0)


@register("obv", "OBV", "volume")
def obv(df: pd.DataFrame, p: Params) -> pd.Series:
    direction = np.sign(df["close"].diff()).fillna(0.0)
    signed = direction * df["volume"]
    signed.iloc[0] = df["volume"].iloc[0]
    return signed.cumsum()


# ---------------------------------------------------------------------------
# Setups
# ---------------------------------------------------------------------------


@register("ema_cross_bullish", "EMA Cross Bullish", "setups", {"fast": 9, "slow": 21}, "pattern")
def ema_cross_bullish(df: pd.DataFrame, p: Params) -> pd.Series:
    return cross_flags(ema(df["close"], p["fast"]), ema(df["close"], p["slow"]), bullish=True)


@register("ema_cross_bearish", "EMA Cross Bearish", "setups", {"fast": 9, "slow": 21}, "pattern")
def ema_cross_bearish(df: pd.DataFrame, p: Params) -> pd.Series:
    return cross_flags(ema(df["close"], p["fast"]), ema(df["close"], p["slow"]), bullish=False)


@register("sma_cross_bullish", "SMA Cross Bullish", "setups", {"fast": 50, "slow": 200}, "pattern")
def sma_cross_bullish(df: pd.DataFrame, p: Params) -> pd.Series:
    return cross_flags(sma(df["close"], p["fast"]), sma(df["close"], p["slow"]), bullish=True)


@register("sma_cross_bearish", "SMA Cross Bearish", "setups", {"fast": 50, "slow": 200}, "pattern")
def sma_cross_bearish(df: pd.DataFrame, p: Params) -> pd.Series:
    return cross_flags(sma(df["close"], p["fast"]), sma(df["close"], p["slow"]), bullish=False)


@register("macd_cross_bullish", "MACD Cross Bullish", "setups", _MACD_DEFAULTS, "pattern")
def macd_cross_bullish(df: pd.DataFrame, p: Params) -> pd.Series:
    line, signal = _macd(df, p)
    return cross_flags(line, signal, bullish=True)


@register("macd_cross_bearish", "MACD Cross Bearish", "setups", _MACD_DEFAULTS, "pattern")
def macd_cross_bearish(df: pd.DataFrame, p: Params) -> pd.Series:
    line, signal = _macd(df, p)
    return cross_flags(line, signal, bullish=False)


# ---------------------------------------------------------------------------
# Candlestick patterns
# ---------------------------------------------------------------------------


def _candle_parts(df: pd.DataFrame) -> tuple[pd.Series, pd.Series, pd.Series, pd.Series]:
    body = (df["close"] - df["open"]).abs()
    rng = df["high"] - df["low"]
    upper = df["high"] - df[["open", "close"]].max(axis=1)
    lower = df[["open", "close"]].min(axis=1) - df["low"]
    return body, rng, upper, lower


@register("doji", "Doji", "candlestick", output_type="pattern")
def doji(df: pd.DataFrame, p: Params) -> pd.Series:
    body, rng, _, _ = _candle_parts(df)
    return ((rng > 0) & (body / (rng + EPS) < 0.1)).astype(float)


@register("hammer", "Hammer", "candlestick", output_type="pattern")
def hammer(df: pd.DataFrame, p: Params) -> pd.Series:
    body, rng, upper, lower = _candle_parts(df)
    detected = (rng > 0) & (lower >= 2 * body) & (upper <= body * 0.3) & (body / (rng + EPS) >= 0.1)
    return detected.astype(float)


@register("bullish_engulfing", "Bullish Engulfing", "candlestick", output_type="pattern")
def bullish_engulfing(df: pd.DataFrame, p: Params) -> pd.Series:
    prev_open = df["open"].shift(1)
    prev_close = df["close"].shift(1)
    detected = (
        (prev_close < prev_open)
        & (df["close"] > df["open"])
        & (df["open"] <= prev_close)
        & (df["close"] >= prev_open)
    )
    return detected.astype(float)


@register("bearish_engulfing", "Bearish Engulfing", "candlestick", output_type="pattern")
def bearish_engulfing(df: pd.DataFrame, p: Params) -> pd.Series:
    prev_open = df["open"].shift(1)
    prev_close = df["close"].shift(1)
    detected = (
        (prev_close > prev_open)
        & (df["close"] < df["open"])
        & (df["open"] >= prev_close)
        & (df["close"] <= prev_open)
    )
    return detected.astype(float)
