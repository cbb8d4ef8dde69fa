# Signal Core - Crypto signal-generation engine
#
# Forward pass (per request):
# - data_layer: Binance candles/tickers behind a MarketDataSource
# - indicators: RSI, StochRSI, SMA/EMA, MACD, Bollinger, ATR, OBV, ADX, VWAP, Supertrend
# - patterns: heuristic chart-pattern detection over recent bars
# - trading_model: weighted bullish/bearish scoring and direction resolution
# - signal_composer: TP/SL levels, risk/reward, time-horizon estimate
# - risk_engine: position sizing, margin cap, leverage advisor, daily-loss gate
# - external_factors: calendar/fundamental/news confidence adjustments
# - trade_narrator: templated rationale
# - orchestrator: analyze() pipeline
# - opportunity_scorer / intraday_scanner: market-wide scans
#
# Backward pass (scheduled):
# - learning_loop: closed-trade statistics -> new AnalysisParameters
# - scheduler: daily learning + periodic scans
