import os

from dotenv import load_dotenv
from flask import Flask

from app.backtests import bp as backtests_bp
from app.common import register_error_handlers
from app.trading import bp as trading_bp
from marketdata.feed import MarketDataFeed
from marketdata.simulated import SimulatedMarket
from persistence.store import RUNS_DIR, STATE_DIR

load_dotenv()


def create_app(config=None) -> Flask:
    app = Flask(__name__)
    app.config.update(
        STATE_DIR=STATE_DIR,
        RUNS_DIR=RUNS_DIR,
        SAVE_RUNS=True,
        READ_ONLY=os.environ.get("PAPERBETS_READ_ONLY", "").lower() == "true",
        MARKET_FEED=MarketDataFeed(fallback=SimulatedMarket()),
    )
    if config:
        app.config.update(config)

    app.register_blueprint(backtests_bp)
    app.register_blueprint(trading_bp)
    register_error_handlers(app)
    return app


app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
