"""Entry point for running the memorial Flask application."""

from dotenv import load_dotenv

load_dotenv()

from candlelight import create_app  # noqa: E402

app = create_app()
