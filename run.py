"""Entry point for running the roster sync web service."""

from app import create_app

app = create_app()

if __name__ == "__main__":
    app.run()
