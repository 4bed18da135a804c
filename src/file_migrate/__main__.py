"""Allow `python -m file_migrate`."""

from file_migrate.cli import app

if __name__ == "__main__":
    app()
