"""Main entry point for study-construct CLI."""

from study_construct.cli.app import app


def main():
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    main()
