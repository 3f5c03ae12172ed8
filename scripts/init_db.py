"""Initialize the SchoolHub database."""

from src.schoolhub.config import load_config


def main() -> None:
    config = load_config()
    print(f"Database initialized at {config.database_url}.")


if __name__ == "__main__":
    main()
