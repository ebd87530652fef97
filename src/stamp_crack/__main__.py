"""Main entry point for the stamp_crack package."""
from stamp_crack.cli import cli


def main():
    """Main entry point function."""
    cli()


if __name__ == "__main__":
    main()
