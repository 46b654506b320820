# catdl/__main__.py
import sys
from .cli import app


def cli(argv=None):
    """
    Minimal launcher so you can run:
      - python3 -m catdl info <url>
      - python3 -m catdl download <url> --season 1 --all
    """
    if argv is None:
        argv = sys.argv[1:]
    return app(args=argv, prog_name="catdl")


if __name__ == "__main__":
    sys.exit(cli())
