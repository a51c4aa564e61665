"""Main CLI application using Cyclopts."""

import cyclopts

from kitlock import __version__
from kitlock.cli.commands import config, extract, lock, resolve

app = cyclopts.App(
    name="kitlock",
    help="Resolve, lock and extract OCI kit images",
    version=__version__,
)

app.command(resolve.app, name="resolve")
app.command(extract.app, name="extract")
app.command(lock.app, name="lock")
app.command(config.app, name="config")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
