"""Allow web3funnel to be executable through `python -m web3funnel`."""
from web3funnel.cli import cli_app


if __name__ == "__main__":  # pragma: no cover
    cli_app(prog_name="web3funnel")
