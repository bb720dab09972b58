# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""A single entrypoint into the gemstat commands.

This file is intentionally lightweight and should not include any complex logic.
"""

import click

from gemstat._version import __version__
from gemstat.monitoring.cli import gem_usage


@click.group(epilog=f"gemstat Version: {__version__}")
@click.version_option(__version__)
def main() -> None:
    """GPU memory usage of amdgpu processes, as reported by the kernel."""


main.add_command(gem_usage.main, name="usage")

if __name__ == "__main__":
    main()
