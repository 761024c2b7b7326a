"""Entry point for the cloudmanager command line interface."""

import click

from cloudmanager import __version__
from cloudmanager.cli.commands.deploy import delete, insert, kinds, run, status


@click.group()
@click.version_option(version=__version__, prog_name="cloudmanager")
def main() -> None:
    """Manage Google Cloud Deployment Manager deployments from builds.

    Subcommands:

        insert  Insert a deployment, rolling it back on failure
        delete  Delete a deployment
        status  Show the current state of a deployment
        run     Run a command against an ephemeral deployment
        kinds   List the supported deployment kinds
    """


main.add_command(insert)
main.add_command(delete)
main.add_command(status)
main.add_command(run)
main.add_command(kinds)


if __name__ == "__main__":
    main()
